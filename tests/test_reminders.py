from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine, update
from sqlalchemy.orm import Session

from cfsync.db.database import Base
from cfsync.models import ReminderLog, Student, SubmissionRecord
from cfsync.notifications.reminders import (
    ReminderDecision,
    ReminderOutcome,
    ReminderService,
    decide_reminder,
)

NOW = datetime(2024, 6, 30, 12, 0, 0)
WEEK = timedelta(days=7)


@pytest.fixture
def db_session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    Base.metadata.drop_all(engine)


@pytest.fixture
def sender():
    mock_sender = MagicMock()
    mock_sender.is_configured.return_value = True
    mock_sender.send.return_value = True
    return mock_sender


@pytest.fixture
def student(db_session):
    student = Student(name="Alice", email="alice@example.com", codeforces_handle="alice_cf")
    student.created_at = NOW - timedelta(days=60)
    db_session.add(student)
    db_session.commit()
    return student


def add_submission(session, student, days_ago, submission_id=1):
    session.add(
        SubmissionRecord(
            student_id=student.id,
            submission_id=submission_id,
            contest_id=1,
            problem_index="A",
            problem_name="Problem A",
            verdict="OK",
            submitted_at=NOW - timedelta(days=days_ago),
        )
    )
    session.commit()


class TestDecideReminder:
    def test_disabled_always_skips(self):
        decision = decide_reminder(False, NOW - timedelta(days=100), None, NOW, WEEK, WEEK)
        assert decision is ReminderDecision.skip

    def test_inactive_sends(self):
        decision = decide_reminder(True, NOW - timedelta(days=8), None, NOW, WEEK, WEEK)
        assert decision is ReminderDecision.send

    def test_recent_activity_skips(self):
        decision = decide_reminder(True, NOW - timedelta(days=2), None, NOW, WEEK, WEEK)
        assert decision is ReminderDecision.skip

    def test_cooldown_skips(self):
        decision = decide_reminder(
            True, NOW - timedelta(days=30), NOW - timedelta(days=3), NOW, WEEK, WEEK
        )
        assert decision is ReminderDecision.skip

    def test_cooldown_elapsed_sends(self):
        decision = decide_reminder(
            True, NOW - timedelta(days=30), NOW - timedelta(days=7), NOW, WEEK, WEEK
        )
        assert decision is ReminderDecision.send


class TestReminderService:
    def test_send_increments_count_once(self, db_session, student, sender):
        add_submission(db_session, student, days_ago=10)

        outcome = ReminderService(db_session, sender=sender).process(student, now=NOW)

        assert outcome is ReminderOutcome.sent
        sender.send.assert_called_once()
        assert sender.send.call_args.args[0] == "alice@example.com"
        db_session.refresh(student)
        assert student.reminder_email_count == 1
        assert student.last_reminder_at == NOW
        assert db_session.query(ReminderLog).count() == 1

    def test_dispatch_failure_does_not_count(self, db_session, student, sender):
        sender.send.return_value = False

        outcome = ReminderService(db_session, sender=sender).process(student, now=NOW)

        assert outcome is ReminderOutcome.failed
        db_session.refresh(student)
        assert student.reminder_email_count == 0
        assert student.last_reminder_at is None
        assert db_session.query(ReminderLog).count() == 0

    def test_skip_does_not_count(self, db_session, student, sender):
        add_submission(db_session, student, days_ago=1)

        outcome = ReminderService(db_session, sender=sender).process(student, now=NOW)

        assert outcome is ReminderOutcome.skipped
        sender.send.assert_not_called()
        db_session.refresh(student)
        assert student.reminder_email_count == 0

    def test_no_submissions_falls_back_to_account_creation(self, db_session, sender):
        fresh = Student(name="New", email="new@example.com")
        fresh.created_at = NOW - timedelta(days=1)
        db_session.add(fresh)
        db_session.commit()

        service = ReminderService(db_session, sender=sender)

        assert service.evaluate(fresh, now=NOW) is ReminderDecision.skip

    def test_toggle_off_makes_next_evaluation_skip(self, db_session, student, sender):
        service = ReminderService(db_session, sender=sender)
        assert service.evaluate(student, now=NOW) is ReminderDecision.send

        db_session.execute(
            update(Student).where(Student.id == student.id).values(reminders_enabled=False)
        )
        db_session.commit()

        assert service.evaluate(student, now=NOW) is ReminderDecision.skip

    def test_cooldown_between_sends(self, db_session, student, sender):
        service = ReminderService(db_session, sender=sender)

        assert service.process(student, now=NOW) is ReminderOutcome.sent
        assert service.process(student, now=NOW + timedelta(days=1)) is ReminderOutcome.skipped
        assert service.process(student, now=NOW + timedelta(days=8)) is ReminderOutcome.sent

        db_session.refresh(student)
        assert student.reminder_email_count == 2

    def test_evaluate_with_explicit_history(self, db_session, student, sender):
        history = [MagicMock(submitted_at=NOW - timedelta(hours=3))]

        decision = ReminderService(db_session, sender=sender).evaluate(student, history, now=NOW)

        assert decision is ReminderDecision.skip

    def test_run_counts_outcomes(self, db_session, student, sender):
        active = Student(name="Bob", email="bob@example.com")
        active.created_at = NOW - timedelta(days=60)
        disabled = Student(name="Carol", email="carol@example.com", reminders_enabled=False)
        disabled.created_at = NOW - timedelta(days=60)
        db_session.add_all([active, disabled])
        db_session.commit()
        add_submission(db_session, active, days_ago=1, submission_id=99)

        results = ReminderService(db_session, sender=sender).run(
            [student, active, disabled], now=NOW
        )

        assert results == {"sent": 1, "skipped": 2, "failed": 0}

    def test_run_isolates_errors(self, db_session, student, sender):
        sender.send.side_effect = RuntimeError("smtp exploded")

        results = ReminderService(db_session, sender=sender).run([student], now=NOW)

        assert results["failed"] == 1

    @patch("cfsync.notifications.reminders.get_settings")
    def test_globally_disabled(self, mock_settings, db_session, student, sender):
        mock_settings.return_value = MagicMock(reminders_globally_enabled=False)

        results = ReminderService(db_session, sender=sender).run([student], now=NOW)

        assert results == {}
        sender.send.assert_not_called()

    def test_unconfigured_sender_skips_run(self, db_session, student, sender):
        sender.is_configured.return_value = False

        results = ReminderService(db_session, sender=sender).run([student], now=NOW)

        assert results == {}
        sender.send.assert_not_called()

    def test_dispatch_error_releases_claim(self, db_session, student, sender):
        sender.send.side_effect = RuntimeError("smtp exploded")

        with pytest.raises(RuntimeError):
            ReminderService(db_session, sender=sender).process(student, now=NOW)

        db_session.refresh(student)
        assert student.last_reminder_at is None
        assert student.reminder_email_count == 0

    def test_never_submitted_message(self, db_session, student, sender):
        ReminderService(db_session, sender=sender).process(student, now=NOW)

        text = sender.send.call_args.args[3]
        assert "not seen any submissions" in text


class TestConcurrentReminders:
    @pytest.fixture
    def engine(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'reminders.db'}")
        Base.metadata.create_all(engine)
        yield engine
        engine.dispose()

    @pytest.fixture
    def student_id(self, engine):
        with Session(engine) as session:
            student = Student(name="Alice", email="alice@example.com")
            student.created_at = NOW - timedelta(days=60)
            session.add(student)
            session.commit()
            return student.id

    def test_evaluator_started_during_dispatch_skips(self, engine, student_id, sender):
        with Session(engine) as first, Session(engine) as second:
            other_outcomes = []

            def send_while_other_runs(*args):
                other = ReminderService(second, sender=sender)
                other_outcomes.append(other.process(second.get(Student, student_id), now=NOW))
                return True

            sender.send.side_effect = send_while_other_runs
            outcome = ReminderService(first, sender=sender).process(
                first.get(Student, student_id), now=NOW
            )

            assert outcome is ReminderOutcome.sent
            assert other_outcomes == [ReminderOutcome.skipped]
            sender.send.assert_called_once()

        with Session(engine) as session:
            student = session.get(Student, student_id)
            assert student.reminder_email_count == 1
            assert session.query(ReminderLog).count() == 1

    def test_stale_read_loses_claim(self, engine, student_id, sender):
        with Session(engine) as first, Session(engine) as second:
            late = ReminderService(second, sender=sender)
            # both evaluators read the state before either one claimed
            stale_state = late._read_reminder_state(second.get(Student, student_id))

            ReminderService(first, sender=sender).process(first.get(Student, student_id), now=NOW)
            with patch.object(late, "_read_reminder_state", return_value=stale_state):
                outcome = late.process(second.get(Student, student_id), now=NOW)

            assert outcome is ReminderOutcome.skipped
            sender.send.assert_called_once()

        with Session(engine) as session:
            assert session.get(Student, student_id).reminder_email_count == 1
