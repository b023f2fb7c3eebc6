import pytest

from cfsync.exceptions import ConfigValidationError
from cfsync.scheduler.cron import (
    CustomSchedule,
    DailySchedule,
    MonthlySchedule,
    WeeklySchedule,
    build_trigger,
    describe,
    from_expression,
    to_expression,
)


class TestToExpression:
    def test_daily(self):
        assert to_expression(DailySchedule(hour=2, minute=0)) == "0 2 * * *"

    def test_daily_keeps_minute(self):
        assert to_expression(DailySchedule(hour=14, minute=30)) == "30 14 * * *"

    def test_weekly_sorted_days(self):
        descriptor = WeeklySchedule(hour=9, minute=0, days=frozenset({5, 1, 3}))
        assert to_expression(descriptor) == "0 9 * * 1,3,5"

    def test_weekly_without_days_runs_every_day(self):
        assert to_expression(WeeklySchedule(hour=9, minute=15)) == "15 9 * * *"

    def test_monthly(self):
        assert to_expression(MonthlySchedule(hour=3, minute=0, day_of_month=15)) == "0 3 15 * *"

    def test_custom_verbatim(self):
        assert to_expression(CustomSchedule("*/10 * * * *")) == "*/10 * * * *"


class TestFromExpression:
    def test_daily(self):
        assert from_expression("0 2 * * *") == DailySchedule(hour=2, minute=0)

    def test_weekly(self):
        assert from_expression("0 9 * * 1,3,5") == WeeklySchedule(
            hour=9, minute=0, days=frozenset({1, 3, 5})
        )

    def test_weekly_drops_non_numeric_tokens(self):
        assert from_expression("0 9 * * 1,fri,3") == WeeklySchedule(
            hour=9, minute=0, days=frozenset({1, 3})
        )

    def test_monthly(self):
        assert from_expression("0 4 20 * *") == MonthlySchedule(hour=4, minute=0, day_of_month=20)

    def test_monthly_unparsable_day_defaults_to_first(self):
        assert from_expression("0 4 L * *") == MonthlySchedule(hour=4, minute=0, day_of_month=1)

    @pytest.mark.parametrize(
        "expression",
        [
            "",
            "0 2 * *",
            "0 2 * * * *",
            "not a cron",
            "*/5 * * * *",
            "0 2 1 6 *",
            "0 2 1 * 1",
            "0 9 * * mon-fri",
            "0 99 * * *",
        ],
    )
    def test_unrecognised_shapes_are_custom(self, expression):
        assert from_expression(expression) == CustomSchedule(expression)

    @pytest.mark.parametrize(
        "descriptor",
        [
            DailySchedule(hour=0, minute=0),
            DailySchedule(hour=23, minute=45),
            WeeklySchedule(hour=6, minute=0, days=frozenset({0})),
            WeeklySchedule(hour=18, minute=5, days=frozenset({0, 2, 4, 6})),
            MonthlySchedule(hour=1, minute=0, day_of_month=31),
            CustomSchedule("0 0 1 1 *"),
        ],
    )
    def test_round_trip(self, descriptor):
        assert from_expression(to_expression(descriptor)) == descriptor

    def test_every_day_weekly_reads_back_as_daily(self):
        expression = to_expression(WeeklySchedule(hour=9, minute=0))
        assert from_expression(expression) == DailySchedule(hour=9, minute=0)


class TestBuildTrigger:
    def test_valid_expression(self):
        trigger = build_trigger("0 2 * * *", "UTC")
        fields = {f.name: str(f) for f in trigger.fields}
        assert fields["hour"] == "2"
        assert fields["minute"] == "0"

    def test_cron_weekday_numbers_map_to_names(self):
        trigger = build_trigger("0 9 * * 0,1,7", "UTC")
        fields = {f.name: str(f) for f in trigger.fields}
        assert set(fields["day_of_week"].split(",")) == {"sun", "mon"}

    def test_step_values_are_kept(self):
        trigger = build_trigger("*/15 * * * *", "UTC")
        fields = {f.name: str(f) for f in trigger.fields}
        assert fields["minute"] == "*/15"

    @pytest.mark.parametrize("expression", ["", "   ", "0 2 * *", "0 25 * * *", "0 2 * * 9", "a b c d e"])
    def test_invalid_expression_raises(self, expression):
        with pytest.raises(ConfigValidationError):
            build_trigger(expression, "UTC")


def test_describe_weekly():
    data = describe(from_expression("30 7 * * 6,0"))
    assert data == {"frequency": "weekly", "hour": 7, "minute": 30, "days": [0, 6]}


def test_describe_custom():
    assert describe(from_expression("* * * * * *")) == {
        "frequency": "custom",
        "expression": "* * * * * *",
    }
