from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Dict, Optional

from cfsync.models import Student

PROBLEMSET_URL = "https://codeforces.com/problemset"


def format_inactivity_reminder(
    student: Student,
    last_activity_at: Optional[datetime],
    now: datetime,
) -> Dict[str, str]:
    """Format the inactivity reminder email.

    Returns:
        dict with keys "subject", "html" and "text".
    """
    if last_activity_at is not None:
        days = max((now - last_activity_at).days, 0)
        since = f"It has been {days} days since your last submission"
    else:
        since = "We have not seen any submissions from you yet"

    handle = student.codeforces_handle or "your account"
    subject = "Time to get back to problem solving!"

    text = (
        f"Hi {student.name},\n\n"
        f"{since} on Codeforces ({handle}).\n"
        f"Pick a problem and keep your streak going: {PROBLEMSET_URL}\n"
    )
    html = (
        f"<p>Hi {escape(student.name)},</p>"
        f"<p>{escape(since)} on Codeforces (<b>{escape(handle)}</b>).</p>"
        f'<p>Pick a problem and keep your streak going: '
        f'<a href="{PROBLEMSET_URL}">{PROBLEMSET_URL}</a></p>'
    )
    return {"subject": subject, "html": html, "text": text}
