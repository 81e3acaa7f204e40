"""
Parser for action-item strings of the form ``"<task> (<assignee> - <date>)"``.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

ACTION_ITEM_PATTERN = re.compile(r"^(.+?)\s*\(([^)]+?)(?:\s*-\s*([^)]+))?\)\s*$")

DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
)


@dataclass(frozen=True)
class ParsedActionItem:
    task: str
    assignee: Optional[str] = None
    due_date: Optional[datetime] = None


def parse_due_date(value: str) -> Optional[datetime]:
    """Parse a loose date string; None if unparseable or not after 1970."""
    value = value.strip()
    parsed = None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None or parsed.year <= 1970:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_action_item(text: str) -> ParsedActionItem:
    """
    Split an action item into task, assignee and due date.

    Without a trailing parenthetical the whole text is the task.

    >>> parse_action_item("Send grant report (Maria - 2025-03-14)").assignee
    'Maria'
    """
    text = text.strip()
    match = ACTION_ITEM_PATTERN.match(text)
    if not match:
        return ParsedActionItem(task=text)

    task, assignee, due = match.groups()
    return ParsedActionItem(
        task=task.strip(),
        assignee=assignee.strip() if assignee else None,
        due_date=parse_due_date(due) if due else None,
    )
