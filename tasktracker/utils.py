from datetime import datetime, timezone
from typing import Iterable, List, Optional

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the way the columns store it"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean_text(text: Optional[str]) -> str:
    """Strip surrounding whitespace, treating None as empty"""
    if not text:
        return ""
    return text.strip()


def sort_by_priority(tasks: Iterable[dict]) -> List[dict]:
    """Order task dicts high -> medium -> low, keeping the incoming order otherwise"""
    return sorted(tasks, key=lambda task: PRIORITY_ORDER.get(task.get("priority"), 0), reverse=True)


def format_task_summary(tasks: list) -> str:
    """Format a list of task dicts into a readable summary"""
    if not tasks:
        return "No tasks found."

    summary = f"Found {len(tasks)} task{'s' if len(tasks) > 1 else ''}:\n"

    for i, task in enumerate(tasks, 1):
        status_marker = {
            "active": "[ ]",
            "paused": "[-]",
            "done": "[x]",
            "cancelled": "[~]",
        }.get(task.get("status", "active"), "[ ]")

        summary += f"{i}. {status_marker} ({task.get('priority', 'medium')}) {task.get('title', 'Untitled')}\n"

        if task.get("next_step"):
            next_step = task["next_step"][:100] + ("..." if len(task["next_step"]) > 100 else "")
            summary += f"   Next: {next_step}\n"

        if task.get("last_step_description"):
            summary += f"   Last: {task['last_step_description']}\n"

    return summary.strip()
