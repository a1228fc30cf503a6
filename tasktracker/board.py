"""Client-side state for the task list UI.

TaskBoard mirrors what the browser page keeps in memory: the fetched task
list, which statuses are shown, the task opened in the detail view and its
completed steps, and the last error to show in a banner. Every change goes
through the JSON API; local state is replaced with the server's answer only
after the request succeeds, so a failure leaves the previous state intact.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .models import TASK_STATUSES
from .utils import sort_by_priority

logger = logging.getLogger(__name__)

TASKS_PATH = "/api/tasks"
PROJECTS_PATH = "/api/projects"
ENVIRONMENT_PATH = "/api/environment"


class BoardError(Exception):
    """A request made on behalf of the board failed"""


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"HTTP error! status: {response.status_code}"


class TaskBoard:
    def __init__(self, client: httpx.Client):
        self.client = client
        self.tasks: List[Dict[str, Any]] = []
        self.projects: List[Dict[str, Any]] = []
        self.status_filters: Dict[str, bool] = {status: status == "active" for status in TASK_STATUSES}
        self.selected_task: Optional[Dict[str, Any]] = None
        self.selected_steps: List[Dict[str, Any]] = []
        self.environment = "development"
        self.error: Optional[str] = None

    @classmethod
    def connect(cls, base_url: str, timeout: float = 10.0) -> "TaskBoard":
        return cls(httpx.Client(base_url=base_url, timeout=timeout))

    def close(self) -> None:
        self.client.close()

    def _call(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise BoardError(str(e)) from e
        if response.is_error:
            raise BoardError(_error_message(response))
        return response.json()

    def _fail(self, action: str, error: BoardError) -> None:
        self.error = f"Failed to {action}: {error}"
        logger.warning(self.error)

    # -- loading -----------------------------------------------------------

    def refresh(self) -> bool:
        try:
            tasks = self._call("GET", TASKS_PATH)
        except BoardError as e:
            self._fail("fetch tasks", e)
            return False
        self.tasks = tasks
        self.error = None
        return True

    def load_projects(self) -> bool:
        try:
            projects = self._call("GET", PROJECTS_PATH)
        except BoardError as e:
            self._fail("fetch projects", e)
            return False
        self.projects = projects
        return True

    def load_environment(self) -> str:
        try:
            data = self._call("GET", ENVIRONMENT_PATH)
        except BoardError as e:
            self._fail("fetch environment", e)
            return self.environment
        self.environment = data.get("environment") or "development"
        return self.environment

    # -- list view ---------------------------------------------------------

    def toggle_status_filter(self, status: str) -> None:
        self.status_filters[status] = not self.status_filters.get(status, False)

    def visible_tasks(self) -> List[Dict[str, Any]]:
        """Tasks whose status is switched on, high priority first"""
        shown = [task for task in self.tasks if self.status_filters.get(task["status"])]
        return sort_by_priority(shown)

    def find_task(self, task_id: int) -> Optional[Dict[str, Any]]:
        for task in self.tasks:
            if task["task_id"] == task_id:
                return task
        return None

    def _replace_task(self, updated: Dict[str, Any]) -> None:
        self.tasks = [updated if task["task_id"] == updated["task_id"] else task for task in self.tasks]
        if self.selected_task and self.selected_task["task_id"] == updated["task_id"]:
            self.selected_task = updated

    def add_task(self, title: str, milestones: Optional[str] = None, notes: Optional[str] = None) -> Optional[Dict[str, Any]]:
        if not title or not title.strip():
            return None

        payload: Dict[str, Any] = {"title": title}
        if milestones is not None:
            payload["milestones"] = milestones
        if notes is not None:
            payload["notes"] = notes

        try:
            task = self._call("POST", TASKS_PATH, json=payload)
        except BoardError as e:
            self._fail("add task", e)
            return None
        self.tasks = [task] + self.tasks
        self.error = None
        return task

    def update_fields(self, task_id: int, **fields) -> Optional[Dict[str, Any]]:
        try:
            task = self._call("PUT", TASKS_PATH, json={"task_id": task_id, **fields})
        except BoardError as e:
            self._fail("update task", e)
            return None
        self._replace_task(task)
        self.error = None
        return task

    def set_priority(self, task_id: int, priority: str) -> Optional[Dict[str, Any]]:
        return self.update_fields(task_id, priority=priority)

    def set_status(self, task_id: int, status: str) -> Optional[Dict[str, Any]]:
        return self.update_fields(task_id, status=status)

    def save_field(self, task_id: int, field: str, value: Optional[str]) -> Optional[Dict[str, Any]]:
        """Save one edited field; an unchanged value is not sent"""
        current = self.selected_task if self.selected_task and self.selected_task["task_id"] == task_id else self.find_task(task_id)
        if current is not None and current.get(field) == value:
            return current
        return self.update_fields(task_id, **{field: value})

    # -- detail view -------------------------------------------------------

    def open_task(self, task_id: int) -> bool:
        try:
            task = self._call("GET", f"{TASKS_PATH}/{task_id}")
            steps = self._call("GET", f"{TASKS_PATH}/{task_id}/completed_steps")
        except BoardError as e:
            self._fail("load task data", e)
            return False
        self.selected_task = task
        self.selected_steps = steps
        self.error = None
        return True

    def close_task(self) -> None:
        self.selected_task = None
        self.selected_steps = []

    def mark_step_done(self, task_id: int, text: str) -> Optional[Dict[str, Any]]:
        """Log text as a completed step and clear the task's next step"""
        if not text or not text.strip():
            self.error = "No content to mark as done"
            return None

        try:
            result = self._call("POST", f"{TASKS_PATH}/{task_id}/complete_step", json={"description": text.strip()})
        except BoardError as e:
            self._fail("mark step as done", e)
            return None

        self._replace_task(result["task"])
        if self.selected_task and self.selected_task["task_id"] == task_id:
            self.selected_steps = [result["step"]] + self.selected_steps
        self.error = None
        return result["step"]
