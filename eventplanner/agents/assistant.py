"""
Planner Assistant

DESIGN DECISION: The assistant is a thin command layer over the
planner. It has exactly two tools:

1. add_task
   - CAN: Create a task through the same repository call the UI uses
   - CAN: Fall back to the first project when none is given
   - CANNOT: Create projects or events on its own

2. analyze_tasks
   - CAN: Report counts computed from the planner's tasks
   - CANNOT: Report anything it did not read from the planner

The interpreter routes a chat message to one of the tools with keyword
and pattern matching. There is no language model behind it: a message
that matches neither tool gets the help text.
"""

import re
from typing import Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from eventplanner.models.audit import AuditEventBuilder
from eventplanner.models.planner import TaskPriority, TaskStatus
from eventplanner.state.derivation import compute_task_stats
from eventplanner.state.repository import PlannerStore, PlannerValidationError


logger = structlog.get_logger(__name__)


NO_PROJECTS_MESSAGE = "No projects available. Please create a project first."

HELP_MESSAGE = (
    "I can help you add tasks or analyze your productivity. "
    "Try saying 'add task [title]' or 'analyze tasks'."
)


# =============================================================================
# TOOL INPUTS
# =============================================================================

class AddTaskInput(BaseModel):
    """Arguments for the add_task tool."""

    title: str = Field(min_length=1, description="Title of the task")
    description: Optional[str] = Field(default=None, description="Detailed description")
    project_id: Optional[str] = Field(
        default=None,
        description="Project ID. If not provided, the first project is used."
    )
    priority: Optional[TaskPriority] = Field(default=None, description="Priority level")


class AnalyzeTasksInput(BaseModel):
    """Arguments for the analyze_tasks tool."""

    project_id: Optional[str] = Field(default=None, description="Project ID to analyze")


class AssistantReply(BaseModel):
    """Outcome of one chat message."""

    text: str
    tool_name: Optional[str] = None
    succeeded: bool = True


# =============================================================================
# TOOLS
# =============================================================================

class PlannerTools:
    """
    The tool contract the assistant calls into.

    Both tools work on the planner directly and need no UI context.
    """

    def __init__(self, planner: PlannerStore):
        self._planner = planner

    def add_task(
        self,
        title: str,
        description: Optional[str] = None,
        project_id: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> str:
        """
        Add a todo task.

        Returns:
            Confirmation text, or the refusal text when there is no
            project to file the task under
        """
        params = AddTaskInput(
            title=title,
            description=description,
            project_id=project_id,
            priority=priority,
        )

        projects = self._planner.projects
        target_id = params.project_id or (projects[0].id if projects else None)
        if not target_id:
            return NO_PROJECTS_MESSAGE

        self._planner.add_task(
            title=params.title,
            description=params.description,
            project_id=target_id,
            priority=params.priority or TaskPriority.MEDIUM,
            status=TaskStatus.TODO,
        )

        project = self._planner.get_project(target_id)
        suffix = f' to project "{project.name}"' if project is not None else ""
        return f'Task "{params.title}" added successfully{suffix}.'

    def analyze_tasks(self, project_id: Optional[str] = None) -> str:
        """Counts by status, high-priority count and completion rate."""
        params = AnalyzeTasksInput(project_id=project_id)
        if params.project_id:
            tasks = self._planner.tasks_by_project(params.project_id)
        else:
            tasks = self._planner.tasks

        stats = compute_task_stats(tasks)
        # Half-up rounding, like a UI percentage
        completion_rate = int(stats.percent_complete + 0.5)

        return (
            "Task Analysis:\n"
            f"- Total: {stats.total}\n"
            f"- Completed: {stats.completed} ({completion_rate}%)\n"
            f"- In Progress: {stats.in_progress}\n"
            f"- Todo: {stats.todo}\n"
            f"- High Priority: {stats.high_priority}"
        )


# =============================================================================
# INTERPRETER
# =============================================================================

_ADD_TRIGGERS = ("add task", "create task", "new task", "add a task", "create a task")
_ADD_PREFIXES = ("add ", "create ")
_ANALYZE_TRIGGERS = (
    "analyze", "analysis", "stats", "statistics", "productivity",
    "how many tasks", "task progress",
)

_TITLE_AFTER_TASK = re.compile(
    r"(?:add|create|new)\s+(?:a\s+)?task[:\s]+(.+?)(?:\s+with|\s+priority|\s+high|\s+low|$)",
    re.IGNORECASE,
)
_TITLE_AFTER_VERB = re.compile(
    r"(?:add|create|new)\s+(.+?)(?:\s+with|\s+priority|\s+high|\s+low|$)",
    re.IGNORECASE,
)
_COMMAND_PREFIX = re.compile(r"(?:please\s+)?(?:add|create|new)\s+(?:a\s+)?task[:\s]*", re.IGNORECASE)
_WITH_CLAUSE = re.compile(r"\s+with\s+.+$", re.IGNORECASE)
_PRIORITY_CLAUSE = re.compile(r"\s+priority\s+.+$", re.IGNORECASE)
_DESCRIPTION = re.compile(r"(?:with|description)[:\s]+(.+?)(?:\s+priority|$)", re.IGNORECASE)


class KeywordCommandInterpreter:
    """
    Routes chat messages to PlannerTools.

    Usage:
        interpreter = KeywordCommandInterpreter(PlannerTools(planner))
        reply = interpreter.handle("add task Book DJ high priority")
    """

    def __init__(self, tools: PlannerTools, planner: PlannerStore):
        self._tools = tools
        self._planner = planner

    def handle(self, message: str) -> AssistantReply:
        text = message.strip()
        if not text:
            return AssistantReply(text=HELP_MESSAGE, succeeded=False)

        lowered = text.lower()
        if any(t in lowered for t in _ADD_TRIGGERS) or lowered.startswith(_ADD_PREFIXES):
            return self._run("add_task", lambda: self._tools.add_task(**extract_add_task_args(text)))
        if any(t in lowered for t in _ANALYZE_TRIGGERS):
            return self._run("analyze_tasks", self._tools.analyze_tasks)

        return AssistantReply(text=HELP_MESSAGE)

    def _run(self, tool_name: str, call) -> AssistantReply:
        try:
            result = call()
        except (ValidationError, PlannerValidationError) as e:
            logger.warning("assistant_tool_failed", tool=tool_name, error=str(e))
            self._planner.audit.log(AuditEventBuilder.assistant_command_executed(tool_name, False))
            return AssistantReply(text=f"Error: {e}", tool_name=tool_name, succeeded=False)

        logger.info("assistant_tool_completed", tool=tool_name)
        self._planner.audit.log(AuditEventBuilder.assistant_command_executed(tool_name, True))
        return AssistantReply(
            text=result or f"{tool_name} completed successfully.",
            tool_name=tool_name,
        )


def extract_add_task_args(message: str) -> dict:
    """Pull title, priority and description out of an add-task message."""
    args: dict = {}

    match = _TITLE_AFTER_TASK.search(message) or _TITLE_AFTER_VERB.search(message)
    if match:
        args["title"] = match.group(1).strip()
    else:
        cleaned = _COMMAND_PREFIX.sub("", message, count=1)
        cleaned = _PRIORITY_CLAUSE.sub("", _WITH_CLAUSE.sub("", cleaned)).strip()
        args["title"] = cleaned or "New Task"

    lowered = message.lower()
    for priority in (TaskPriority.HIGH, TaskPriority.LOW, TaskPriority.MEDIUM):
        if f"{priority.value} priority" in lowered or f"priority {priority.value}" in lowered:
            args["priority"] = priority.value
            break

    description = _DESCRIPTION.search(message)
    if description:
        args["description"] = description.group(1).strip()

    return args
