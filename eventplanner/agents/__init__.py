"""Planner assistant package."""

from eventplanner.agents.assistant import (
    AddTaskInput,
    AnalyzeTasksInput,
    AssistantReply,
    KeywordCommandInterpreter,
    PlannerTools,
)

__all__ = [
    "AddTaskInput",
    "AnalyzeTasksInput",
    "AssistantReply",
    "KeywordCommandInterpreter",
    "PlannerTools",
]
