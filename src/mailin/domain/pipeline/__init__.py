"""Pipeline scheduling primitives."""

from .task_graph import GraphRun, GraphTask, TaskGraph, TaskGraphError

__all__ = ["GraphRun", "GraphTask", "TaskGraph", "TaskGraphError"]
