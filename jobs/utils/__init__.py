"""Helpers for background tasks."""
from jobs.utils.database import task_context, task_session

__all__ = ["task_context", "task_session"]
