"""Celery-backed notification delivery.

`TaskDispatcher` implements the application's Notifier port; the tasks
themselves live in `infrastructure.tasks.tasks.notifications`.
"""
from .config.celery import celery_app
from .utils.dispatcher import TaskDispatcher

__all__ = ["celery_app", "TaskDispatcher"]
