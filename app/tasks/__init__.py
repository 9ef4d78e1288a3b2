"""
Celery tasks for background processing.
"""

from app.tasks.summary_tasks import generate_detailed_summary

__all__ = [
    "generate_detailed_summary",
]
