"""
Celery tasks for summary generation.

Detailed summaries are expensive (one model call per transcript chunk plus
a reduce step), so the API can hand them off to a worker:

    POST /api/v1/videos/{video_id}/detailed  ->  summaries.generate_detailed_summary
"""

import asyncio
from typing import Optional

from celery import Task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import AppError, NotFound, RateLimited, UpstreamUnavailable, root_cause
from app.core.logging import get_logger
from app.db.redis import close_redis
from app.db.session import AsyncSessionLocal, engine
from app.services.video_processing import create_video_processing_service
from app.workers.celery_app import celery_app

logger = get_logger(__name__)


# ========================================
# Helper Functions
# ========================================

def run_async(coro):
    """
    Run async coroutine in Celery task context.

    Each task gets a fresh event loop, so database and Redis connections
    opened on it are closed before the loop goes away.
    """
    async def _run():
        try:
            return await coro
        finally:
            await engine.dispose()
            await close_redis()

    return asyncio.run(_run())


def _retryable_cause(error: AppError) -> Optional[AppError]:
    """The transient upstream error behind a generation failure, if any."""
    cause = error.__cause__
    if cause is None:
        return None
    cause = root_cause(cause)
    if isinstance(cause, (UpstreamUnavailable, RateLimited)) and cause.retryable:
        return cause
    return None


async def generate_detailed_summary_async(
    video_id: str,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> dict:
    """
    Generate and store the detailed summary of `video_id`.

    Returns a result dict; raises retryable upstream errors so Celery can
    retry them.
    """
    async with session_factory() as db:
        service = await create_video_processing_service(db)
        try:
            record = await service.generate_detailed_summary(video_id)
        except NotFound as e:
            logger.warning("detailed_summary_skipped", video_id=video_id, error=e.message)
            return {'success': False, 'video_id': video_id, 'error': e.message, 'code': e.code}
        except AppError as e:
            cause = _retryable_cause(e)
            if cause is not None:
                raise cause from e
            raise

    logger.info(
        "detailed_summary_stored",
        video_id=video_id,
        summary_id=str(record.detailed_summary.id),
        length=len(record.detailed_summary.summary),
    )
    return {
        'success': True,
        'video_id': video_id,
        'summary_id': str(record.detailed_summary.id),
    }


# ========================================
# Base Task Class
# ========================================

class SummaryTask(Task):
    """Base task class with retry logic for transient upstream failures."""

    autoretry_for = (UpstreamUnavailable, RateLimited)
    retry_kwargs = {'max_retries': 3}
    retry_backoff = True
    retry_backoff_max = 600  # 10 minutes
    retry_jitter = True


# ========================================
# Tasks
# ========================================

@celery_app.task(
    base=SummaryTask,
    name='summaries.generate_detailed_summary',
    bind=True,
)
def generate_detailed_summary(self, video_id: str) -> dict:
    """
    Generate the detailed summary of a processed video.

    Args:
        video_id: 11-character YouTube video id (Content.id)

    Returns:
        {'success': bool, 'video_id': str, 'summary_id' | 'error': str}
    """
    logger.info("detailed_summary_task_started", video_id=video_id, task_id=self.request.id)
    return run_async(generate_detailed_summary_async(video_id))
