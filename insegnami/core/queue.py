# insegnami/core/queue.py
"""Producer side of the deferred email queue."""
import asyncio
import logging
from typing import List, Union
from fastapi import Request
from celery import Celery

from ..worker import SEND_EMAIL_TASK

logger = logging.getLogger(__name__)


class JobQueue:
    """Enqueues jobs on the Celery broker.

    Enqueue failures are logged and reported as ``False``; the request that
    triggered the job never fails because of them.
    """

    def __init__(self, celery_app: Celery):
        self.celery_app = celery_app

    async def enqueue(self, task_name: str, **kwargs) -> bool:
        try:
            await asyncio.to_thread(self.celery_app.send_task, task_name, kwargs=kwargs)
            return True
        except Exception as e:
            logger.error(f"Failed to enqueue {task_name}: {e}")
            return False

    async def enqueue_email(self, to: Union[str, List[str]], subject: str, html: str) -> bool:
        return await self.enqueue(SEND_EMAIL_TASK, to=to, subject=subject, html=html)

    def close(self):
        self.celery_app.close()


async def get_job_queue(request: Request) -> JobQueue:
    """Dependency to get the job queue."""
    return request.app.state.queue
