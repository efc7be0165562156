from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import require
from ..core.database import get_db
from ..core.permissions import Action
from ..core.queue import JobQueue, get_job_queue
from ..core.security import Claims
from ..schemas.communication_schemas import MessageCreate
from ..services.message_service import MessageService

router = APIRouter(prefix="/api/v1/messages", tags=["Messages"])


@router.post("", status_code=201)
async def send_message(
    data: MessageCreate,
    claims: Claims = Depends(require(Action.MESSAGE_SEND)),
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
):
    """Deliver a message as notifications, optionally by email too"""
    return await MessageService(db, claims, queue).send(data)
