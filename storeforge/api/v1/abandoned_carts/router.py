"""Merchant abandoned-cart actions"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from storeforge.core.database import get_db
from storeforge.core.security import get_current_user_id
from storeforge.schemas.abandoned_cart import SendRecoveryRequest, SendRecoveryResponse
from storeforge.services.recovery_scheduler import RecoveryScheduler

router = APIRouter()


@router.post("/send-recovery", response_model=SendRecoveryResponse)
async def send_recovery_email(
    request: SendRecoveryRequest,
    owner_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Send the next reminder of a cart's recovery sequence right away"""
    scheduler = RecoveryScheduler.from_settings(db)
    sequence_number = await scheduler.send_now(request.cart_id, owner_id)
    return SendRecoveryResponse(
        success=True,
        sequence_number=sequence_number,
        message=f"Recovery email {sequence_number} sent",
    )
