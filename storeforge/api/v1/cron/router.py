"""Scheduler-triggered jobs"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storeforge.core.database import get_db
from storeforge.core.security import require_cron_secret
from storeforge.schemas.abandoned_cart import SweepResult
from storeforge.services.recovery_scheduler import RecoveryScheduler

router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.api_route("/process-abandoned-carts", methods=["GET", "POST"], response_model=SweepResult)
async def process_abandoned_carts(db: AsyncSession = Depends(get_db)):
    """Run one abandoned-cart sweep"""
    return await RecoveryScheduler.from_settings(db).sweep()
