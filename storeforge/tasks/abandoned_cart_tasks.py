"""Abandoned cart background tasks"""

from celery.utils.log import get_task_logger
from typing import Any, Dict
import asyncio

from storeforge.core.celery_app import celery_app
from storeforge.core.database import get_db_context
from storeforge.schemas.abandoned_cart import SweepResult
from storeforge.services.recovery_scheduler import RecoveryScheduler

logger = get_task_logger(__name__)


async def run_sweep() -> SweepResult:
    async with get_db_context() as db:
        return await RecoveryScheduler.from_settings(db).sweep()


@celery_app.task(name="process_abandoned_carts")
def process_abandoned_carts() -> Dict[str, Any]:
    """Periodic abandoned-cart sweep"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        result = loop.run_until_complete(run_sweep())
    finally:
        loop.close()

    logger.info(
        "Processed %s abandoned carts: %s emails sent, %s expired",
        result.cartsChecked,
        result.emailsSent,
        result.expired,
    )
    return result.model_dump()
