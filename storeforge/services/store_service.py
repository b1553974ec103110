"""Store lookups"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from storeforge.core.exceptions import StoreNotFoundException
from storeforge.models import Store


async def get_active_store(db: AsyncSession, store_id: uuid.UUID) -> Store:
    """Fetch a store that can take orders; missing and non-active stores look the same"""
    store = await db.get(Store, store_id)
    if store is None or not store.is_active:
        raise StoreNotFoundException()
    return store


async def get_owned_store(db: AsyncSession, store_id: uuid.UUID, owner_id: uuid.UUID) -> Store:
    """Fetch a store owned by the given merchant"""
    store = await db.get(Store, store_id)
    if store is None or store.owner_id != owner_id:
        raise StoreNotFoundException()
    return store
