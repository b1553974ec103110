"""Store (tenant) model"""

from sqlalchemy import Column, String, Enum, JSON, Uuid, Index
import enum

from .base import Base, TimestampedModel, UUIDModel


class StoreStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Store(Base, TimestampedModel, UUIDModel):
    """A merchant storefront"""

    __tablename__ = "stores"

    owner_id = Column(Uuid, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    status = Column(Enum(StoreStatus), default=StoreStatus.ACTIVE, nullable=False)

    # Raw JSON blobs; resolved into typed settings at the request boundary
    settings = Column(JSON, nullable=False, default=dict)
    cart_recovery_settings = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_stores_status", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == StoreStatus.ACTIVE
