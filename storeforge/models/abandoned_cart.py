"""
Abandoned cart recovery models
Rows are never deleted; terminal carts are kept for reporting
"""

from sqlalchemy import Column, String, Integer, Numeric, Enum, ForeignKey, DateTime, JSON, Uuid, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
import enum
import secrets

from .base import Base, UUIDModel
from storeforge.utils.helpers import utcnow

MAX_RECOVERY_EMAILS = 3


class RecoveryStatus(str, enum.Enum):
    ACTIVE = "active"
    RECOVERED = "recovered"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not RecoveryStatus.ACTIVE


def generate_recovery_token() -> str:
    return secrets.token_hex(32)


class AbandonedCart(Base, UUIDModel):
    """Cart snapshot tracked through the reminder sequence"""

    __tablename__ = "abandoned_carts"

    store_id = Column(Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Uuid, nullable=True)

    # Guest identification
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)

    # Cart contents: [{product_id, variant_id, title, variant_title, price, quantity}]
    items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    item_count = Column(Integer, nullable=False, default=0)

    # Recovery tracking
    recovery_status = Column(Enum(RecoveryStatus), default=RecoveryStatus.ACTIVE, nullable=False)
    recovery_emails_sent = Column(Integer, nullable=False, default=0)
    last_email_sent_at = Column(DateTime, nullable=True)
    last_swept_at = Column(DateTime, nullable=True)
    recovered_at = Column(DateTime, nullable=True)
    recovered_order_id = Column(Uuid, nullable=True)
    recovery_token = Column(String(64), unique=True, nullable=False, default=generate_recovery_token)

    # updated_at tracks shopper activity only, so it has no onupdate hook
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    abandoned_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    emails = relationship("CartRecoveryEmail", back_populates="cart")

    __table_args__ = (
        CheckConstraint(
            f"recovery_emails_sent >= 0 AND recovery_emails_sent <= {MAX_RECOVERY_EMAILS}",
            name="check_recovery_emails_range",
        ),
        Index("idx_abandoned_carts_store_email_status", "store_id", "email", "recovery_status"),
        Index("idx_abandoned_carts_recovery", "recovery_status", "updated_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.recovery_status == RecoveryStatus.ACTIVE


class CartRecoveryEmail(Base, UUIDModel):
    """Log of each reminder actually delivered"""

    __tablename__ = "cart_recovery_emails"

    cart_id = Column(Uuid, ForeignKey("abandoned_carts.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence_number = Column(Integer, nullable=False)
    sent_at = Column(DateTime, nullable=False, default=utcnow)

    cart = relationship("AbandonedCart", back_populates="emails")

    __table_args__ = (
        UniqueConstraint("cart_id", "sequence_number", name="uq_cart_recovery_sequence"),
    )
