import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import relationship

from app.features.users.models.user import UserTier
from app.platform.db.base import BaseModel


class SubscriptionState(enum.Enum):
    active = "active"
    canceled = "canceled"


class Subscription(BaseModel):
    """Stripe subscription mirrored locally, keyed by the Stripe subscription id."""
    __tablename__ = "subscriptions"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user = relationship("User", back_populates="subscriptions")

    tier = Column(Enum(UserTier), nullable=False)
    stripe_subscription_id = Column(String(255), unique=True, nullable=True, index=True)
    stripe_price_id = Column(String(255), nullable=True)
    status = Column(Enum(SubscriptionState), default=SubscriptionState.active, nullable=False, index=True)

    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
