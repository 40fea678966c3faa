import enum

from sqlalchemy import Column, Date, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship

from app.platform.db.base import BaseModel


class UserTier(enum.Enum):
    free = "free"
    coffee = "coffee"
    professional = "professional"
    enterprise = "enterprise"


class SubscriptionStatus(enum.Enum):
    active = "active"
    inactive = "inactive"


class User(BaseModel):
    """
    Account record. The id comes from the auth provider, so it is supplied
    by the caller rather than generated here.
    """
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)

    tier = Column(Enum(UserTier), default=UserTier.free, nullable=False)
    tier_expires_at = Column(DateTime, nullable=True)
    subscription_status = Column(Enum(SubscriptionStatus), default=SubscriptionStatus.active, nullable=False)

    stripe_customer_id = Column(String(255), unique=True, nullable=True, index=True)

    # Free tier quota
    monthly_analyses_used = Column(Integer, default=0, nullable=False)
    monthly_reset_date = Column(Date, nullable=True)

    analyses = relationship("Analysis", back_populates="user", passive_deletes=True)
    subscriptions = relationship(
        "Subscription", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, tier={self.tier})>"
