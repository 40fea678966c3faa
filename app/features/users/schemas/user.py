from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.features.users.models.user import SubscriptionStatus, UserTier
from app.platform.schemas import FunctionRequest


class UserInitRequest(FunctionRequest):
    userId: Optional[str] = None
    email: Optional[str] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    tier: UserTier
    tier_expires_at: Optional[datetime] = None
    subscription_status: SubscriptionStatus
    monthly_analyses_used: int
    monthly_reset_date: Optional[date] = None
    created_at: Optional[datetime] = None
