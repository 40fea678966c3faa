from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UsageRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    analysis_id: str
    tier: str
    analysis_type: str
    processing_time_ms: int
    success: bool
    created_at: Optional[datetime] = None
