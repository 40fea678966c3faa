"""
Imports every model so relationship strings resolve and Base.metadata is
complete. Import this module (not the individual models) from entrypoints:
app startup, Celery workers, alembic and tests.
"""
from app.features.users.models.user import User  # noqa: F401
from app.features.analysis.models.analysis import Analysis  # noqa: F401
from app.features.analysis.models.analysis_progress import ProgressEvent  # noqa: F401
from app.features.analysis.models.analysis_factor import FactorResult  # noqa: F401
from app.features.billing.models.subscription import Subscription  # noqa: F401
from app.features.billing.models.usage_analytics import UsageRecord  # noqa: F401
from app.platform.db.base import Base

metadata = Base.metadata
