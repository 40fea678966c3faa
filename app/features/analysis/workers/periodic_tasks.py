"""
Celery periodic tasks for tier quotas.

Runs on a schedule via Celery Beat.
"""
from sqlalchemy import or_, update

from app.features.users.models.user import User
from app.platform.celery_app import celery_app
from app.platform.db.session import get_sync_session_factory
from app.platform.logger import get_logger
from app.platform.utils.clock import utctoday

logger = get_logger(__name__)


@celery_app.task(bind=True, name="app.features.analysis.workers.periodic_tasks.reset_monthly_quotas")
def reset_monthly_quotas(self) -> int:
    """
    Zero the free-tier counter for every user whose reset date is in an
    earlier month. Access checks reset lazily as well; this keeps the
    stored counters honest for reporting.
    """
    month_start = utctoday().replace(day=1)

    db = get_sync_session_factory()()
    try:
        result = db.execute(
            update(User)
            .where(or_(User.monthly_reset_date.is_(None), User.monthly_reset_date < month_start))
            .values(monthly_analyses_used=0, monthly_reset_date=month_start)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    logger.info(f"Reset monthly quotas for {result.rowcount} users")
    return result.rowcount
