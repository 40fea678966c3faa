import json
from functools import lru_cache
from typing import Any, Dict

import redis

from app.platform.config import settings
from app.platform.logger import get_logger
from app.platform.utils.clock import utcnow

logger = get_logger(__name__)


def progress_channel(analysis_id: str) -> str:
    return f"analysis_progress:{analysis_id}"


@lru_cache(maxsize=1)
def _get_redis() -> redis.Redis:
    return redis.from_url(settings.CELERY_RESULT_BACKEND)


def publish_progress_event(analysis_id: str, data: Dict[str, Any]) -> bool:
    """Push one progress event to subscribers of the analysis stream. Best effort."""
    message = {
        "event_type": "progress",
        "timestamp": utcnow().isoformat(),
        "analysis_id": analysis_id,
        **data,
    }
    try:
        _get_redis().publish(progress_channel(analysis_id), json.dumps(message))
    except redis.RedisError as e:
        logger.warning(f"[{analysis_id}] Failed to publish progress '{data.get('stage')}': {e}")
        return False
    return True
