"""
SSE endpoint for live analysis progress.

Stored checkpoints are replayed first, then new ones arrive from the Redis
channel the worker publishes to. The stream closes once a terminal stage
(``completion`` or ``error``) has been sent.

For a running analysis the channel is subscribed before the stored
checkpoints are read, so a checkpoint published in between shows up in the
snapshot, on the channel, or both. Duplicates are dropped by (stage, percent).
"""
import asyncio
import json
from typing import AsyncGenerator, Awaitable, Callable, Dict, List, Set, Tuple

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from app.features.analysis.models.analysis import Analysis
from app.features.analysis.models.analysis_progress import ProgressEvent
from app.features.analysis.schemas.analysis import ProgressEventOut
from app.features.analysis.services.analysis_service import get_analysis, list_progress
from app.features.analysis.workers.sse_publisher import progress_channel
from app.platform.config import settings
from app.platform.db.session import SessionLocal, get_db
from app.platform.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/analyses", tags=["analyses"])

TERMINAL_STAGES = {"completion", "error"}
STREAM_TIMEOUT_SECONDS = 300
HEARTBEAT_SECONDS = 15.0

Snapshot = Tuple[Analysis, List[ProgressEvent]]


def _event(name: str, data: Dict) -> Dict[str, str]:
    return {"event": name, "data": json.dumps(data, default=str)}


def _complete(analysis_id: str, status: str) -> Dict[str, str]:
    return _event("complete", {"analysis_id": analysis_id, "status": status, "final": True})


def _snapshot_events(analysis: Analysis, stored: List[ProgressEvent], seen: Set[tuple]) -> List[Dict[str, str]]:
    events = []
    for event in stored:
        seen.add((event.stage, event.progress_percent))
        events.append(_event("progress", ProgressEventOut.model_validate(event).model_dump(mode="json")))
    if analysis.is_terminal:
        events.append(_complete(analysis.id, analysis.status.value))
    return events


async def load_progress_snapshot(analysis_id: str) -> Snapshot:
    async with SessionLocal() as db:
        analysis = await get_analysis(db, analysis_id)
        stored = await list_progress(db, analysis_id)
        return analysis, stored


async def replay_progress(analysis: Analysis, stored: List[ProgressEvent]) -> AsyncGenerator[dict, None]:
    """Stream for an analysis that already finished; no channel needed."""
    for event in _snapshot_events(analysis, stored, set()):
        yield event


async def analysis_progress_stream(
    analysis_id: str,
    load_snapshot: Callable[[str], Awaitable[Snapshot]] = load_progress_snapshot,
    redis_client=None,
) -> AsyncGenerator[dict, None]:
    redis_client = redis_client or aioredis.from_url(settings.CELERY_RESULT_BACKEND, decode_responses=True)
    pubsub = redis_client.pubsub()
    channel = progress_channel(analysis_id)
    try:
        await pubsub.subscribe(channel)
        logger.info(f"SSE: Subscribed to {channel}")

        analysis, stored = await load_snapshot(analysis_id)
        seen: Set[tuple] = set()
        for event in _snapshot_events(analysis, stored, seen):
            yield event
        if analysis.is_terminal:
            return

        loop = asyncio.get_running_loop()
        started = loop.time()
        while loop.time() - started < STREAM_TIMEOUT_SECONDS:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=HEARTBEAT_SECONDS)
            if not message or message["type"] != "message":
                yield _event("heartbeat", {"timestamp": loop.time()})
                continue

            data = json.loads(message["data"])
            stage = data.get("stage")
            key = (stage, data.get("progress_percent"))
            if key in seen:
                continue
            seen.add(key)
            yield _event("progress", data)

            if stage in TERMINAL_STAGES:
                yield _complete(analysis_id, "completed" if stage == "completion" else "error")
                return

        logger.info(f"SSE: Connection timeout for analysis {analysis_id}")
        yield _event("timeout", {"message": "Connection timeout"})
    except aioredis.RedisError as e:
        logger.error(f"SSE: Error streaming analysis {analysis_id}: {e}")
        yield _event("error", {"error": str(e)})
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        await redis_client.aclose()
        logger.info(f"SSE: Closed connection for analysis {analysis_id}")


@router.get("/{analysis_id}/stream")
async def stream_analysis_progress(analysis_id: str, db: AsyncSession = Depends(get_db)):
    # Resolve before streaming so an unknown id is a plain 404
    analysis = await get_analysis(db, analysis_id)
    logger.info(f"SSE: Client connected for analysis {analysis_id}")

    if analysis.is_terminal:
        stream = replay_progress(analysis, await list_progress(db, analysis_id))
    else:
        stream = analysis_progress_stream(analysis_id)

    return EventSourceResponse(
        stream,
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
