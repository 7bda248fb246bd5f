"""Celery worker tasks that resume staged screenshot submissions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from celery import Celery

from config import Settings, get_settings
from errors import DependencyError

settings: Settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger("screenshots.worker")

celery_app = Celery(
    "screenshot_verifier",
    broker=settings.redis_url,
    backend=settings.redis_url,
)
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)


@celery_app.task(name="resume_submission", bind=True)
def resume_submission(self, request_id: str, target_url: str) -> int:
    """
    Re-invoke the HTTP entry point as a continuation for ``request_id``.

    The continuation header carries this task's id; the body carries only
    the request id.
    """

    task_settings = get_settings()
    logger.info("Resuming submission %s via %s", request_id, target_url)
    response = httpx.post(
        target_url,
        json={"request_id": request_id},
        headers={task_settings.continuation_header: self.request.id or request_id},
        timeout=task_settings.http_timeout_seconds,
    )

    if response.status_code == 400:
        logger.warning(
            "Submission %s rejected by continuation: %s",
            request_id,
            response.text,
        )
        return response.status_code

    response.raise_for_status()
    logger.info("Submission %s completed", request_id)
    return response.status_code


class CeleryDispatcher:
    """Schedules continuations on the Celery queue."""

    def __init__(self, target_url: Optional[str]) -> None:
        self.target_url = target_url

    def schedule(self, request_id: str, not_before: datetime) -> str:
        if not self.target_url:
            raise DependencyError("FUNCTION_URL must be configured to schedule continuations.")
        try:
            result = resume_submission.apply_async(
                args=[request_id, self.target_url],
                eta=not_before.astimezone(timezone.utc),
            )
        except Exception as exc:  # noqa: BLE001
            raise DependencyError(f"Unable to schedule continuation: {exc}") from exc
        return result.id
