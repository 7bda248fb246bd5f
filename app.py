"""FastAPI entrypoint for the CI screenshot verifier."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Mapping

import uvicorn
from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from config import Settings, get_settings
from errors import ClientInputError, DependencyError, MissingFieldError, NotFoundError
from schemas import AckResponse, ContinuationInvocation, InitialInvocation, Invocation
from services.archive_logs import ArchiveLogFetcher
from services.github_service import GitHubService
from services.pipeline import PipelineServices, parse_submission, resume_submission, stage_submission
from services.storage import PublicationStore, StagingStore
from tasks import CeleryDispatcher

logger = logging.getLogger("screenshots.api")

app = FastAPI(
    title="CI Screenshot Verifier",
    version="0.1.0",
    description=(
        "Stages screenshots from CI runs, verifies them against the run logs and "
        "comments the published images on the pull request."
    ),
)


@lru_cache()
def get_services() -> PipelineServices:
    """Build the shared service handles on first use."""

    settings = get_settings()
    return PipelineServices(
        settings=settings,
        staging=StagingStore.from_settings(settings),
        publication=PublicationStore.from_settings(settings),
        dispatcher=CeleryDispatcher(settings.function_url),
        log_fetcher=ArchiveLogFetcher(timeout=settings.http_timeout_seconds),
        github_factory=lambda installation_id: GitHubService.for_installation(
            settings,
            installation_id,
        ),
    )


def classify_invocation(
    headers: Mapping[str, str],
    payload: Mapping[str, Any],
    settings: Settings,
) -> Invocation:
    """Decide from the continuation header whether this is a first submission or a resume."""

    task_name = headers.get(settings.continuation_header)
    if task_name:
        request_id = payload.get("request_id")
        if not request_id:
            raise MissingFieldError("request_id")
        return ContinuationInvocation(request_id=str(request_id), task_name=task_name)
    return InitialInvocation(submission=parse_submission(payload))


@app.exception_handler(ClientInputError)
def client_input_error_handler(request: Request, exc: ClientInputError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={exc.response_key: str(exc)},
    )


@app.exception_handler(DependencyError)
@app.exception_handler(NotFoundError)
def fatal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Invocation failed: %s", exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": str(exc)},
    )


@app.post("/", response_model=AckResponse, status_code=status.HTTP_200_OK)
def handle_screenshots(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    settings: Settings = Depends(get_settings),
    services: PipelineServices = Depends(get_services),
) -> AckResponse:
    """
    Stage a new submission, or resume a staged one when called by the deferred task.
    """

    invocation = classify_invocation(request.headers, payload, settings)

    if isinstance(invocation, ContinuationInvocation):
        logger.info(
            "Continuation received",
            extra={"request_id": invocation.request_id, "task_name": invocation.task_name},
        )
        resume_submission(invocation.request_id, services)
    else:
        stage_submission(invocation.submission, services)

    return AckResponse()


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    uvicorn.run(app, host="0.0.0.0", port=3000)


if __name__ == "__main__":
    main()
