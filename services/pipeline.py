"""Two-phase screenshot pipeline: stage and defer, then verify, publish and comment."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from pydantic import ValidationError

from config import Settings
from errors import ClientInputError, MissingFieldError, VerificationError
from schemas import REQUIRED_SUBMISSION_FIELDS, SubmissionRequest
from services.archive_logs import ArchiveLogFetcher
from services.github_service import GitHubService
from services.storage import PublicationStore, StagingStore
from services.verifier import appears_in, fingerprint
from utils import decode_image_content, render_image_section

logger = logging.getLogger("screenshots.pipeline")


class DeferredDispatcher(Protocol):
    def schedule(self, request_id: str, not_before: datetime) -> str:
        """Arrange for the continuation of ``request_id`` and return the task id."""


@dataclass
class PipelineServices:
    """Handles the orchestrator needs; built once per process and injected."""

    settings: Settings
    staging: StagingStore
    publication: PublicationStore
    dispatcher: DeferredDispatcher
    log_fetcher: ArchiveLogFetcher
    github_factory: Callable[[Optional[str]], GitHubService]


@dataclass
class ContinuationResult:
    request_id: str
    published: List[str] = field(default_factory=list)
    comment: Dict[str, Any] = field(default_factory=dict)


def parse_submission(payload: Mapping[str, Any]) -> SubmissionRequest:
    """
    Check that every required field is present, then build the request model.

    ``None`` and empty strings count as absent.
    """

    for name in REQUIRED_SUBMISSION_FIELDS:
        value = payload.get(name)
        if value is None or value == "":
            raise MissingFieldError(name)

    try:
        return SubmissionRequest.model_validate(dict(payload))
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ClientInputError(f"invalid field {location}: {first.get('msg')}") from exc


def stage_submission(submission: SubmissionRequest, services: PipelineServices) -> str:
    """Stage the submission and schedule its continuation; no image checks happen here."""

    request_id = services.staging.put(submission)
    not_before = datetime.now(timezone.utc) + timedelta(
        seconds=services.settings.continuation_delay_seconds,
    )
    task_id = services.dispatcher.schedule(request_id, not_before)

    logger.info(
        "Submission staged",
        extra={
            "request_id": request_id,
            "task_id": task_id,
            "repo": submission.repo,
            "pr_number": submission.pr_number,
            "images": len(submission.images),
        },
    )
    return request_id


def resume_submission(request_id: str, services: PipelineServices) -> ContinuationResult:
    """
    Verify every staged screenshot against the run logs, publish it, then comment.

    Images are handled in order. The first image whose fingerprint is missing
    from the logs aborts the batch; images published before it stay public.
    Running the same continuation twice publishes again and posts a second
    comment.
    """

    submission = services.staging.get(request_id)
    logger.info(
        "Continuation started",
        extra={"request_id": request_id, "repo": submission.repo, "run_id": submission.run_id},
    )

    result = ContinuationResult(request_id=request_id)
    with services.github_factory(submission.installation_id) as github:
        archive_url = github.get_run_logs_url(
            submission.owner,
            submission.repo_name,
            submission.run_id,
        )
        corpus = services.log_fetcher.fetch_log_text(archive_url, submission.log_filename)

        sections: List[str] = []
        for image in submission.images:
            try:
                content = decode_image_content(image.content)
            except ValueError as exc:
                raise ClientInputError(f"image {image.name!r}: {exc}") from exc

            digest = fingerprint(content)
            if not appears_in(digest, corpus):
                logger.warning(
                    "Screenshot fingerprint not found in run logs",
                    extra={
                        "request_id": request_id,
                        "image": image.name,
                        "fingerprint": digest,
                        "published_before_failure": len(result.published),
                    },
                )
                raise VerificationError(image.name, digest)
            if image.sha != digest:
                raise ClientInputError(
                    f"image {image.name!r}: claimed sha does not match its content",
                )

            url = services.publication.put(image.png_name, content)
            result.published.append(url)
            sections.append(render_image_section(image.name, url))

        result.comment = github.create_issue_comment(
            submission.owner,
            submission.repo_name,
            submission.pr_number,
            "\n".join(sections),
        )

    logger.info(
        "Continuation finished",
        extra={"request_id": request_id, "published": len(result.published)},
    )
    return result
