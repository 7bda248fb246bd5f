"""Pydantic request/response models used by the screenshot service."""

from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

REQUIRED_SUBMISSION_FIELDS = ("pr_number", "repo", "run_id", "log_filename", "images")


class ImageEntry(BaseModel):
    """A screenshot carried inside a submission."""

    name: str = Field(..., description="Display label used in the PR comment.")
    content: str = Field(..., description="Base64-encoded PNG bytes.")
    sha: str = Field(
        ...,
        pattern=r"^[0-9a-f]{64}$",
        description="Claimed SHA-256 of the content; names the published blob.",
    )

    @property
    def png_name(self) -> str:
        return f"{self.sha}.png"


class SubmissionRequest(BaseModel):
    """Webhook payload posted by a CI run to start validation."""

    pr_number: int = Field(..., ge=1)
    repo: str = Field(..., pattern=r"^[^/\s]+/[^/\s]+$", description="owner/name")
    run_id: int = Field(..., ge=1)
    log_filename: str = Field(..., min_length=1)
    images: List[ImageEntry] = Field(..., min_length=1)
    installation_id: Optional[str] = Field(
        default=None,
        description="Overrides the configured GitHub App installation.",
    )

    @field_validator("installation_id", mode="before")
    @classmethod
    def _installation_as_text(cls, value):
        return None if value in (None, "") else str(value)

    @property
    def owner(self) -> str:
        return self.repo.split("/", 1)[0]

    @property
    def repo_name(self) -> str:
        return self.repo.split("/", 1)[1]


class InitialInvocation(BaseModel):
    kind: Literal["initial"] = "initial"
    submission: SubmissionRequest


class ContinuationInvocation(BaseModel):
    """Deferred re-invocation; carries only the staged request id."""

    kind: Literal["continuation"] = "continuation"
    request_id: str
    task_name: str


Invocation = Union[InitialInvocation, ContinuationInvocation]


class AckResponse(BaseModel):
    """Synchronous acknowledgement response."""

    status: str = "ok"
