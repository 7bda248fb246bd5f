"""Thin GitHub REST client authenticated as a GitHub App installation."""

from __future__ import annotations

import base64
import binascii
import logging
import time
from typing import Any, Dict, Optional

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from config import Settings
from errors import DependencyError
from utils import is_http_url

logger = logging.getLogger("screenshots.github")

GITHUB_API_VERSION = "2022-11-28"
JWT_BACKDATE_SECONDS = 60
JWT_LIFETIME_SECONDS = 9 * 60


class GitHubServiceError(DependencyError):
    """Raised when GitHub credentials are missing or an API call fails."""


def load_private_key(value: str) -> str:
    """Return PEM text from either raw PEM or its base64 encoding."""

    candidate = value.strip()
    if candidate.startswith("-----BEGIN"):
        return candidate
    try:
        return base64.b64decode(candidate, validate=True).decode("utf-8").strip()
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise GitHubServiceError("PRIVATE_KEY is neither PEM nor base64-encoded PEM.") from exc


def create_app_jwt(app_id: str, private_key_pem: str, now: Optional[int] = None) -> str:
    """Sign the short-lived JWT that identifies the GitHub App itself."""

    issued_at = int(now if now is not None else time.time()) - JWT_BACKDATE_SECONDS
    claims = {
        "iat": issued_at,
        "exp": issued_at + JWT_BACKDATE_SECONDS + JWT_LIFETIME_SECONDS,
        "iss": str(app_id),
    }
    try:
        return jwt.encode(claims, private_key_pem, algorithm="RS256")
    except JOSEError as exc:
        raise GitHubServiceError(f"Unable to sign GitHub App JWT: {exc}") from exc


def _default_headers(token: str, scheme: str) -> Dict[str, str]:
    return {
        "Accept": "application/vnd.github+json",
        "Authorization": f"{scheme} {token}",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": "screenshot-verifier",
    }


def exchange_installation_token(
    settings: Settings,
    installation_id: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> str:
    """
    Trade the App credentials for an installation access token.

    A fresh token is requested on every call; nothing is cached.
    """

    installation = installation_id or settings.installation_id
    if not settings.app_id or not settings.private_key:
        raise GitHubServiceError("APP_ID and PRIVATE_KEY must be configured.")
    if not installation:
        raise GitHubServiceError("No GitHub App installation id configured.")

    app_jwt = create_app_jwt(settings.app_id, load_private_key(settings.private_key))
    owns_client = client is None
    http = client or httpx.Client(timeout=settings.http_timeout_seconds)
    try:
        response = http.post(
            f"{settings.github_base_url.rstrip('/')}/app/installations/{installation}/access_tokens",
            headers=_default_headers(app_jwt, "Bearer"),
        )
        response.raise_for_status()
        token = response.json().get("token")
    except (httpx.HTTPError, ValueError) as exc:
        raise GitHubServiceError(f"Installation token exchange failed: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    if not token:
        raise GitHubServiceError("Installation token response did not include a token.")
    logger.info("Obtained installation token", extra={"installation_id": installation})
    return token


class GitHubService:
    """High-level façade around the handful of GitHub endpoints the pipeline needs."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)
        self._client.headers.update(_default_headers(token, "token"))

    @classmethod
    def for_installation(
        cls,
        settings: Settings,
        installation_id: Optional[str] = None,
    ) -> "GitHubService":
        token = exchange_installation_token(settings, installation_id)
        return cls(token, settings.github_base_url, settings.http_timeout_seconds)

    def __enter__(self) -> "GitHubService":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def get_run_logs_url(self, owner: str, repo: str, run_id: int) -> str:
        """Return the short-lived download URL of a workflow run's log archive."""

        try:
            response = self._client.get(
                f"/repos/{owner}/{repo}/actions/runs/{run_id}/logs",
                follow_redirects=False,
            )
        except httpx.HTTPError as exc:
            raise GitHubServiceError(f"Unable to list run logs: {exc}") from exc

        location = response.headers.get("location")
        if response.status_code not in (301, 302, 303, 307, 308) or not location:
            raise GitHubServiceError(
                f"Run {run_id} logs unavailable (HTTP {response.status_code}).",
            )
        if not is_http_url(location):
            raise GitHubServiceError(f"Unexpected log archive location: {location!r}")
        return location

    def create_issue_comment(self, owner: str, repo: str, number: int, body: str) -> Dict[str, Any]:
        try:
            response = self._client.post(
                f"/repos/{owner}/{repo}/issues/{number}/comments",
                json={"body": body},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise GitHubServiceError(f"Unable to comment on #{number}: {exc}") from exc

        payload = response.json()
        logger.info(
            "Posted comment on %s/%s#%s",
            owner,
            repo,
            number,
            extra={"comment_url": payload.get("html_url")},
        )
        return payload
