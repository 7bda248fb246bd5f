"""
Staging and publication stores.

Staged submissions live in Redis under an opaque request id. Verified
screenshots are uploaded to a public Supabase Storage bucket and served from
a predictable URL.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional
from uuid import uuid4

import redis
from pydantic import ValidationError
from supabase import create_client

from config import Settings
from errors import DependencyError, StagedRecordNotFound
from schemas import SubmissionRequest
from utils import build_public_url

logger = logging.getLogger("screenshots.storage")


class StorageError(DependencyError):
    """Raised when a backing store rejects a read or write."""


class StagingStore:
    """Private holding area for unverified submissions."""

    def __init__(self, client: redis.Redis, key_prefix: str, ttl_seconds: int) -> None:
        self._client = client
        self._prefix = key_prefix
        self._ttl = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "StagingStore":
        client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        return cls(client, settings.staging_key_prefix, settings.staging_ttl_seconds)

    def _key(self, request_id: str) -> str:
        return f"{self._prefix}{request_id}"

    def put(self, submission: SubmissionRequest) -> str:
        """Persist ``submission`` under a fresh id and return the id."""

        request_id = uuid4().hex
        try:
            self._client.set(
                self._key(request_id),
                submission.model_dump_json(),
                ex=self._ttl,
                nx=True,
            )
        except redis.RedisError as exc:
            raise StorageError(f"Unable to stage submission: {exc}") from exc
        return request_id

    def get(self, request_id: str) -> SubmissionRequest:
        try:
            raw = self._client.get(self._key(request_id))
        except redis.RedisError as exc:
            raise StorageError(f"Unable to load staged submission {request_id}: {exc}") from exc
        if not raw:
            raise StagedRecordNotFound(request_id)
        try:
            return SubmissionRequest.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            raise StorageError(f"Staged submission {request_id} is corrupt: {exc}") from exc


class PublicationStore:
    """Public, content-addressed home of verified screenshots."""

    def __init__(
        self,
        client: Optional[Any],
        bucket: str,
        public_prefix: str,
        cache_control: str = "31536000",
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._client = client
        self._client_factory = client_factory
        self._bucket = bucket
        self._prefix = public_prefix
        self._cache_control = cache_control

    @classmethod
    def from_settings(cls, settings: Settings) -> "PublicationStore":
        """Build a store whose Supabase client is created on the first upload."""

        def connect() -> Any:
            if not settings.supabase_url or not settings.supabase_service_key:
                raise StorageError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required for publishing.")
            return create_client(settings.supabase_url, settings.supabase_service_key)

        return cls(
            None,
            settings.public_bucket,
            settings.public_url_prefix or "",
            settings.cache_control,
            client_factory=connect,
        )

    def _storage_client(self) -> Any:
        if self._client is None:
            if self._client_factory is None:
                raise StorageError("No storage client configured for publishing.")
            self._client = self._client_factory()
        return self._client

    def public_url(self, key: str) -> str:
        return build_public_url(self._prefix, self._bucket, key)

    def put(self, key: str, content: bytes, content_type: str = "image/png") -> str:
        """Upload ``content`` as ``key`` and return its public URL."""

        client = self._storage_client()
        try:
            client.storage.from_(self._bucket).upload(
                key,
                content,
                {
                    "content-type": content_type,
                    "cache-control": self._cache_control,
                    "upsert": "true",
                },
            )
        except Exception as exc:  # noqa: BLE001
            raise StorageError(f"Failed to upload {key} to {self._bucket}: {exc}") from exc

        url = self.public_url(key)
        logger.info("Published %s", key, extra={"url": url})
        return url
