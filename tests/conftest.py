"""
Shared fixtures for the screenshot verifier tests.

Every external collaborator (Redis, Supabase, GitHub, Celery) is replaced
with an in-memory double. No network calls are made.
"""

import base64
import io
import zipfile
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from config import Settings
from services.pipeline import PipelineServices
from services.storage import PublicationStore, StagingStore
from services.verifier import fingerprint

PUBLIC_PREFIX = "https://storage.example.com/storage/v1/object/public"
ARCHIVE_URL = "https://pipelines.example.com/logs/run-42.zip"


class FakeRedis:
    """Dict-backed stand-in for the two redis-py calls the staging store makes."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, Optional[int]] = {}

    def set(self, key, value, ex=None, nx=False):
        if nx and key in self.data:
            return None
        self.data[key] = value
        self.expiry[key] = ex
        return True

    def get(self, key):
        return self.data.get(key)


class RecordingDispatcher:
    def __init__(self) -> None:
        self.scheduled: List[Tuple[str, datetime]] = []

    def schedule(self, request_id: str, not_before: datetime) -> str:
        self.scheduled.append((request_id, not_before))
        return f"task-{len(self.scheduled)}"


class StubLogFetcher:
    def __init__(self, corpus: str = "") -> None:
        self.corpus = corpus
        self.calls: List[Tuple[str, str]] = []

    def fetch_log_text(self, url: str, target_name: str) -> str:
        self.calls.append((url, target_name))
        return self.corpus


def make_image(name: str, payload: bytes) -> dict:
    return {
        "name": name,
        "content": base64.b64encode(payload).decode(),
        "sha": fingerprint(payload),
    }


def make_submission(images: Optional[List[dict]] = None, **overrides) -> dict:
    payload = {
        "pr_number": 17,
        "repo": "octo-org/widgets",
        "run_id": 4242,
        "log_filename": "screenshot-tests",
        "images": images if images is not None else [make_image("Home page", b"\x89PNG home")],
    }
    payload.update(overrides)
    return payload


def build_zip(entries: List[Tuple[str, Optional[str]]]) -> bytes:
    """Build a zip in memory; ``None`` content marks a directory entry."""

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
        for name, content in entries:
            if content is None:
                bundle.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), b"")
            else:
                bundle.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        app_id="12345",
        private_key="unused",
        installation_id="999",
        function_url="https://verifier.example.com/",
        continuation_delay_seconds=30,
        public_base_url=PUBLIC_PREFIX,
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def supabase_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def github() -> MagicMock:
    client = MagicMock()
    client.__enter__.return_value = client
    client.__exit__.return_value = False
    client.get_run_logs_url.return_value = ARCHIVE_URL
    client.create_issue_comment.return_value = {"id": 1, "html_url": "https://github.com/c/1"}
    return client


@pytest.fixture
def log_fetcher() -> StubLogFetcher:
    return StubLogFetcher()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def services(settings, fake_redis, supabase_client, github, log_fetcher, dispatcher) -> PipelineServices:
    return PipelineServices(
        settings=settings,
        staging=StagingStore(fake_redis, settings.staging_key_prefix, settings.staging_ttl_seconds),
        publication=PublicationStore(supabase_client, settings.public_bucket, PUBLIC_PREFIX),
        dispatcher=dispatcher,
        log_fetcher=log_fetcher,
        github_factory=lambda installation_id: github,
    )
