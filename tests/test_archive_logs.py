"""
Log archive extraction tests.

Archives are real zip files built in memory; downloads go through an
``httpx.MockTransport`` so nothing leaves the process.
"""

import io
import zipfile

import httpx
import pytest

from conftest import ARCHIVE_URL, build_zip
from errors import DependencyError
from services.archive_logs import (
    ArchiveLogFetcher,
    collect_matching_text,
    iter_archive_entries,
)


def _fetcher_for(body: bytes, status_code: int = 200) -> ArchiveLogFetcher:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == ARCHIVE_URL
        return httpx.Response(status_code, content=body)

    return ArchiveLogFetcher(client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestIterArchiveEntries:
    def test_skips_directory_entries(self):
        archive = build_zip([
            ("build/", None),
            ("build/1_setup.txt", "setup"),
            ("test/", None),
        ])

        names = [entry.name for entry in iter_archive_entries(io.BytesIO(archive))]

        assert names == ["build/1_setup.txt"]

    def test_yields_readable_streams_in_archive_order(self):
        archive = build_zip([("a.txt", "first"), ("b.txt", "second")])

        contents = [entry.stream.read() for entry in iter_archive_entries(io.BytesIO(archive))]

        assert contents == [b"first", b"second"]

    def test_invalid_archive_is_a_dependency_error(self):
        with pytest.raises(DependencyError):
            list(iter_archive_entries(io.BytesIO(b"this is not a zip")))


class TestCollectMatchingText:
    def test_returns_only_the_matching_entry(self):
        archive = build_zip([
            ("build/1_Set up job.txt", "set up"),
            ("build/4_screenshot-tests.txt", "hash deadbeef"),
            ("build/5_Post checkout.txt", "cleanup"),
        ])

        text = collect_matching_text(io.BytesIO(archive), "screenshot-tests")

        assert text == "hash deadbeef"

    def test_no_matching_entry_returns_empty_text(self):
        archive = build_zip([("build/1_setup.txt", "setup"), ("build/2_lint.txt", "lint")])

        assert collect_matching_text(io.BytesIO(archive), "screenshot-tests") == ""

    def test_multiple_matches_concatenate_in_archive_order(self):
        archive = build_zip([
            ("linux/3_screenshot-tests.txt", "linux-part\n"),
            ("other/1_setup.txt", "ignored\n"),
            ("mac/3_screenshot-tests.txt", "mac-part\n"),
        ])

        text = collect_matching_text(io.BytesIO(archive), "screenshot-tests")

        assert text == "linux-part\nmac-part\n"

    def test_directory_named_like_target_is_not_data(self):
        archive = build_zip([("screenshot-tests/", None), ("screenshot-tests/log.txt", "inner")])

        assert collect_matching_text(io.BytesIO(archive), "screenshot-tests") == "inner"

    def test_undecodable_bytes_are_replaced(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as bundle:
            bundle.writestr("screenshot-tests.txt", b"ok \xff end")

        text = collect_matching_text(io.BytesIO(buffer.getvalue()), "screenshot-tests")

        assert text.startswith("ok ")
        assert text.endswith(" end")

    def test_entry_failing_its_checksum_is_a_dependency_error(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as bundle:
            bundle.writestr("job/screenshot-tests.txt", "hash deadbeef")
        corrupted = buffer.getvalue().replace(b"deadbeef", b"deadbeeX")

        with pytest.raises(DependencyError) as exc_info:
            collect_matching_text(io.BytesIO(corrupted), "screenshot-tests")

        assert "job/screenshot-tests.txt" in str(exc_info.value)


class TestArchiveLogFetcher:
    def test_downloads_and_extracts(self):
        archive = build_zip([("job/2_screenshot-tests.txt", "sha 0123abcd"), ("job/", None)])
        fetcher = _fetcher_for(archive)

        assert fetcher.fetch_log_text(ARCHIVE_URL, "screenshot-tests") == "sha 0123abcd"

    def test_http_failure_is_a_dependency_error(self):
        fetcher = _fetcher_for(b"gone", status_code=410)

        with pytest.raises(DependencyError):
            fetcher.fetch_log_text(ARCHIVE_URL, "screenshot-tests")
