"""
Pytest configuration and shared fixtures for tvm tests.
"""

import logging

import pytest
import responses as responses_lib

from tvm.core.config import Settings
from tests.fixtures.releases import (
    BASE_URL,
    archive_name,
    build_archive,
    index_html,
    manifest_text,
    release_html,
    sha256_hex,
)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a fabricated catalog and temporary directories."""
    return Settings(
        base_url=BASE_URL,
        binary_name="terraform",
        data_dir=tmp_path / "data",
        cache_dir=tmp_path / "cache",
        os_name="linux",
        arch="amd64",
        max_workers=4,
        timeout=5,
        max_retries=1,
    )


@pytest.fixture
def mocked_responses():
    """Activate HTTP mocking for the duration of a test."""
    with responses_lib.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def publish_catalog(mocked_responses):
    """
    Serve a fabricated catalog.

    Returns a function ``publish(versions, with_checksums=True, corrupt=())``
    that registers the index, detail pages, archives and manifests and returns
    a dict of version -> archive bytes.
    """

    def publish(versions, with_checksums=True, corrupt=()):
        mocked_responses.add(
            responses_lib.GET, BASE_URL, body=index_html(versions), status=200
        )
        archives = {}
        for version in versions:
            content = build_archive({"terraform": f"#!/bin/sh\necho {version}\n".encode()})
            archives[version] = content
            name = archive_name(version)

            mocked_responses.add(
                responses_lib.GET,
                f"{BASE_URL}{version}/",
                body=release_html(version, with_checksums=with_checksums),
                status=200,
            )

            served = content
            if version in corrupt:
                served = content[:-1] + bytes([content[-1] ^ 0xFF])
            mocked_responses.add(
                responses_lib.GET, f"{BASE_URL}{version}/{name}", body=served, status=200
            )

            if with_checksums:
                manifest = manifest_text(
                    [
                        (sha256_hex(b"other"), archive_name(version, "darwin", "arm64")),
                        (sha256_hex(content), name),
                    ]
                )
                mocked_responses.add(
                    responses_lib.GET,
                    f"{BASE_URL}{version}/terraform_{version}_SHA256SUMS",
                    body=manifest,
                    status=200,
                )
        return archives

    return publish


@pytest.fixture(autouse=True)
def restore_root_logger_level():
    """Keep log level changes from leaking between tests."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
