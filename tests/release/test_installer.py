"""
Unit tests for the release installer.

Tests cover:
- Selecting and installing the newest matching release
- Checksum outcomes (verified, missing manifest, unlisted, mismatch)
- Optional manifest signature checking
- Cached installs and forced reinstalls
- Atomic staging of the install directory
"""

import dataclasses
import stat
import sys
from unittest.mock import patch

import pytest
import responses
from packaging.version import Version

from tests.fixtures.releases import (
    BASE_URL,
    archive_name,
    build_archive,
    manifest_text,
    sha256_hex,
)
from tvm.core.exceptions import (
    ArchiveMemberNotFoundError,
    ChecksumError,
    DownloadError,
    InstallError,
    SignatureError,
)
from tvm.core.verification import ChecksumStatus
from tvm.core.versioning import Constraint
from tvm.release.catalog import CatalogScraper, ReleaseCandidate
from tvm.release.installer import ReleaseInstaller


def candidate_for(version, with_checksum=True, with_signature=False):
    prefix = f"{BASE_URL}{version}/"
    return ReleaseCandidate(
        version=Version(version),
        url=prefix + archive_name(version),
        checksum_url=prefix + f"terraform_{version}_SHA256SUMS" if with_checksum else None,
        checksum_signature_url=(
            prefix + f"terraform_{version}_SHA256SUMS.sig" if with_signature else None
        ),
    )


def serve_release(rsps, version, content, manifest=None, signature=None):
    candidate = candidate_for(
        version, with_checksum=manifest is not None, with_signature=signature is not None
    )
    rsps.add(responses.GET, candidate.url, body=content, status=200)
    if manifest is not None:
        rsps.add(responses.GET, candidate.checksum_url, body=manifest, status=200)
    if signature is not None:
        rsps.add(responses.GET, candidate.checksum_signature_url, body=signature, status=200)
    return candidate


@pytest.fixture
def installer(settings):
    return ReleaseInstaller(settings)


@pytest.fixture
def archive():
    return build_archive({"terraform": b"#!/bin/sh\necho terraform\n", "LICENSE.txt": b"MPL"})


def assert_nothing_left(settings):
    assert not settings.versions_dir.exists() or list(settings.versions_dir.iterdir()) == []
    assert not settings.downloads_dir.exists() or list(settings.downloads_dir.iterdir()) == []
    assert not settings.staging_dir.exists() or list(settings.staging_dir.iterdir()) == []


class TestInstallMatching:
    """End-to-end install against a fabricated catalog."""

    def test_installs_newest_matching_version(self, settings, installer, publish_catalog):
        publish_catalog(["0.12.0", "0.13.0", "1.0.0"])
        candidates = CatalogScraper(settings).discover()

        result = installer.install_matching(
            candidates, Constraint.parse(">= 0.13.0, < 1.0.0")
        )

        assert result.version == Version("0.13.0")
        assert result.checksum_status is ChecksumStatus.VERIFIED
        assert result.was_cached is False
        assert result.binary_path == settings.versions_dir / "0.13.0" / "terraform"
        assert result.binary_path.read_bytes() == b"#!/bin/sh\necho 0.13.0\n"
        assert sorted(p.name for p in settings.versions_dir.iterdir()) == ["0.13.0"]
        assert list(settings.downloads_dir.iterdir()) == []

    def test_only_the_named_binary_is_extracted(self, settings, installer, mocked_responses):
        content = build_archive({"terraform": b"bin", "LICENSE.txt": b"MPL"})
        manifest = manifest_text([(sha256_hex(content), archive_name("1.0.0"))])
        candidate = serve_release(mocked_responses, "1.0.0", content, manifest)

        result = installer.install(candidate)

        assert [p.name for p in result.binary_path.parent.iterdir()] == ["terraform"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_binary_is_executable(self, installer, mocked_responses, archive):
        manifest = manifest_text([(sha256_hex(archive), archive_name("1.0.0"))])
        candidate = serve_release(mocked_responses, "1.0.0", archive, manifest)

        result = installer.install(candidate)

        assert stat.S_IMODE(result.binary_path.stat().st_mode) == 0o755

    def test_no_match(self, settings, installer, publish_catalog):
        publish_catalog(["0.12.0", "0.13.0"])
        candidates = CatalogScraper(settings).discover()

        assert installer.install_matching(candidates, Constraint.parse(">= 2.0")) is None
        assert_nothing_left(settings)

    def test_checksum_failure_does_not_fall_back(self, settings, installer, publish_catalog):
        publish_catalog(["0.13.0", "1.0.0"], corrupt=["1.0.0"])
        candidates = CatalogScraper(settings).discover()

        with pytest.raises(ChecksumError, match="Checksum verification failed"):
            installer.install_matching(candidates, Constraint.parse(">= 0.13.0"))

        assert_nothing_left(settings)


class TestChecksums:
    """Test checksum outcomes of a single install."""

    def test_unrelated_records_before_target(self, installer, mocked_responses, archive):
        manifest = manifest_text(
            [
                (sha256_hex(b"a"), archive_name("1.0.0", "darwin", "amd64")),
                (sha256_hex(b"b"), archive_name("1.0.0", "windows", "amd64")),
                (sha256_hex(archive), archive_name("1.0.0")),
            ]
        )
        candidate = serve_release(mocked_responses, "1.0.0", archive, manifest)

        assert installer.install(candidate).checksum_status is ChecksumStatus.VERIFIED

    def test_no_manifest_installs_with_warning(self, installer, mocked_responses, archive, caplog):
        candidate = serve_release(mocked_responses, "1.0.0", archive)

        result = installer.install(candidate)

        assert result.checksum_status is ChecksumStatus.NO_MANIFEST
        assert result.binary_path.is_file()
        assert "No checksum found" in caplog.text

    def test_unlisted_archive_installs_with_warning(
        self, installer, mocked_responses, archive, caplog
    ):
        manifest = manifest_text([(sha256_hex(archive), archive_name("1.0.0", "darwin", "arm64"))])
        candidate = serve_release(mocked_responses, "1.0.0", archive, manifest)

        result = installer.install(candidate)

        assert result.checksum_status is ChecksumStatus.NOT_LISTED
        assert result.binary_path.is_file()
        assert "No checksum found" in caplog.text

    def test_mismatch_removes_archive(self, settings, installer, mocked_responses, archive):
        manifest = manifest_text([(sha256_hex(b"something else"), archive_name("1.0.0"))])
        candidate = serve_release(mocked_responses, "1.0.0", archive, manifest)

        with pytest.raises(ChecksumError):
            installer.install(candidate)

        assert not installer.is_installed(Version("1.0.0"))
        assert_nothing_left(settings)

    def test_manifest_error_status(self, settings, installer, mocked_responses, archive):
        candidate = candidate_for("1.0.0")
        mocked_responses.add(responses.GET, candidate.url, body=archive, status=200)
        mocked_responses.add(responses.GET, candidate.checksum_url, status=404)

        with pytest.raises(DownloadError):
            installer.install(candidate)

        assert_nothing_left(settings)

    def test_archive_error_status(self, settings, installer, mocked_responses):
        candidate = candidate_for("1.0.0")
        mocked_responses.add(responses.GET, candidate.url, status=404)

        with pytest.raises(DownloadError):
            installer.install(candidate)

        assert_nothing_left(settings)


class TestSignatures:
    """Test optional manifest signature checking."""

    @pytest.fixture
    def signed_installer(self, settings):
        return ReleaseInstaller(dataclasses.replace(settings, verify_signature=True))

    def test_valid_signature(self, signed_installer, mocked_responses, archive):
        manifest = manifest_text([(sha256_hex(archive), archive_name("1.0.0"))])
        candidate = serve_release(mocked_responses, "1.0.0", archive, manifest, signature=b"sig")

        with patch(
            "tvm.release.installer.verify_gpg_signature", return_value=(True, "ok")
        ) as verify:
            result = signed_installer.install(candidate)

        assert result.checksum_status is ChecksumStatus.VERIFIED
        verify.assert_called_once()

    def test_bad_signature(self, signed_installer, mocked_responses, archive):
        manifest = manifest_text([(sha256_hex(archive), archive_name("1.0.0"))])
        candidate = serve_release(mocked_responses, "1.0.0", archive, manifest, signature=b"sig")

        with patch(
            "tvm.release.installer.verify_gpg_signature",
            return_value=(False, "GPG verification failed: BAD signature"),
        ):
            with pytest.raises(SignatureError, match="BAD signature"):
                signed_installer.install(candidate)

        assert not signed_installer.is_installed(Version("1.0.0"))

    def test_missing_signature_warns(self, signed_installer, mocked_responses, archive, caplog):
        manifest = manifest_text([(sha256_hex(archive), archive_name("1.0.0"))])
        candidate = serve_release(mocked_responses, "1.0.0", archive, manifest)

        with patch("tvm.release.installer.verify_gpg_signature") as verify:
            result = signed_installer.install(candidate)

        assert result.checksum_status is ChecksumStatus.VERIFIED
        verify.assert_not_called()
        assert "No checksum signature found" in caplog.text


class TestInstall:
    """Test cache handling and staging."""

    def test_already_installed_skips_download(self, settings, installer):
        binary = settings.versions_dir / "1.0.0" / "terraform"
        binary.parent.mkdir(parents=True)
        binary.write_bytes(b"existing")

        result = installer.install(candidate_for("1.0.0"))

        assert result.was_cached is True
        assert result.checksum_status is None
        assert binary.read_bytes() == b"existing"

    def test_directory_without_binary_is_reinstalled(
        self, settings, installer, mocked_responses, archive
    ):
        stale = settings.versions_dir / "1.0.0"
        stale.mkdir(parents=True)
        (stale / "leftover").write_text("x")
        manifest = manifest_text([(sha256_hex(archive), archive_name("1.0.0"))])
        candidate = serve_release(mocked_responses, "1.0.0", archive, manifest)

        result = installer.install(candidate)

        assert result.was_cached is False
        assert sorted(p.name for p in stale.iterdir()) == ["terraform"]

    def test_force_reinstalls(self, settings, installer, mocked_responses, archive):
        binary = settings.versions_dir / "1.0.0" / "terraform"
        binary.parent.mkdir(parents=True)
        binary.write_bytes(b"old")
        manifest = manifest_text([(sha256_hex(archive), archive_name("1.0.0"))])
        candidate = serve_release(mocked_responses, "1.0.0", archive, manifest)

        result = installer.install(candidate, force=True)

        assert result.was_cached is False
        assert binary.read_bytes() == b"#!/bin/sh\necho terraform\n"

    def test_missing_binary_in_archive(self, settings, installer, mocked_responses):
        content = build_archive({"README.md": b"nothing here"})
        manifest = manifest_text([(sha256_hex(content), archive_name("1.0.0"))])
        candidate = serve_release(mocked_responses, "1.0.0", content, manifest)

        with pytest.raises(ArchiveMemberNotFoundError):
            installer.install(candidate)

        assert_nothing_left(settings)

    def test_version_dir_uses_normalized_version(self, settings, installer):
        assert installer.version_dir(Version("1.0.0-rc1")) == settings.versions_dir / "1.0.0rc1"

    def test_candidate_without_url(self, installer):
        with pytest.raises(InstallError, match="needs a version and a download URL"):
            installer.install(ReleaseCandidate(version=Version("1.0.0"), url=""))

    def test_candidate_without_version(self, installer):
        with pytest.raises(InstallError):
            installer.install(ReleaseCandidate(version=None, url=f"{BASE_URL}x.zip"))
