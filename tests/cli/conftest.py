"""
Fixtures for CLI tests.
"""

from unittest.mock import patch

import pytest
import yaml

from tvm.core.config import ENV_OVERRIDES


@pytest.fixture(autouse=True)
def no_logging_reconfiguration():
    """Keep CLI runs from replacing the test logging handlers."""
    with patch("tvm.cli.parser.logging.basicConfig") as basic_config:
        yield basic_config


@pytest.fixture
def config_file(tmp_path, settings, monkeypatch):
    """Configuration file mirroring the shared settings fixture."""
    for variable in ENV_OVERRIDES:
        monkeypatch.delenv(variable, raising=False)

    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "base_url": settings.base_url,
                "binary_name": settings.binary_name,
                "data_dir": str(settings.data_dir),
                "cache_dir": str(settings.cache_dir),
                "os_name": settings.os_name,
                "arch": settings.arch,
                "max_workers": settings.max_workers,
                "timeout": settings.timeout,
                "max_retries": settings.max_retries,
            }
        )
    )
    return path


@pytest.fixture
def project(tmp_path):
    """Empty project directory."""
    path = tmp_path / "project"
    path.mkdir()
    return path
