import sys
from pathlib import Path

import pytest

# Ensure package root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from estatico.config import validate_config  # noqa: E402
from estatico.registry import TaskRegistry  # noqa: E402


@pytest.fixture
def project(tmp_path):
    """A project root with the standard source layout."""

    for directory in (
        "source/data",
        "source/layouts",
        "source/pages",
        "source/modules",
        "source/assets/css/templates",
        "source/assets/js",
        "source/assets/media",
        "source/assets/.tmp",
    ):
        (tmp_path / directory).mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture
def make_config(project):
    def _make(**data):
        data.setdefault("root", str(project))
        return validate_config(data)

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def registry(config):
    return TaskRegistry(config)


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "ESTATICO_CONFIG",
        "ESTATICO_ROOT",
        "ESTATICO_PRODUCTION",
        "ESTATICO_SERVER_PORT",
        "ESTATICO_LIVERELOAD_PORT",
    ):
        monkeypatch.delenv(name, raising=False)
