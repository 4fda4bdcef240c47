import json

import pytest

from estatico.errors import ProcessError
from estatico.pipeline import SourceFile
from estatico.tasks import lodash, modernizr
from tests.utils.files import write


def _file(tmp_path, name, text):
    return SourceFile(path=tmp_path / name, base=tmp_path, contents=text.encode())


def test_detect_tests(tmp_path):
    files = [
        _file(tmp_path, "main.js", "if (Modernizr.touchevents && Modernizr.history) {}"),
        _file(tmp_path, "main.scss", ".no-flexbox .a {} .svg .b {} .svgfilters .c {}"),
    ]

    found = modernizr.detect_tests(files, ["flexbox", "svg", "touchevents", "history"])

    assert found == ["flexbox", "history", "svg", "touchevents"]


def test_modernizr_runs_builder(project, make_config, registry, monkeypatch):
    config = make_config(production=True)
    registry.config = config
    write(project, "source/assets/js/main.js", "Modernizr.flexbox;")
    calls = []

    async def fake_run_process(command, *, cwd=None, stdin=None):
        calls.append((list(command), cwd))
        return b""

    monkeypatch.setattr(modernizr, "run_process", fake_run_process)
    registry.register("modernizr", [], modernizr.make_action("modernizr", config.tasks["modernizr"]))

    registry.run_sync("modernizr")

    tmp = project / "source/assets/.tmp"
    settings = json.loads((tmp / "modernizr-config.json").read_text())
    assert settings["feature-detects"] == ["flexbox"]
    command, cwd = calls[0]
    assert command == [
        "modernizr",
        "-c",
        str(tmp / "modernizr-config.json"),
        "-d",
        str(tmp / "modernizr.js"),
        "-u",
    ]
    assert cwd == str(project)


def test_lodash_command(config):
    assert lodash.lodash_command(config.tasks["lodash"]) == [
        "node_modules/.bin/lodash",
        "include=debounce",
        "-o",
        "source/assets/.tmp/lodash.js",
        "-d",
    ]


def test_lodash_failure_propagates(project, registry, monkeypatch):
    async def failing(command, *, cwd=None, stdin=None):
        raise ProcessError(command, 1, "lodash-cli exploded")

    monkeypatch.setattr(lodash, "run_process", failing)
    registry.register("lodash", [], lodash.make_action("lodash", registry.config.tasks["lodash"]))

    with pytest.raises(ProcessError, match="exploded"):
        registry.run_sync("lodash")
