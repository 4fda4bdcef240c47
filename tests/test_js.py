import re

import pytest

from estatico.config import JsOptions
from estatico.errors import ProcessError, TransformError
from estatico.pipeline import Pipeline
from estatico.tasks import js
from tests.utils.files import write

PATTERN = re.compile(JsOptions().requires_pattern)


def _bundle_project(project):
    write(project, "source/assets/vendor/jquery.js", "var jQuery = {};\n")
    write(
        project,
        "source/assets/js/helpers/log.js",
        "/**\n * @requires ../../vendor/jquery.js\n */\nvar log = function () {};\n",
    )
    write(
        project,
        "source/assets/js/main.js",
        "/**\n * @requires ../vendor/jquery.js\n * @requires helpers/log.js\n */\n"
        "var main = function () {\n    return 1;\n};\n",
    )
    write(project, "source/assets/js/head.js", "var head = true;\n")


def test_requires_resolved_dependencies_first(project):
    _bundle_project(project)

    order = js.resolve_requires(project / "source/assets/js/main.js", PATTERN)

    assert [p.name for p in order] == ["jquery.js", "log.js", "main.js"]


def test_missing_requirement_names_requirer(project):
    write(project, "source/assets/js/main.js", "/**\n * @requires missing.js\n */\n")

    with pytest.raises(TransformError, match="required by .*main.js"):
        js.resolve_requires(project / "source/assets/js/main.js", PATTERN)


def test_bundle_minified_in_production(project):
    _bundle_project(project)
    entry = project / "source/assets/js/main.js"

    plain = js.build_bundle(entry, PATTERN, production=False)
    minified = js.build_bundle(entry, PATTERN, production=True)

    assert plain.index("var jQuery") < plain.index("var log") < plain.index("var main")
    assert len(minified) < len(plain)
    assert "/**" not in minified
    assert "var main=function(){return 1;};" in minified


def _fake_linter(calls, fail_on=None):
    async def run_process(command, *, cwd=None, stdin=None):
        calls.append(list(command))
        if fail_on and any(fail_on in part for part in command):
            raise ProcessError(command, 2, f"{fail_on}: line 1, Missing semicolon.")
        return b""

    return run_process


def test_lint_only_changed_files(project, monkeypatch):
    write(project, "source/assets/js/a.js", "var a = 1;\n")
    write(project, "source/assets/js/b.js", "var b = 1;\n")
    calls = []
    monkeypatch.setattr(js, "run_process", _fake_linter(calls))
    cache = js.LintCache()
    files = Pipeline("js", ["source/assets/js/*.js"], root=project).select()

    js.lint(files, ["jshint"], project, cache=cache)
    js.lint(files, ["jshint"], project, cache=cache)
    write(project, "source/assets/js/b.js", "var b = 2;\n")
    files = Pipeline("js", ["source/assets/js/*.js"], root=project).select()
    js.lint(files, ["jshint"], project, cache=cache)

    assert calls == [
        ["jshint", "source/assets/js/a.js", "source/assets/js/b.js"],
        ["jshint", "source/assets/js/b.js"],
    ]


def test_lint_failure_aborts_before_bundles(project, registry, monkeypatch):
    _bundle_project(project)
    write(project, "source/assets/js/bad.js", "var x = 1\n")
    monkeypatch.setattr(js, "run_process", _fake_linter([], fail_on="bad.js"))
    registry.register("js", [], js.make_action("js", registry.config.tasks["js"]))

    with pytest.raises(TransformError, match="Missing semicolon") as info:
        registry.run_sync("js")

    assert info.value.stage == "lint"
    assert not (project / "build/assets/js/main.js").exists()


def test_missing_linter_propagates_process_error(project, monkeypatch):
    write(project, "source/assets/js/a.js", "var a = 1;\n")

    async def missing(command, *, cwd=None, stdin=None):
        raise ProcessError(command, 127, "No such file or directory")

    monkeypatch.setattr(js, "run_process", missing)
    files = Pipeline("js", ["source/assets/js/*.js"], root=project).select()

    with pytest.raises(ProcessError):
        js.lint(files, ["jshint"], project)


def test_action_writes_both_bundles(project, make_config, registry):
    _bundle_project(project)
    config = make_config(tasks={"js": {"lint": False}})
    registry.config = config
    registry.register("js", [], js.make_action("js", config.tasks["js"]))

    registry.run_sync("js")

    out = project / "build/assets/js"
    assert (out / "head.js").read_text() == "var head = true;\n"
    main = (out / "main.js").read_text()
    assert main.count("var jQuery") == 1
    assert main.endswith("var main = function () {\n    return 1;\n};\n")
