import pytest

from estatico.config import (
    CssOptions,
    DEFAULT_TASKS,
    ImageversionsOptions,
    load_config,
    validate_config,
)
from estatico.errors import ConfigurationError


def test_defaults(clean_env, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = load_config()
    assert cfg.production is False
    assert set(cfg.tasks) == set(DEFAULT_TASKS)
    assert isinstance(cfg.tasks["css"], CssOptions)
    assert cfg.tasks["css"].dest == "build/assets/css"
    assert cfg.server.port == 9000
    assert cfg.server.livereload_port == 35729
    assert [w.task for w in cfg.watch] == ["html", "css", "js", "pngsprite", "iconfont"]


def test_yaml_file_and_env_overrides(clean_env, tmp_path, monkeypatch):
    path = tmp_path / "estatico.yml"
    path.write_text(
        "production: false\n"
        "server:\n"
        "  port: 8080\n"
        "tasks:\n"
        "  css:\n"
        "    includePaths: [vendor]\n"
        "  modernizr: null\n"
        "  print-css:\n"
        "    kind: css\n"
        "    src: [source/print/*.scss]\n"
    )
    monkeypatch.setenv("ESTATICO_CONFIG", str(path))
    monkeypatch.setenv("ESTATICO_PRODUCTION", "1")
    monkeypatch.setenv("ESTATICO_LIVERELOAD_PORT", "35000")

    cfg = load_config()

    assert cfg.production is True
    assert cfg.server.port == 8080
    assert cfg.server.livereload_port == 35000
    assert cfg.tasks["css"].include_paths == ["vendor"]
    assert "modernizr" not in cfg.tasks
    assert isinstance(cfg.tasks["print-css"], CssOptions)
    assert cfg.tasks["print-css"].src == ["source/print/*.scss"]


def test_cli_flag_wins(clean_env, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ESTATICO_PRODUCTION", "no")
    assert load_config(production=True).production is True
    assert load_config().production is False


def test_unknown_keys_rejected(clean_env):
    with pytest.raises(ConfigurationError, match="unknownOption"):
        validate_config({"tasks": {"css": {"unknownOption": 1}}})


def test_unknown_kind_rejected(clean_env):
    with pytest.raises(ConfigurationError):
        validate_config({"tasks": {"mystery": {"src": ["*.x"]}}})


def test_missing_file_is_configuration_error(clean_env, tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "missing.yml"))


def test_camel_case_aliases():
    options = ImageversionsOptions.model_validate(
        {
            "src": ["./test/imageversions/fixtures/"],
            "fileExtensions": "{jpg, png}",
            "configFileName": "imageversions.config.yml",
            "srcBase": "./test/imageversions/fixtures/",
            "dest": "./test/imageversions/results/",
        }
    )
    assert options.file_extensions == "{jpg, png}"
    assert options.src_base == "./test/imageversions/fixtures/"


def test_task_production_falls_back_to_project(clean_env):
    cfg = validate_config({"production": True, "tasks": {"js": {"production": False}}})
    assert cfg.is_production(cfg.tasks["css"]) is True
    assert cfg.is_production(cfg.tasks["js"]) is False


@pytest.mark.parametrize("name", ["ESTATICO_SERVER_PORT", "ESTATICO_LIVERELOAD_PORT"])
def test_malformed_port_is_configuration_error(clean_env, tmp_path, monkeypatch, name):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(name, "abc")
    with pytest.raises(ConfigurationError, match=name):
        load_config()
