"""Configuration loading and validation.

Configuration comes from a YAML file (``estatico.yml`` in the working
directory, ``--config`` or the ``ESTATICO_CONFIG`` env var) with environment
overrides applied on top. Every task entry is validated against the option
model of its kind; unknown keys are rejected.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError

DEFAULT_CONFIG_FILE = "estatico.yml"
SCRATCH_DIR = "source/assets/.tmp"


class _Options(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class TaskOptions(_Options):
    """Options shared by every transform task."""

    src: List[str] = Field(default_factory=list)
    dest: str = "build"
    production: Optional[bool] = None


class HtmlOptions(TaskOptions):
    kind: Literal["html"] = "html"
    src: List[str] = Field(default_factory=lambda: ["source/{,pages/}*.html"])
    dest: str = "build"
    data_dir: str = "source/data"
    partials: List[str] = Field(
        default_factory=lambda: ["source/layouts/*.html", "source/modules/**/*.html"]
    )
    partials_base: str = "source"


class CssOptions(TaskOptions):
    kind: Literal["css"] = "css"
    src: List[str] = Field(
        default_factory=lambda: ["source/assets/css/*.scss", "!source/assets/css/_*.scss"]
    )
    dest: str = "build/assets/css"
    include_paths: List[str] = Field(
        default_factory=lambda: ["source/assets/vendor", "source/modules", SCRATCH_DIR]
    )
    autoprefixer: Optional[List[str]] = None


class JsOptions(TaskOptions):
    kind: Literal["js"] = "js"
    src: List[str] = Field(
        default_factory=lambda: [
            "source/assets/js/*.js",
            "source/modules/**/*.js",
            "!source/assets/vendor/*.js",
        ]
    )
    dest: str = "build/assets/js"
    lint: bool = True
    lint_command: List[str] = Field(
        default_factory=lambda: ["jshint", "--config", ".jshintrc"]
    )
    bundles: List[str] = Field(
        default_factory=lambda: ["source/assets/js/head.js", "source/assets/js/main.js"]
    )
    requires_pattern: str = r"\* @requires [\s-]*(.*?\.js)"


class JsTemplatesOptions(TaskOptions):
    kind: Literal["js-templates"] = "js-templates"
    src: List[str] = Field(default_factory=lambda: ["source/modules/**/*.html"])
    dest: str = SCRATCH_DIR
    filename: str = "templates.js"
    namespace: str = "Unic.templates"


class ModernizrOptions(TaskOptions):
    kind: Literal["modernizr"] = "modernizr"
    src: List[str] = Field(
        default_factory=lambda: [
            "source/assets/css/*.scss",
            "source/modules/**/*.scss",
            "source/assets/js/*.js",
            "source/modules/**/*.js",
            "!source/assets/vendor/*.js",
        ]
    )
    dest: str = SCRATCH_DIR
    filename: str = "modernizr.js"
    command: List[str] = Field(default_factory=lambda: ["modernizr"])
    tests: List[str] = Field(
        default_factory=lambda: [
            "csstransforms",
            "csstransitions",
            "flexbox",
            "svg",
            "touchevents",
            "localstorage",
            "history",
        ]
    )


class LodashOptions(TaskOptions):
    kind: Literal["lodash"] = "lodash"
    dest: str = SCRATCH_DIR
    filename: str = "lodash.js"
    modules: List[str] = Field(default_factory=lambda: ["debounce"])
    command: List[str] = Field(default_factory=lambda: ["node_modules/.bin/lodash"])


class IconfontOptions(TaskOptions):
    kind: Literal["iconfont"] = "iconfont"
    src: List[str] = Field(
        default_factory=lambda: [
            "source/assets/media/iconfont/*.svg",
            "source/modules/**/iconfont/*.svg",
        ]
    )
    dest: str = "build/assets/fonts/icons"
    font_name: str = "Icons"
    font_path: str = "../fonts/icons/"
    template: str = "source/assets/css/templates/icons.scss"
    stylesheet_dest: str = SCRATCH_DIR
    start_codepoint: int = 0xE001
    units_per_em: int = 1000
    formats: List[Literal["otf", "woff"]] = Field(default_factory=lambda: ["otf", "woff"])


class PngspriteOptions(TaskOptions):
    kind: Literal["pngsprite"] = "pngsprite"
    src: List[str] = Field(
        default_factory=lambda: [
            "source/assets/media/pngsprite/*.png",
            "source/modules/**/pngsprite/*.png",
        ]
    )
    dest: str = "build/assets/media"
    img_name: str = "sprite.png"
    css_name: str = "sprite.scss"
    img_path: str = "../media/sprite.png"
    template: str = "source/assets/css/templates/sprite.scss"
    stylesheet_dest: str = SCRATCH_DIR
    padding: int = Field(default=0, ge=0)


class MediaOptions(TaskOptions):
    kind: Literal["media"] = "media"
    src: List[str] = Field(
        default_factory=lambda: [
            "source/assets/fonts/{,**/}*",
            "source/assets/media/*.*",
            "source/tmp/media/*",
        ]
    )
    dest: str = "build"
    base: str = "source"


class CleanOptions(TaskOptions):
    kind: Literal["clean"] = "clean"
    src: List[str] = Field(default_factory=lambda: ["build"])


class ImageversionsOptions(TaskOptions):
    kind: Literal["imageversions"] = "imageversions"
    src: List[str] = Field(default_factory=lambda: ["source/assets/media/imageversions/"])
    src_base: str = "source/assets/media/imageversions/"
    dest: str = "build/assets/media/imageversions"
    file_extensions: str = "{jpg,png}"
    config_file_name: str = "imageversions.config.yml"


AnyTaskOptions = Annotated[
    Union[
        HtmlOptions,
        CssOptions,
        JsOptions,
        JsTemplatesOptions,
        ModernizrOptions,
        LodashOptions,
        IconfontOptions,
        PngspriteOptions,
        MediaOptions,
        CleanOptions,
        ImageversionsOptions,
    ],
    Field(discriminator="kind"),
]

# Task names registered when the configuration does not mention them.
DEFAULT_TASKS = (
    "html",
    "css",
    "js",
    "js-templates",
    "modernizr",
    "lodash",
    "iconfont",
    "pngsprite",
    "media",
    "clean",
    "imageversions",
)


class WatchSubscription(_Options):
    src: List[str]
    task: str


def _default_watch() -> List[WatchSubscription]:
    return [
        WatchSubscription(
            src=["source/{,*/}*.html", "source/data/*.json", "source/modules/**/*.html"],
            task="html",
        ),
        WatchSubscription(
            src=[
                "source/assets/css/*.scss",
                "source/assets/.tmp/*.scss",
                "source/modules/**/*.scss",
            ],
            task="css",
        ),
        WatchSubscription(
            src=[
                "source/assets/js/{,**/}*.js",
                "source/assets/.tmp/*.js",
                "source/modules/**/*.js",
            ],
            task="js",
        ),
        WatchSubscription(
            src=["source/assets/media/pngsprite/*.png", "source/modules/**/pngsprite/*.png"],
            task="pngsprite",
        ),
        WatchSubscription(
            src=["source/assets/media/iconfont/*.svg", "source/modules/**/iconfont/*.svg"],
            task="iconfont",
        ),
    ]


class ServerOptions(_Options):
    host: str = "localhost"
    port: int = 9000
    livereload_port: int = 35729
    open_browser: bool = True


class ProjectConfig(_Options):
    """Validated project configuration."""

    root: Path = Path(".")
    build: str = "build"
    production: bool = False
    server: ServerOptions = Field(default_factory=ServerOptions)
    tasks: Dict[str, AnyTaskOptions] = Field(default_factory=dict)
    watch: List[WatchSubscription] = Field(default_factory=_default_watch)

    @model_validator(mode="before")
    @classmethod
    def _fill_tasks(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        given = data.get("tasks") or {}
        if not isinstance(given, dict):
            raise ValueError("'tasks' must be a mapping of task name to options")
        tasks: Dict[str, Any] = {name: {"kind": name} for name in DEFAULT_TASKS}
        for name, options in given.items():
            if options is None:
                tasks.pop(name, None)
                continue
            if not isinstance(options, dict):
                raise ValueError(f"options for task '{name}' must be a mapping")
            options = dict(options)
            options.setdefault("kind", name)
            tasks[name] = options
        data["tasks"] = tasks
        return data

    def is_production(self, options: TaskOptions) -> bool:
        """Return the effective production flag for ``options``."""

        if options.production is not None:
            return options.production
        return self.production

    def path(self, relative: str | Path) -> Path:
        return self.root / relative


def _env_flag(value: str) -> bool:
    return value.lower() not in ("0", "false", "no", "")


def _env_port(name: str) -> int:
    value = os.environ[name]
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a port number, got {value!r}") from None


def load_config(
    path: str | None = None,
    *,
    production: bool | None = None,
) -> ProjectConfig:
    """Load configuration from ``path`` or ``ESTATICO_CONFIG``.

    ``ESTATICO_ROOT``, ``ESTATICO_PRODUCTION``, ``ESTATICO_SERVER_PORT`` and
    ``ESTATICO_LIVERELOAD_PORT`` override values from the YAML file. An
    explicit ``production`` argument (the CLI flag) wins over both.
    """

    cfg: Dict[str, Any] = {}
    path = path or os.getenv("ESTATICO_CONFIG")
    if path is None and os.path.exists(DEFAULT_CONFIG_FILE):
        path = DEFAULT_CONFIG_FILE
    if path:
        if not os.path.exists(path):
            raise ConfigurationError(f"Configuration file not found: {path}")
        with open(path, "r") as fh:
            try:
                cfg = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(cfg, dict):
            raise ConfigurationError(f"{path} must contain a mapping")

    if "ESTATICO_ROOT" in os.environ:
        cfg["root"] = os.environ["ESTATICO_ROOT"]
    if "ESTATICO_PRODUCTION" in os.environ:
        cfg["production"] = _env_flag(os.environ["ESTATICO_PRODUCTION"])
    if production is not None:
        cfg["production"] = production

    server = dict(cfg.get("server") or {})
    if "ESTATICO_SERVER_PORT" in os.environ:
        server["port"] = _env_port("ESTATICO_SERVER_PORT")
    if "ESTATICO_LIVERELOAD_PORT" in os.environ:
        server["livereload_port"] = _env_port("ESTATICO_LIVERELOAD_PORT")
    if server:
        cfg["server"] = server

    return validate_config(cfg)


def validate_config(data: Dict[str, Any]) -> ProjectConfig:
    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration:\n{exc}") from exc


__all__ = [
    "AnyTaskOptions",
    "CleanOptions",
    "CssOptions",
    "DEFAULT_TASKS",
    "HtmlOptions",
    "IconfontOptions",
    "ImageversionsOptions",
    "JsOptions",
    "JsTemplatesOptions",
    "LodashOptions",
    "MediaOptions",
    "ModernizrOptions",
    "PngspriteOptions",
    "ProjectConfig",
    "ServerOptions",
    "TaskOptions",
    "WatchSubscription",
    "load_config",
    "validate_config",
]
