import asyncio

import pytest

from estatico import devserver, tasks, watcher
from estatico.errors import ConfigurationError
from estatico.registry import TaskContext, TaskRegistry
from tests.utils.files import write


class FakeServer:
    def __init__(self):
        self.events = []

    def attach(self, registry):
        self.events.append("attach")

    def start(self, *, static=True):
        self.events.append(("start", static))

    def stop(self):
        self.events.append("stop")


class FakeWatcher:
    instances = []

    def __init__(self, registry, subscriptions, root):
        self.subscriptions = subscriptions
        self.events = []
        FakeWatcher.instances.append(self)

    def start(self):
        self.events.append("start")

    def stop(self):
        self.events.append("stop")


def _patch(monkeypatch, server, opened):
    FakeWatcher.instances = []
    monkeypatch.setattr(devserver, "dev_server_for", lambda config: server)
    monkeypatch.setattr(watcher, "ChangeWatcher", FakeWatcher)
    monkeypatch.setattr(tasks.webbrowser, "open", opened.append)

    async def stop_immediately():
        return None

    monkeypatch.setattr(tasks, "_wait_forever", stop_immediately)


def test_default_serves_then_cleans(project, make_config, monkeypatch):
    config = make_config(server={"port": 9100})
    write(project, "build/index.html", "<p/>")
    reg = TaskRegistry(config)
    for name in ("html", "css", "js", "pngsprite", "iconfont"):
        reg.register(name, [], lambda ctx: None)
    server, opened = FakeServer(), []
    _patch(monkeypatch, server, opened)
    ctx = TaskContext(registry=reg, task=reg.register("default", []), config=config)

    asyncio.run(tasks.watch_and_serve(ctx, static=True, clean_on_exit=True))

    assert server.events == ["attach", ("start", True), "stop"]
    (fake_watcher,) = FakeWatcher.instances
    assert fake_watcher.events == ["start", "stop"]
    assert [s.task for s in fake_watcher.subscriptions] == ["html", "css", "js", "pngsprite", "iconfont"]
    assert opened == ["http://localhost:9100"]
    assert not (project / "build").exists()


def test_watch_keeps_build(project, make_config, monkeypatch):
    config = make_config(server={"openBrowser": True}, watch=[])
    write(project, "build/index.html", "<p/>")
    reg = TaskRegistry(config)
    server, opened = FakeServer(), []
    _patch(monkeypatch, server, opened)
    ctx = TaskContext(registry=reg, task=reg.register("watch", []), config=config)

    asyncio.run(tasks.watch_and_serve(ctx, static=False, clean_on_exit=False))

    assert server.events == ["attach", ("start", False), "stop"]
    assert opened == []
    assert (project / "build/index.html").exists()


def test_unknown_watched_task_fails_before_serving(project, make_config, monkeypatch):
    config = make_config(watch=[{"src": ["source/*.html"], "task": "html"}])
    reg = TaskRegistry(config)
    server, opened = FakeServer(), []
    _patch(monkeypatch, server, opened)
    ctx = TaskContext(registry=reg, task=reg.register("watch", []), config=config)

    with pytest.raises(ConfigurationError, match="html"):
        asyncio.run(tasks.watch_and_serve(ctx, static=False, clean_on_exit=False))

    assert server.events == []
    assert FakeWatcher.instances == []


def test_build_runs_dependencies_then_parallel_group(project, config, monkeypatch):
    log = []
    reg = TaskRegistry(config)
    for name in ("iconfont", "pngsprite", "html", "css", "js", "media", "lodash", "modernizr"):
        reg.register(name, [], lambda ctx, name=name: log.append(name))
    tasks.register_composite_tasks(reg)

    reg.run_sync("build")
    assert log[:2] == ["iconfont", "pngsprite"]
    assert sorted(log[2:]) == ["css", "html", "js", "media"]

    log.clear()
    reg.run_sync("setup")
    assert log == ["lodash", "modernizr"]
