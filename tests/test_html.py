import json

import pytest

from estatico.errors import TransformError
from estatico.tasks import html
from tests.utils.files import write


def test_split_front_matter():
    data, body = html.split_front_matter("---\ntitle: Home\n---\n<h1>x</h1>\n")
    assert data == {"title": "Home"}
    assert body == "<h1>x</h1>\n"

    assert html.split_front_matter("<p>no front matter</p>") == ({}, "<p>no front matter</p>")


def test_front_matter_must_be_mapping():
    with pytest.raises(TransformError):
        html.split_front_matter("---\n- a\n- b\n---\nbody")


def test_pages_render_with_data_and_layout(project, config):
    write(
        project,
        "source/layouts/layout.html",
        "<html><body>{{#block \"main\"}}default{{/block}}"
        "<footer>{{#block \"footer\"}}(c){{/block}}</footer></body></html>",
    )
    write(
        project,
        "source/index.html",
        "---\ntitle: Home\n---\n"
        "{{#extend \"layouts/layout\"}}"
        "{{#content \"main\"}}<h1>{{frontmatter.title}}</h1><p>{{greeting}}</p>{{/content}}"
        "{{#content \"footer\" mode=\"prepend\"}}Estatico {{/content}}"
        "{{/extend}}",
    )
    write(project, "source/pages/plain.html", "<p>{{#unless frontmatter.title}}ok{{/unless}}</p>")
    write(project, "source/data/index.json", json.dumps({"greeting": "Hello"}))

    pipeline = html.build_pipeline(config.tasks["html"], project)
    pipeline.run("build")

    index = (project / "build/index.html").read_text()
    assert index == (
        "<html><body><h1>Home</h1><p>Hello</p>"
        "<footer>Estatico (c)</footer></body></html>"
    )
    assert "---" not in index
    assert (project / "build/pages/plain.html").read_text() == "<p>ok</p>"


def test_module_partials(project, config):
    write(project, "source/modules/teaser/teaser.html", "<div class=\"mod_teaser\">{{title}}</div>")
    write(project, "source/index.html", "{{> teaser}}")
    write(project, "source/data/index.json", json.dumps({"title": "Hi"}))

    html.build_pipeline(config.tasks["html"], project).run("build")

    assert (project / "build/index.html").read_text() == '<div class="mod_teaser">Hi</div>'


def test_unknown_layout_fails(project, config):
    write(project, "source/index.html", "{{#extend \"layouts/missing\"}}{{/extend}}")

    with pytest.raises(TransformError, match="Unknown layout"):
        html.build_pipeline(config.tasks["html"], project).run("build")


def test_pages_keep_their_directory(project, config):
    write(project, "source/index.html", "<p>home</p>")
    write(project, "source/pages/index.html", "<p>pages index</p>")
    write(project, "source/pages/about.html", "<p>about</p>")

    html.build_pipeline(config.tasks["html"], project).run("build")

    assert (project / "build/index.html").read_text() == "<p>home</p>"
    assert (project / "build/pages/index.html").read_text() == "<p>pages index</p>"
    assert (project / "build/pages/about.html").read_text() == "<p>about</p>"
