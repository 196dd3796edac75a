import json
from pathlib import Path

import pytest

from quill.build import (
    DEFAULT_CONFIG,
    BuildError,
    _format_error_message,
    build_site,
    load_config,
)
from quill.errors import ConfigError
from quill.models import Origin, RawContent

NOW = 1_800_000_000.0


def test_build_site_writes_every_pipeline(blog_project, tmp_path):
    out = tmp_path / "out"
    result = build_site(blog_project, output_dir_override=out, now=NOW)

    assert result.output_dir == out
    assert sorted(result.files) == [
        "about/index.html",
        "authors/jane/index.html",
        "blog/page/1/index.html",
        "blog/page/2/index.html",
        "blog/posts/post-1/index.html",
        "blog/posts/post-2/index.html",
        "blog/posts/post-3/index.html",
        "feed.json",
        "feed/index.html",
        "index.html",
    ]
    assert len(result.contents) == 9

    home = (out / "index.html").read_text(encoding="utf-8")
    assert "<h1>Home</h1>" in home
    assert '<h1 id="welcome">Welcome</h1>' in home

    first_page = (out / "blog" / "page" / "1" / "index.html").read_text(encoding="utf-8")
    assert "<h1>Blog page 1 of 2</h1>" in first_page
    assert "<li>Post 3</li><li>Post 2</li>" in first_page
    assert "<p>1/2</p>" in first_page

    post = (out / "blog" / "posts" / "post-1" / "index.html").read_text(encoding="utf-8")
    assert post == "<h1>Post 1</h1><p>01 Jan 2024</p><span>Jane</span>"

    feed = json.loads((out / "feed.json").read_text(encoding="utf-8"))
    assert [p["title"] for p in feed["context"]["posts"]] == [
        "Future",
        "Post 3",
        "Post 2",
        "Post 1",
    ]
    assert feed["site"]["title"] == "Example"
    assert feed["site"]["baseUrl"] == "https://example.com"


def test_build_site_uses_config_output_dir(blog_project):
    result = build_site(blog_project, base_url="https://other.org", now=NOW)
    assert result.output_dir == blog_project / "dist"
    feed = json.loads((blog_project / "dist" / "feed.json").read_text(encoding="utf-8"))
    assert feed["site"]["baseUrl"] == "https://other.org"


def test_build_site_cleans_output(blog_project, tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    (out / "stale.html").write_text("old", encoding="utf-8")
    build_site(blog_project, output_dir_override=out, now=NOW)
    assert not (out / "stale.html").exists()


def test_build_site_accepts_custom_source(blog_project, tmp_path):
    class Source:
        def load(self):
            return [RawContent(origin=Origin(path="x/index.md", slug="x"), markdown="Hi")]

    result = build_site(blog_project, output_dir_override=tmp_path / "o", now=NOW, source=Source())
    assert [c.id for c in result.contents] == ["x"]
    assert "x/index.html" in result.files


def test_unknown_type_reports_content_file(blog_project, tmp_path):
    bad = blog_project / "contents" / "bad" / "index.md"
    bad.parent.mkdir()
    bad.write_text("---\ntype: nope\n---\n", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        build_site(blog_project, output_dir_override=tmp_path / "o", now=NOW)
    assert excinfo.value.source_path == bad
    assert "nope" in excinfo.value.message


def test_missing_default_type_fails(blog_project, tmp_path):
    (blog_project / "types" / "page.yml").write_text("id: page\n", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        build_site(blog_project, output_dir_override=tmp_path / "o", now=NOW)
    assert "default" in excinfo.value.message


def test_missing_template_fails(blog_project, tmp_path):
    (blog_project / "templates" / "post.html").unlink()
    with pytest.raises(BuildError) as excinfo:
        build_site(blog_project, output_dir_override=tmp_path / "o", now=NOW)
    assert "post.html" in excinfo.value.message


def test_template_syntax_error_is_reported(blog_project, tmp_path):
    (blog_project / "templates" / "default.html").write_text("{% if %}", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        build_site(blog_project, output_dir_override=tmp_path / "o", now=NOW)
    assert "Template syntax error" in excinfo.value.message


def test_unknown_engine_is_skipped(blog_project, tmp_path):
    (blog_project / "pipelines" / "other.yml").write_text(
        "id: other\nengine:\n  id: mustache\n", encoding="utf-8"
    )
    result = build_site(blog_project, output_dir_override=tmp_path / "o", now=NOW)
    assert "feed.json" in result.files


def test_load_config_defaults_and_errors(tmp_path):
    assert load_config(tmp_path) == DEFAULT_CONFIG

    (tmp_path / "quill.yaml").write_text("output_dir: public\n", encoding="utf-8")
    config = load_config(tmp_path)
    assert config["output_dir"] == "public"
    assert config["contents_dir"] == "contents"

    (tmp_path / "quill.yaml").write_text("- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)

    (tmp_path / "quill.yaml").write_text("a: [\n", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path)
    assert excinfo.value.source_path == Path(tmp_path / "quill.yaml")


def test_format_error_message():
    assert _format_error_message(TypeError("bad")) == "Type error: bad"
    assert _format_error_message(AttributeError("x")) == "Attribute error: x"
    assert _format_error_message(KeyError("k")) == "KeyError: 'k'"
