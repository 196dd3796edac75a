import pytest

from quill.errors import ConfigError
from quill.loaders import (
    RawContentLoader,
    extract_frontmatter,
    load_definitions,
    load_pipelines,
    load_yaml,
)
from quill.models import RelationType, TypeKind
from quill.pipelines import ScopeContext
from quill.query import Operator
from quill.values import Value


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_extract_frontmatter_keeps_dates_as_strings():
    data, body = extract_frontmatter("---\ntitle: Hi\ndate: 2024-01-02\n---\n# Body\n")
    assert data == {"title": "Hi", "date": "2024-01-02"}
    assert body == "# Body\n"


def test_extract_frontmatter_without_fence_or_with_bad_yaml():
    assert extract_frontmatter("# Just text") == ({}, "# Just text")
    text = "---\n: [\n---\nBody"
    assert extract_frontmatter(text) == ({}, text)


def test_load_yaml_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_yaml("a: [", tmp_path / "x.yml")


def test_raw_content_loader(tmp_path):
    contents = tmp_path / "contents"
    write(contents / "index.md", "---\ntitle: Home\n---\nHello")
    write(
        contents / "blog" / "[01]first%20post" / "index.yml",
        "title: From yaml\ntags: [a]\n",
    )
    write(
        contents / "blog" / "[01]first%20post" / "index.md",
        "---\ntitle: From markdown\n---\nBody",
    )
    write(contents / "blog" / "[01]first%20post" / "assets" / "cover.png", "png")
    write(contents / "blog" / "[01]first%20post" / "assets" / "img" / "a.jpg", "jpg")
    write(contents / "data" / "index.yaml", "kind: data\n")
    write(contents / "blog" / "[01]first%20post" / "assets" / "index.md", "ignored")
    write(contents / "notes" / "readme.md", "not content")

    items = RawContentLoader(contents).load()
    by_slug = {item.origin.slug: item for item in items}
    assert sorted(by_slug) == ["", "blog/first post", "data"]

    home = by_slug[""]
    assert home.origin.path == "index.md"
    assert home.markdown == "Hello"

    post = by_slug["blog/first post"]
    assert post.origin.path == "blog/[01]first%20post/index.md"
    assert post.front_matter["title"] == Value.of("From markdown")
    assert post.front_matter["tags"] == Value.of(["a"])
    assert post.assets == ("cover.png", "img/a.jpg", "index.md")
    assert post.last_modification > 0

    data = by_slug["data"]
    assert data.origin.path == "data/index.yaml"
    assert data.markdown == ""


def test_missing_contents_dir_yields_nothing(tmp_path):
    assert RawContentLoader(tmp_path / "nope").load() == []


def test_load_definitions(tmp_path):
    write(
        tmp_path / "types" / "post.yml",
        "id: post\n"
        "paths: [blog]\n"
        "properties:\n"
        "  title:\n    type: string\n"
        "  publication:\n    type: date\n    dateFormat:\n      format: '%Y'\n"
        "  tags:\n    type: array\n    of:\n      type: string\n    required: false\n"
        "relations:\n  author:\n    references: author\n    type: one\n"
        "    order:\n      key: name\n"
        "queries:\n  related:\n    contentType: post\n    limit: 3\n",
    )
    write(tmp_path / "types" / "page.yaml", "id: page\ndefault: true\n")
    definitions = {d.id: d for d in load_definitions(tmp_path / "types")}
    assert set(definitions) == {"post", "page"}
    post = definitions["post"]
    assert post.paths == ("blog",)
    assert post.properties["publication"].type.date_format.format == "%Y"
    assert post.properties["tags"].type.item_type.kind is TypeKind.STRING
    assert post.properties["tags"].required is False
    assert post.relations["author"].type is RelationType.ONE
    assert post.relations["author"].order.key == "name"
    assert post.queries["related"].limit == 3
    assert definitions["page"].default is True


def test_invalid_definition_reports_file(tmp_path):
    path = write(tmp_path / "types" / "bad.yml", "id: bad\nproperties:\n  x:\n    type: money\n")
    with pytest.raises(ConfigError) as excinfo:
        load_definitions(tmp_path / "types")
    assert excinfo.value.source_path == path


def test_load_pipelines(tmp_path):
    write(
        tmp_path / "pipelines" / "html.yml",
        "id: html\n"
        "engine:\n  id: jinja\n  options:\n    template: base.html\n"
        "scopes:\n"
        "  post:\n    list:\n      context: [properties]\n      fields: [title]\n"
        "contentTypes:\n"
        "  exclude: [author]\n"
        "  filterRules:\n    '*':\n      key: draft\n      operator: notEquals\n      value: true\n"
        "output:\n  file: '{{id}}'\n",
    )
    (pipeline,) = load_pipelines(tmp_path / "pipelines")
    assert pipeline.engine.options == {"template": "base.html"}
    scope = pipeline.get_scope("list", "post")
    assert scope.context == ScopeContext.PROPERTIES
    assert scope.fields == ("title",)
    assert pipeline.get_scope("detail", "post").context == ScopeContext.everything()
    assert pipeline.content_types.is_allowed("post")
    assert not pipeline.content_types.is_allowed("author")
    assert pipeline.content_types.filter_rules["*"].operator is Operator.NOT_EQUALS
    assert pipeline.output.file == "{{id}}"
    assert pipeline.output.path == "{{slug}}"


def test_pipeline_without_engine_is_rejected(tmp_path):
    write(tmp_path / "pipelines" / "x.yml", "id: x\n")
    with pytest.raises(ConfigError):
        load_pipelines(tmp_path / "pipelines")


@pytest.mark.parametrize(
    "properties",
    [
        "properties:\n  title: string\n",
        "properties:\n  - title\n",
        "relations:\n  author: author\n",
        "queries: [posts]\n",
    ],
)
def test_definition_sections_must_be_mappings(tmp_path, properties):
    path = write(tmp_path / "types" / "post.yml", "id: post\n" + properties)
    with pytest.raises(ConfigError) as excinfo:
        load_definitions(tmp_path / "types")
    assert excinfo.value.source_path == path
    assert "must be a mapping" in excinfo.value.message


@pytest.mark.parametrize(
    "section",
    [
        "scopes: [post]\n",
        "scopes:\n  post: list\n",
        "queries:\n  posts: post\n",
        "iterators: [post.pagination]\n",
        "contentTypes: [post]\n",
        "output: index.html\n",
    ],
)
def test_pipeline_sections_must_be_mappings(tmp_path, section):
    path = write(tmp_path / "pipelines" / "html.yml", "id: html\nengine:\n  id: jinja\n" + section)
    with pytest.raises(ConfigError) as excinfo:
        load_pipelines(tmp_path / "pipelines")
    assert excinfo.value.source_path == path


def test_unsupported_front_matter_value_reports_file(tmp_path):
    contents = tmp_path / "contents"
    path = write(contents / "about" / "index.md", "---\nblob: !!binary aGk=\n---\nHi")
    with pytest.raises(ConfigError) as excinfo:
        RawContentLoader(contents).load()
    assert excinfo.value.source_path == path
    assert "bytes" in excinfo.value.message
