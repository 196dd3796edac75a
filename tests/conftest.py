import logging
from pathlib import Path

import pytest
import structlog

from quill.models import Content, ContentDefinition, Origin, RawContent
from quill.values import wrap_mapping


def _make_content(
    id="item",
    type_id="post",
    slug=None,
    properties=None,
    relations=None,
    user_defined=None,
    definition=None,
    markdown="",
    last_modification=0.0,
):
    definition = definition or ContentDefinition(id=type_id)
    slug = id if slug is None else slug
    raw = RawContent(
        origin=Origin(path=f"{slug}/index.md", slug=slug),
        markdown=markdown,
        last_modification=last_modification,
    )
    return Content(
        type=definition,
        id=id,
        slug=slug,
        raw_value=raw,
        properties=wrap_mapping(properties),
        relations=relations or {},
        user_defined=wrap_mapping(user_defined),
    )


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture
def make_content():
    return _make_content


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def blog_project(tmp_path):
    """A small site with posts, authors, a paginated blog and a JSON feed."""
    project = tmp_path / "site"
    write(
        project / "quill.yaml",
        "base_url: https://example.com\n"
        "date_formats:\n"
        "  input:\n"
        "    format: '%Y-%m-%d'\n"
        "  output:\n"
        "    short: '%d %b %Y'\n"
        "site:\n"
        "  title: Example\n",
    )
    write(
        project / "types" / "page.yml",
        "id: page\ndefault: true\nproperties:\n  title:\n    type: string\n",
    )
    write(
        project / "types" / "post.yml",
        "id: post\n"
        "paths:\n  - blog/posts\n"
        "properties:\n"
        "  title:\n    type: string\n"
        "  publication:\n    type: date\n"
        "  featured:\n    type: bool\n    required: false\n    default: false\n"
        "relations:\n"
        "  author:\n    references: author\n    type: one\n",
    )
    write(
        project / "types" / "author.yml",
        "id: author\n"
        "paths:\n  - authors\n"
        "properties:\n  name:\n    type: string\n"
        "queries:\n"
        "  posts:\n"
        "    contentType: post\n"
        "    filter:\n"
        "      key: author\n"
        "      operator: equals\n"
        "      value: '{{id}}'\n"
        "    orderBy:\n"
        "      - key: publication\n"
        "        direction: desc\n",
    )
    write(
        project / "pipelines" / "html.yml",
        "id: html\n"
        "engine:\n"
        "  id: jinja\n"
        "  options:\n"
        "    contentTypes:\n"
        "      post:\n"
        "        template: post.html\n"
        "iterators:\n"
        "  post.pagination:\n"
        "    contentType: post\n"
        "    limit: 2\n"
        "    orderBy:\n"
        "      - key: publication\n"
        "        direction: desc\n"
        "contentTypes:\n"
        "  filterRules:\n"
        "    post:\n"
        "      key: publication\n"
        "      operator: lessThanOrEquals\n"
        "      value: '{{date.now}}'\n",
    )
    write(
        project / "pipelines" / "feed.yml",
        "id: feed\n"
        "engine:\n  id: json\n"
        "definesType: true\n"
        "queries:\n"
        "  posts:\n"
        "    contentType: post\n"
        "    orderBy:\n"
        "      - key: publication\n"
        "        direction: desc\n"
        "contentTypes:\n"
        "  include:\n    - feed\n"
        "output:\n  path: ''\n  file: feed\n  ext: json\n",
    )
    write(
        project / "templates" / "default.html",
        "<h1>{{ page.title }}</h1>"
        "{% if iterator %}{% for item in iterator.items %}<li>{{ item.title }}</li>{% endfor %}"
        "<p>{{ iterator.current }}/{{ iterator.total }}</p>{% endif %}"
        "{{ page.contents.html | safe }}",
    )
    write(
        project / "templates" / "post.html",
        "<h1>{{ page.title }}</h1><p>{{ page.publication.formats.short }}</p>"
        "{% for a in page.author %}<span>{{ a.name }}</span>{% endfor %}",
    )
    contents = project / "contents"
    write(contents / "index.md", "---\ntitle: Home\n---\n\n# Welcome\n")
    write(contents / "about" / "index.md", "---\ntitle: About\n---\n\nAbout us.\n")
    write(contents / "authors" / "jane" / "index.yml", "name: Jane\n")
    for number, day in enumerate(["2024-01-01", "2024-02-01", "2024-03-01"], start=1):
        write(
            contents / "blog" / "posts" / f"[0{number}]post-{number}" / "index.md",
            f"---\ntitle: Post {number}\npublication: '{day}'\nauthor: jane\n---\n\nBody {number}.\n",
        )
    write(
        contents / "blog" / "posts" / "future" / "index.md",
        "---\ntitle: Future\npublication: '2999-01-01'\nauthor: jane\n---\n",
    )
    write(
        contents / "blog" / "page" / "{{post.pagination}}" / "index.md",
        "---\ntitle: Blog page {{number}} of {{total}}\n---\n",
    )
    write(contents / "feed" / "index.yml", "type: feed\n")
    return project
