from quill import utils


def test_strip_brackets_and_directory_names():
    assert utils.strip_brackets("[01]hello-world") == "hello-world"
    assert utils.strip_brackets("a%5Bx%5Db") == "ab"
    assert utils.strip_brackets("plain") == "plain"
    assert utils.parent_directory_name("blog/[01]first%20post/index.md") == "first post"
    assert utils.parent_directory_name("index.md") == ""


def test_slug_from_path():
    assert utils.slug_from_path("blog/[2024]/[01]first-post") == "blog/first-post"
    assert utils.slug_from_path(".") == ""
    assert utils.slug_from_path("about") == "about"


def test_extract_iterator_id():
    assert utils.extract_iterator_id("blog/page/{{post.pagination}}") == "post.pagination"
    assert utils.extract_iterator_id("blog/{{a}}/{{b}}") == "a"
    assert utils.extract_iterator_id("blog/page") is None
    assert utils.extract_iterator_id("blog/{{open") is None


def test_replace_tokens_and_permalink():
    assert utils.replace_tokens("{{a}}-{{b}}", {"{{a}}": "1", "{{b}}": "2"}) == "1-2"
    assert utils.permalink("blog/post", "https://example.com/") == "https://example.com/blog/post/"
    assert utils.permalink("feed.xml", "https://example.com") == "https://example.com/feed.xml"
    assert utils.permalink("", "https://example.com") == "https://example.com/"
    assert utils.permalink("about", "") == "/about/"


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "build"
    target.mkdir()
    (target / "old.txt").write_text("old", encoding="utf-8")
    utils.ensure_clean_dir(target)
    assert list(target.iterdir()) == []

    fresh = tmp_path / "new" / "dir"
    utils.ensure_clean_dir(fresh)
    assert fresh.is_dir()
