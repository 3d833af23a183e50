import json

import httpx
import pytest

from writeup.app.documents import (
    STATUS_PUBLISHED,
    Document,
    FileDocumentStore,
    HttpDocumentStore,
    build_save_fields,
    calculate_read_time,
    generate_excerpt,
    generate_slug,
    normalize_tags,
)
from writeup.app.errors import PersistenceError, ValidationError


def test_generate_slug_strips_accents_and_punctuation() -> None:
    assert generate_slug("Héllo Wörld! 2024") == "hello-world-2024"
    assert generate_slug("a  --  b") == "a-b"


def test_generate_excerpt_strips_markup() -> None:
    excerpt = generate_excerpt("# Title\n\nSome **bold** text with [a link](http://x).")
    assert excerpt == "Title Some bold text with a link."


def test_generate_excerpt_truncates() -> None:
    excerpt = generate_excerpt("word " * 100)
    assert excerpt.endswith("...")
    assert len(excerpt) <= 163


def test_read_time() -> None:
    assert calculate_read_time("") == 1
    assert calculate_read_time("word " * 401) == 3


def test_normalize_tags() -> None:
    assert normalize_tags([" Python", "python", "A", "b", "", "c", "d", "e"]) == ["python", "a", "b", "c", "d"]


def test_build_save_fields() -> None:
    fields = build_save_fields("My Post", "# Hi\n\nbody", ["Notes"], STATUS_PUBLISHED)
    assert fields["slug"] == "my-post"
    assert fields["status"] == "published"
    assert fields["tags"] == ["notes"]
    assert fields["read_time"] == 1
    assert set(fields) == {"title", "slug", "content", "excerpt", "tags", "status", "read_time", "updated_at"}


@pytest.mark.parametrize(("title", "content"), [("", "body"), ("  ", "body"), ("Title", ""), ("Title", "\n\n")])
def test_build_save_fields_requires_title_and_content(title, content) -> None:
    with pytest.raises(ValidationError):
        build_save_fields(title, content)


def test_file_store_round_trip(tmp_path) -> None:
    store = FileDocumentStore(tmp_path / "docs")
    assert store.load("post-1") == Document(id="post-1")
    store.save("post-1", build_save_fields("Post", "body text", ["x"]))
    loaded = store.load("post-1")
    assert (loaded.title, loaded.content, loaded.tags, loaded.status) == ("Post", "body text", ["x"], "draft")
    store.save("post-1", {"status": "published"})
    assert store.load("post-1").title == "Post"
    assert store.load("post-1").status == "published"


def test_file_store_rejects_unsafe_ids(tmp_path) -> None:
    store = FileDocumentStore(tmp_path)
    with pytest.raises(PersistenceError):
        store.save("../escape", {"title": "x"})


def test_file_store_corrupt_file(tmp_path) -> None:
    (tmp_path / "bad.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError):
        FileDocumentStore(tmp_path).load("bad")


def _http_store(handler) -> HttpDocumentStore:
    client = httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(handler))
    return HttpDocumentStore("http://api.test", client=client)


def test_http_store_save_puts_fields() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"ok": True})

    store = _http_store(handler)
    store.save("abc", {"title": "T"})
    assert seen == [("PUT", "/api/documents/abc", {"title": "T"})]


def test_http_store_save_failure_raises() -> None:
    store = _http_store(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(PersistenceError):
        store.save("abc", {"title": "T"})


def test_http_store_load() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/missing"):
            return httpx.Response(404)
        return httpx.Response(200, json={"title": "T", "content": "c", "tags": ["a"], "status": "published"})

    store = _http_store(handler)
    assert store.load("missing") == Document(id="missing")
    assert store.load("abc") == Document(id="abc", title="T", content="c", tags=["a"], status="published")
    store.close()


def test_http_store_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PersistenceError):
        _http_store(handler).load("abc")
