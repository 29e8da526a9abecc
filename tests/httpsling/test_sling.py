"""Tests for the Sling request builder."""

from __future__ import annotations

import io
import time
from collections.abc import Callable

import pytest

from httpsling import (
    BodyEncodeError,
    Deadline,
    HttpSender,
    QueryEncodeError,
    RawCapture,
    SendResult,
    Sling,
    Typed,
    UrlParseError,
)
from httpsling.body import FORM_CONTENT_TYPE, JSON_CONTENT_TYPE
from tests.httpsling._stubs import ScriptedSender, StubAdapter, make_response


@pytest.fixture
def sling(result_for: Callable[..., SendResult]) -> Sling:
    """Builder over a sender that always answers 200 with an empty JSON object."""
    return Sling(ScriptedSender([result_for(200, b"{}")])).base("http://h/")


class _StreamProvider:
    @property
    def content_type(self) -> str:
        return "text/csv"

    def body(self) -> io.BytesIO:
        return io.BytesIO(b"a,b\n")


class _RecordingDecoder:
    def __init__(self) -> None:
        self.calls: list[bytes] = []

    def decode(self, content: bytes, target: Typed) -> None:
        self.calls.append(content)
        target.value = "decoded"


class TestUrl:
    """Tests for URL composition."""

    def test_path_and_query_structs(self, sling: Sling) -> None:
        """Path resolution and query structures combine into one sorted URL."""
        request = sling.path("a/b/").query_struct({"q": 1}).query_struct({"r": "x"}).request()
        assert request.url == "http://h/a/b/?q=1&r=x"

    @pytest.mark.parametrize(
        ("base", "path", "expected"),
        [
            ("http://h/a/", "b", "http://h/a/b"),
            ("http://h/a", "b", "http://h/b"),
            ("http://h/a/b/", "/root", "http://h/root"),
            ("http://h/", "items/", "http://h/items/"),
            ("http://h/a/", "https://other/x", "https://other/x"),
        ],
    )
    def test_path_resolution(self, base: str, path: str, expected: str) -> None:
        """Paths resolve as relative references and keep trailing slashes."""
        assert Sling(ScriptedSender([])).base(base).path(path).url == expected

    def test_existing_query_is_merged(self, sling: Sling) -> None:
        """A query already on the URL survives alongside structures and params."""
        request = (
            sling.base("http://h/search?z=9")
            .query_struct({"a": "1"})
            .query_params({"m": "2"})
            .request()
        )
        assert request.url == "http://h/search?a=1&m=2&z=9"

    def test_query_params_replace(self, sling: Sling) -> None:
        """query_params replaces the previous flat params."""
        request = sling.query_params({"a": "1"}).query_params({"b": "2"}).request()
        assert request.url == "http://h/?b=2"

    def test_invalid_port_deferred(self, sling: Sling) -> None:
        """An unparsable base URL is accepted by the chain and reported by request()."""
        builder = sling.base("http://h:99999/").path("x")
        assert builder.url == "http://h:99999/"
        with pytest.raises(UrlParseError):
            builder.request()

    def test_missing_scheme(self, sling: Sling) -> None:
        """A URL without scheme and host fails at request()."""
        with pytest.raises(UrlParseError):
            sling.base("no-scheme/path").request()

    def test_query_encode_error_deferred(self, sling: Sling) -> None:
        """A bad query structure is reported by request()."""
        builder = sling.query_struct(42)
        with pytest.raises(QueryEncodeError):
            builder.request()


class TestHeaders:
    """Tests for header configuration."""

    def test_add_and_set(self, sling: Sling) -> None:
        """add_header appends and set_header replaces."""
        sling.add_header("accept", "a").add_header("Accept", "b")
        assert sling.headers.get_all("Accept") == ["a", "b"]
        sling.set_header("ACCEPT", "c")
        assert sling.headers.get_all("Accept") == ["c"]

    def test_set_headers_is_per_key(self, sling: Sling) -> None:
        """set_headers replaces the keys it names and leaves others alone."""
        sling.add_header("X-Keep", "1").add_header("X-Swap", "old")
        sling.set_headers({"X-Swap": "new"})
        assert sling.headers.get("X-Keep") == "1"
        assert sling.headers.get_all("X-Swap") == ["new"]

    def test_repeated_values_on_the_wire(self, sling: Sling) -> None:
        """Repeated header values are joined into one field."""
        request = sling.add_header("Accept", "a").add_header("Accept", "b").request()
        assert request.headers["Accept"] == "a, b"

    def test_basic_auth(self, sling: Sling) -> None:
        """Basic credentials are base64 encoded."""
        request = sling.set_basic_auth("user", "pass").request()
        assert request.headers["Authorization"] == "Basic dXNlcjpwYXNz"

    def test_bearer_auth(self, sling: Sling) -> None:
        """Bearer tokens replace any prior Authorization value."""
        request = sling.set_basic_auth("u", "p").set_bearer_auth("tok").request()
        assert request.headers["Authorization"] == "Bearer tok"


class TestBody:
    """Tests for body providers."""

    def test_json_body(self, sling: Sling) -> None:
        """JSON bodies are compact and set the JSON content type."""
        request = sling.post().body_json({"x": 1}).request()
        assert request.method == "POST"
        assert request.headers["Content-Type"] == JSON_CONTENT_TYPE
        assert request.body == b'{"x":1}'

    def test_form_body(self, sling: Sling) -> None:
        """Form bodies are key-sorted and set the form content type."""
        request = sling.post().body_form({"b": "2", "a": "1"}).request()
        assert request.headers["Content-Type"] == FORM_CONTENT_TYPE
        assert request.body == b"a=1&b=2"

    def test_raw_body_keeps_content_type(self, sling: Sling) -> None:
        """Raw bodies leave an existing Content-Type untouched."""
        request = sling.post().set_header("Content-Type", "text/plain").body("hi").request()
        assert request.headers["Content-Type"] == "text/plain"
        assert request.body == b"hi"

    def test_last_provider_wins(self, sling: Sling) -> None:
        """A later provider replaces the earlier one and its content type."""
        request = sling.post().body_json({"x": 1}).body_form({"y": "2"}).request()
        assert request.headers["Content-Type"] == FORM_CONTENT_TYPE
        assert request.body == b"y=2"

    def test_none_payload_is_ignored(self, sling: Sling) -> None:
        """None payloads keep the configured body."""
        request = sling.post().body_json({"x": 1}).body_json(None).body(None).request()
        assert request.body == b'{"x":1}'

    def test_stream_body_read_once(self, sling: Sling) -> None:
        """A stream body yields the same bytes for every built request."""
        sling.post().body(io.BytesIO(b"chunk"))
        assert sling.request().body == b"chunk"
        assert sling.request().body == b"chunk"

    def test_custom_provider_stream_drained(self, sling: Sling) -> None:
        """Streams returned by a custom provider become bytes on the request."""
        request = sling.post().body_provider(_StreamProvider()).request()
        assert request.headers["Content-Type"] == "text/csv"
        assert request.body == b"a,b\n"

    def test_body_encode_error_deferred(self, sling: Sling) -> None:
        """Unserializable payloads are reported by request()."""
        builder = sling.post().body_json({"x": object()})
        with pytest.raises(BodyEncodeError):
            builder.request()


class TestMethods:
    """Tests for method helpers."""

    @pytest.mark.parametrize(
        "name", ["head", "get", "post", "put", "patch", "delete", "options", "trace", "connect"]
    )
    def test_helpers_set_method_and_path(self, sling: Sling, name: str) -> None:
        """Each helper sets its method and resolves the path."""
        builder = getattr(sling, name)("items/")
        assert builder.url == "http://h/items/"
        assert builder.request().method == name.upper()

    def test_default_method_is_get(self, sling: Sling) -> None:
        """Builders default to GET."""
        assert sling.request().method == "GET"


class TestBranch:
    """Tests for branching."""

    def test_child_changes_do_not_leak(self, sling: Sling) -> None:
        """Configuring a branch leaves its parent untouched."""
        sling.add_header("A", "1").query_params({"k": "v"})
        child = sling.branch().add_header("A", "2").query_struct({"c": 1}).path("sub")
        assert sling.headers.get_all("A") == ["1"]
        assert sling.request().url == "http://h/?k=v"
        assert child.request().url == "http://h/sub?c=1&k=v"

    def test_parent_changes_do_not_leak(self, sling: Sling) -> None:
        """Configuring a parent after branching leaves the branch untouched."""
        child = sling.branch()
        sling.set_header("X", "parent").query_struct({"p": 1}).query_params({"q": "1"})
        assert "X" not in child.headers
        assert child.request().url == "http://h/"

    def test_siblings_are_independent(self, sling: Sling) -> None:
        """Sibling branches do not see each other's headers."""
        first = sling.branch().set_header("X", "1")
        second = sling.branch().set_header("X", "2")
        assert first.headers.get("X") == "1"
        assert second.headers.get("X") == "2"


class TestStrategies:
    """Tests for decoder and success decider configuration."""

    def test_none_keeps_decoder(self, sling: Sling) -> None:
        """Passing None leaves the configured decoder in place."""
        decoder = _RecordingDecoder()
        target = Typed()
        sling.response_decoder(decoder).response_decoder(None).receive_success(target)
        assert decoder.calls == [b"{}"]
        assert target.value == "decoded"

    def test_custom_success_decider(self, result_for: Callable[..., SendResult]) -> None:
        """A custom decider routes a 404 body to the success target."""
        sender = ScriptedSender([result_for(404, b"not here")])
        success, failure = RawCapture(), RawCapture()
        (
            Sling(sender)
            .base("http://h/")
            .success_decider(lambda response: response.status_code == 404)
            .success_decider(None)
            .receive(success, failure)
        )
        assert success.data == b"not here"
        assert failure.data == b""

    def test_invalid_target_type(self, sling: Sling) -> None:
        """Anything other than a decode target is rejected."""
        with pytest.raises(TypeError):
            sling.receive_success({})  # type: ignore[arg-type]

    def test_do_accepts_prepared_request(self, sling: Sling) -> None:
        """do() pairs a bare prepared request with the builder's deadline."""
        prepared = sling.request().prepared
        target = Typed(dict)
        response = sling.do(prepared, target)
        assert response.status_code == 200
        assert target.value == {}

    def test_public_members_documented(self) -> None:
        """Every public builder member carries a docstring."""
        undocumented = [
            name
            for name, member in vars(Sling).items()
            if not name.startswith("_")
            and not (member.fget if isinstance(member, property) else member).__doc__
        ]
        assert undocumented == []


class TestDeadlines:
    """Tests for timeouts and deadline tokens."""

    def test_timeout_starts_per_request(self, sling: Sling) -> None:
        """Each built request gets its own deadline from the timeout."""
        sling.timeout(5.0)
        first, second = sling.request().deadline, sling.request().deadline
        assert first is not second
        remaining = first.remaining()
        assert remaining is not None
        assert 0 < remaining <= 5.0

    def test_branch_after_timeout_elapsed(
        self, stub_sender: Callable[..., tuple[HttpSender, StubAdapter]]
    ) -> None:
        """A base builder's timeout does not expire its later branches."""
        sender, adapter = stub_sender(make_response(200))
        api = Sling(sender).base("http://h/").timeout(0.2)
        api.branch().get("a").receive_success(None)
        time.sleep(0.3)
        api.branch().get("b").receive_success(None)
        assert [r.url for r in adapter.requests] == ["http://h/a", "http://h/b"]

    def test_explicit_token_shared_by_branches(self, sling: Sling) -> None:
        """A token attached with deadline() is carried by every branch."""
        token = Deadline()
        sling.deadline(token)
        assert sling.branch().request().deadline is token

    def test_deadline_and_timeout_replace_each_other(self, sling: Sling) -> None:
        """The last of deadline() and timeout() wins."""
        token = Deadline()
        assert sling.timeout(1.0).deadline(token).request().deadline is token
        assert sling.deadline(token).timeout(1.0).request().deadline is not token
        assert sling.timeout(None).request().deadline.remaining() is None
