"""Tests for RequestBuilder: URI building, headers, bodies and dispatch."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import MagicMock

import httpx
import pytest
from pydantic import BaseModel

from httpbuilder.errors import InvalidHeaderError, NoConnectionError
from httpbuilder.models import FileContent, HttpMethod
from httpbuilder.request.builder import RequestBuilder
from httpbuilder.request.observer import RequestObserver
from httpbuilder.testing import (
    MockServer,
    ObserverCall,
    RecordingObserver,
    assert_hooks_called_in_order,
    assert_query_equals,
)
from httpbuilder.transport.counters import RequestCounters

MakeBuilder = Callable[..., RequestBuilder]


class Payload(BaseModel):
    name: str
    size: int


class TestUri:
    """Tests for URI resolution and query building."""

    def test_relative_path_resolved_against_base_url(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("users/42")
        assert builder.uri_string == "http://testserver/users/42"

    def test_absolute_url_kept(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("https://api.example.com/v1/items")
        assert builder.uri_string == "https://api.example.com/v1/items"

    def test_relative_path_without_base_url_rejected(self) -> None:
        client = httpx.AsyncClient()
        with pytest.raises(ValueError, match="no absolute base_url"):
            RequestBuilder(RequestObserver(), client, "users")

    def test_path_query_seeds_parameters(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("search?q=httpx&page=2")
        assert builder.parameters == {"q": "httpx", "page": "2"}

    def test_with_parameter_last_write_wins(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("search").with_parameter("q", "a").with_parameter("q", "b")
        assert builder.query_string == "q=b"

    def test_with_parameter_none_is_noop(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("search").with_parameter("q", "kept")

        builder.with_parameter("q", None)

        assert builder.parameters == {"q": "kept"}

    def test_non_string_values_converted(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("items").with_parameters({"limit": 10, "skip": None})
        assert_query_equals(builder.uri, {"limit": "10"})

    def test_values_are_encoded(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("search").with_parameter("q", "a b&c")
        assert builder.query_string == "q=a+b%26c"

    def test_additional_query_appended_after_parameters(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("search").with_parameter("q", "x").with_additional_query("raw=1")
        assert builder.query_string == "q=x&raw=1"
        assert builder.uri_string == "http://testserver/search?q=x&raw=1"

    def test_additional_query_alone(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("search").with_additional_query("raw=1")
        assert builder.query_string == "raw=1"
        assert builder.has_additional_query

    def test_no_query_no_question_mark(self, make_builder: MakeBuilder) -> None:
        assert make_builder("plain").uri_string == "http://testserver/plain"

    def test_has_parameter_ignores_blank_values(self, make_builder: MakeBuilder) -> None:
        builder = make_builder("s").with_parameter("empty", " ").with_parameter("set", "1")
        assert builder.has_parameter("set")
        assert not builder.has_parameter("empty")
        assert not builder.has_parameter("missing")


class TestHeaders:
    """Tests for the three header insertion modes."""

    def test_with_header_replaces(self, make_builder: MakeBuilder) -> None:
        builder = make_builder().with_header("Accept", ["text/plain", "text/html"])
        assert builder.headers.get_list("accept") == ["text/plain", "text/html"]

        builder.with_header("accept", "application/json")

        assert builder.headers.get_list("Accept") == ["application/json"]

    def test_add_header_if_not_added(self, make_builder: MakeBuilder) -> None:
        builder = make_builder().with_header("X-Trace", "first")

        builder.add_header_if_not_added("x-trace", "second")
        builder.add_header_if_not_added("X-Other", "value")

        assert builder.headers.get_list("X-Trace") == ["first"]
        assert builder.has_header("X-Other")

    @pytest.mark.parametrize("name", ["Bad Name", "X-Custom(1)", ""])
    def test_invalid_name_rejected(self, make_builder: MakeBuilder, name: str) -> None:
        with pytest.raises(InvalidHeaderError):
            make_builder().with_header(name, "v")

    @pytest.mark.parametrize("value", ["a\r\nb", "a\nb", "a\0b", "café"])
    def test_invalid_value_rejected(self, make_builder: MakeBuilder, value: str) -> None:
        with pytest.raises(InvalidHeaderError):
            make_builder().with_header("X-Value", value)

    def test_without_validation_rejects_non_ascii(self, make_builder: MakeBuilder) -> None:
        builder = make_builder().with_header("X-Kept", "1")

        with pytest.raises(InvalidHeaderError, match="X-Name"):
            builder.with_header_without_validation("X-Name", "café")

        assert builder.headers["X-Kept"] == "1"
        assert "X-Name" not in builder.headers

    async def test_without_validation_sent_as_is(
        self, make_builder: MakeBuilder, mock_server: MockServer
    ) -> None:
        """Non-conformant names are accepted and reach the transport."""
        builder = make_builder("h").with_header_without_validation("X-Custom(1)", "v")

        await builder.send()

        assert mock_server.requests[0].headers["X-Custom(1)"] == "v"

    def test_without_validation_appends(self, make_builder: MakeBuilder) -> None:
        builder = make_builder().with_header("X-A", "1").with_header_without_validation("X-A", "2")
        assert builder.headers.get_list("X-A") == ["1", "2"]


class TestMethods:
    """Tests for method setters."""

    @pytest.mark.parametrize("method", list(HttpMethod))
    async def test_method_sent(
        self, make_builder: MakeBuilder, mock_server: MockServer, method: HttpMethod
    ) -> None:
        builder = make_builder("m").with_method(method)

        await builder.send()

        assert mock_server.requests[0].method == method.value

    def test_shortcuts(self, make_builder: MakeBuilder) -> None:
        builder = make_builder()
        assert builder.post().method is HttpMethod.POST
        assert builder.put().method is HttpMethod.PUT
        assert builder.delete().method is HttpMethod.DELETE
        assert builder.with_method("options").method is HttpMethod.OPTIONS
        assert builder.get().method is HttpMethod.GET


class TestBodies:
    """Tests for request bodies."""

    async def test_text_content(self, make_builder: MakeBuilder, mock_server: MockServer) -> None:
        await make_builder("t").put().with_content("héllo").send()

        request = mock_server.requests[0]
        assert request.content == "héllo".encode()
        assert request.headers["Content-Type"] == "text/plain; charset=utf-8"

    async def test_json_content(self, make_builder: MakeBuilder, mock_server: MockServer) -> None:
        await make_builder("j").post().with_json_content(Payload(name="a", size=1)).send()

        request = mock_server.requests[0]
        assert request.content == b'{"name":"a","size":1}'
        assert request.headers["Content-Type"] == "application/json; charset=utf-8"

    async def test_post_without_body_sends_empty_content(
        self, make_builder: MakeBuilder, mock_server: MockServer
    ) -> None:
        await make_builder("p").post().send()

        request = mock_server.requests[0]
        assert request.content == b""
        assert request.headers["Content-Length"] == "0"

    async def test_declared_headers_override_body_headers(
        self, make_builder: MakeBuilder, mock_server: MockServer
    ) -> None:
        """A declared Content-Type wins over the one derived from the body."""
        builder = (
            make_builder("p")
            .post()
            .with_json_content({"a": 1})
            .with_header("Content-Type", "application/vnd.custom+json")
        )

        await builder.send()

        request = mock_server.requests[0]
        assert request.headers.get_list("Content-Type") == ["application/vnd.custom+json"]
        assert request.content == b'{"a":1}'

    async def test_form_data_parts(
        self, make_builder: MakeBuilder, mock_server: MockServer
    ) -> None:
        """Each part is typed from its extension and carries its length."""
        builder = make_builder("upload").post().with_form_data_content(
            FileContent(content=b"\x89PNG", name="image", filename="logo.png"),
            FileContent(content=b"abc", name="blob", filename="data.unknown-ext"),
            fields={"title": "Logo"},
        )

        await builder.send()

        request = mock_server.requests[0]
        body = request.content
        assert request.headers["Content-Type"].startswith("multipart/form-data; boundary=")
        assert b'name="image"; filename="logo.png"' in body
        assert b"Content-Type: image/png" in body
        assert b"Content-Length: 4" in body
        assert b"Content-Type: application/octet-stream" in body
        assert b"Content-Length: 3" in body
        assert b'name="title"' in body
        assert b"Logo" in body

    async def test_form_data_file(self, make_builder: MakeBuilder, mock_server: MockServer) -> None:
        await make_builder("upload").post().with_form_data_file(b"hi", "doc", "a.txt").send()

        body = mock_server.requests[0].content
        assert b'name="doc"; filename="a.txt"' in body
        assert b"Content-Type: text/plain" in body

    async def test_properties_sent_as_extensions(
        self, make_builder: MakeBuilder, mock_server: MockServer
    ) -> None:
        await make_builder("x").with_property("trace_id", "abc").send()

        assert mock_server.requests[0].extensions["trace_id"] == "abc"


class TestDispatch:
    """Tests for send(): lifecycle order, counters and snapshots."""

    async def test_lifecycle_order(
        self, make_builder: MakeBuilder, recording_observer: RecordingObserver
    ) -> None:
        builder = make_builder("ok")
        builder.before_send(lambda b: recording_observer.calls.append(ObserverCall("before_send")))
        builder.after_send(lambda b: recording_observer.calls.append(ObserverCall("after_send")))

        await builder.send()
        await asyncio.sleep(0)

        assert recording_observer.hooks == [
            "on_request_created",
            "before_send",
            "transform_send_task",
            "on_request_started",
            "after_send",
            "on_request_finished",
        ]

    async def test_before_send_hooks_in_registration_order(
        self, make_builder: MakeBuilder, mock_server: MockServer
    ) -> None:
        """Before hooks run before the request is built, so their changes are sent."""
        order: list[int] = []
        builder = make_builder("ok")
        builder.before_send(lambda b: order.append(1))
        builder.before_send(lambda b: (order.append(2), b.with_header("X-Hook", "yes")))

        await builder.send()

        assert order == [1, 2]
        assert mock_server.requests[0].headers["X-Hook"] == "yes"

    async def test_observer_sees_finalized_uri(
        self, make_builder: MakeBuilder, recording_observer: RecordingObserver
    ) -> None:
        builder = make_builder("s").with_parameter("q", "1")

        await builder.send()

        created = recording_observer.calls_to("on_request_created")[0]
        assert created.args[0].request_url == httpx.URL("http://testserver/s?q=1")

    async def test_request_ids_are_sequential(
        self, make_builder: MakeBuilder, request_counters: RequestCounters
    ) -> None:
        first = make_builder("a").send()
        second = make_builder("b").send()

        assert (first.request_id, second.request_id) == (0, 1)
        await first
        await second
        assert request_counters.dispatched == 2

    async def test_in_flight_counts_concurrent_dispatches(
        self,
        make_builder: MakeBuilder,
        mock_server: MockServer,
        request_counters: RequestCounters,
    ) -> None:
        release = asyncio.Event()

        async def held(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(200)

        mock_server.set_handler("GET", "/held", held)

        handlers = [make_builder("held").send() for _ in range(5)]
        await asyncio.sleep(0)
        assert request_counters.in_flight == 5

        release.set()
        await asyncio.gather(*(handler.unwrap() for handler in handlers))
        await asyncio.sleep(0)

        assert request_counters.in_flight == 0
        assert request_counters.dispatched == 5

    async def test_in_flight_decremented_on_failure(
        self,
        make_builder: MakeBuilder,
        mock_server: MockServer,
        request_counters: RequestCounters,
    ) -> None:
        mock_server.set_failure(httpx.ConnectError("refused"))

        outcome = await make_builder("x").send().outcome()
        await asyncio.sleep(0)

        assert outcome.is_failure
        assert request_counters.in_flight == 0

    async def test_later_mutation_does_not_affect_sent_request(
        self, make_builder: MakeBuilder, mock_server: MockServer
    ) -> None:
        builder = make_builder("snap").with_parameter("a", "1").with_header("X-A", "1")

        handler = builder.send()
        builder.with_parameter("late", "2").with_header("X-A", "changed").post()
        await handler

        request = mock_server.requests[0]
        assert request.method == "GET"
        assert_query_equals(request.url, {"a": "1"})
        assert request.headers["X-A"] == "1"

    async def test_same_builder_dispatched_concurrently(
        self, make_builder: MakeBuilder, mock_server: MockServer
    ) -> None:
        mock_server.set_response("GET", "/twice", json={"ok": True})
        builder = make_builder("twice")

        responses = await asyncio.gather(builder.send().unwrap(), builder.send().unwrap())

        assert [r.status_code for r in responses] == [200, 200]
        assert len(mock_server.requests_for("/twice")) == 2

    async def test_connection_failure_uses_observer_message(
        self,
        make_builder: MakeBuilder,
        mock_server: MockServer,
        recording_observer: RecordingObserver,
    ) -> None:
        native = httpx.ConnectError("refused")
        mock_server.set_failure(native)

        with pytest.raises(NoConnectionError) as exc_info:
            await make_builder("down").send()

        error = exc_info.value
        assert str(error) == "observer: no connection"
        assert error.native_error is native
        assert error.__cause__ is None
        assert recording_observer.calls_to("build_connection_error_message")[0].args[1] is native

    async def test_default_connection_message_names_url(
        self, mock_client: httpx.AsyncClient, mock_server: MockServer
    ) -> None:
        mock_server.set_failure(httpx.ConnectError("refused"))
        builder = RequestBuilder(RequestObserver(), mock_client, "down", counters=RequestCounters())

        with pytest.raises(NoConnectionError, match="No connection to http://testserver/down"):
            await builder.send()

    async def test_connection_message_names_dispatched_url(
        self, mock_client: httpx.AsyncClient, mock_server: MockServer
    ) -> None:
        """Changing the builder after send() does not leak into the failure message."""
        mock_server.set_failure(httpx.ConnectError("refused"))
        builder = RequestBuilder(RequestObserver(), mock_client, "items", counters=RequestCounters())

        handler = builder.with_parameter("page", "1").send()
        builder.with_parameter("page", "999")

        with pytest.raises(NoConnectionError) as exc_info:
            await handler

        assert str(exc_info.value) == "No connection to http://testserver/items?page=1: refused"
        assert exc_info.value.native_error.request.url == "http://testserver/items?page=1"

    async def test_send_failed_logged_with_own_request_id(
        self,
        make_builder: MakeBuilder,
        mock_server: MockServer,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        mock_server.set_handler("GET", "/down", refuse)
        builder = make_builder("down")
        logger = MagicMock()
        monkeypatch.setattr("httpbuilder.request.builder.logger", logger)

        first = builder.send()
        second = builder.send()
        await asyncio.gather(first.outcome(), second.outcome())

        failed = [
            call.kwargs["request_id"]
            for call in logger.debug.call_args_list
            if call.args[0] == "httpbuilder.request.send_failed"
        ]
        assert sorted(failed) == [0, 1]
        assert builder.request_id == 1

    async def test_transform_send_task_wraps_send(
        self, make_builder: MakeBuilder, mock_server: MockServer
    ) -> None:
        """The observer can wrap the send and replace its result."""
        mock_server.set_response("GET", "/wrapped", status_code=200)

        class Wrapping(RequestObserver):
            def transform_send_task(self, builder, request, send):
                async def wrapped() -> httpx.Response:
                    response = await send()
                    response.headers["X-Wrapped"] = "1"
                    return response

                return wrapped()

        builder = make_builder("wrapped")
        builder.observer = Wrapping()

        response = await builder.send()

        assert response.headers["X-Wrapped"] == "1"

    async def test_finished_hook_errors_are_swallowed(
        self, make_builder: MakeBuilder, request_counters: RequestCounters
    ) -> None:
        class Failing(RequestObserver):
            def on_request_finished(self, handler):
                raise RuntimeError("observer bug")

        builder = make_builder("ok")
        builder.observer = Failing()

        response = await builder.send()
        await asyncio.sleep(0)

        assert response.status_code == 404
        assert request_counters.in_flight == 0

    async def test_hooks_reach_started_before_finished(
        self, make_builder: MakeBuilder, recording_observer: RecordingObserver
    ) -> None:
        await make_builder("x").send()
        await asyncio.sleep(0)
        assert_hooks_called_in_order(
            recording_observer, ["on_request_started", "on_request_finished"]
        )
