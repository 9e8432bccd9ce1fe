"""Tests for the dispatch pipeline: ordering, halting, errors, finalization."""

import logging
from typing import Any

import pytest

from conduit import HALT, App, RequestContext, get_context
from conduit.context import ResponseState
from conduit.errors import MiddlewareNotFound
from conduit.pipeline import PipelineConfiguration
from conduit.server.handler import DispatchOutcome, handle_request
from conduit.testing import TestClient


def _scope(path: str, method: str = "GET", host: str = "testserver") -> dict[str, Any]:
    return {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [(b"host", host.encode())],
    }


async def _receive() -> dict[str, Any]:
    return {"type": "http.disconnect"}


class _Sink:
    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def __call__(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def status(self) -> int:
        return next(m["status"] for m in self.messages if m["type"] == "http.response.start")


async def _dispatch(pipeline: PipelineConfiguration, path: str) -> tuple[DispatchOutcome | None, _Sink]:
    sink = _Sink()
    outcome = await handle_request(_scope(path), _receive, sink, pipeline=pipeline)
    return outcome, sink


class TestOrdering:
    @pytest.mark.asyncio
    async def test_full_pipeline_order(self) -> None:
        app = App()
        calls: list[str] = []

        app.register_hook(lambda ctx: calls.append("before1"), "before")
        app.register_hook(lambda ctx: calls.append("before2"), "before")
        app.register_hook(lambda ctx: calls.append("after1"), "after")
        app.register_hook(lambda ctx: calls.append("after2"), "after")
        app.register_middleware("m1", lambda ctx: calls.append("m1"))

        async def m2(ctx: RequestContext) -> None:
            calls.append("m2")

        async def handler(ctx: RequestContext) -> None:
            calls.append("handler")
            await ctx.send("ok")

        app.on("GET", "/x", {"middleware": ["m1", m2]}, handler)
        response = await TestClient(app).get("/x")

        assert response.status == 200
        assert response.text == "ok"
        assert calls == ["before1", "before2", "m1", "m2", "handler", "after1", "after2"]

    @pytest.mark.asyncio
    async def test_each_step_awaited_before_next(self) -> None:
        app = App()
        calls: list[str] = []

        @app.before
        async def slow_before(ctx: RequestContext) -> None:
            calls.append("before:start")
            ctx.locals["user"] = "ada"
            calls.append("before:end")

        @app.route("/me")
        async def me(ctx: RequestContext) -> None:
            calls.append("handler")
            await ctx.send({"user": ctx.locals["user"]})

        response = await TestClient(app).get("/me")
        assert response.json() == {"user": "ada"}
        assert calls == ["before:start", "before:end", "handler"]

    @pytest.mark.asyncio
    async def test_after_hooks_see_finalized_response(self) -> None:
        app = App()
        seen: list[bool] = []

        @app.after
        def check(ctx: RequestContext) -> None:
            seen.append(ctx.finalized)

        @app.route("/x")
        async def handler(ctx: RequestContext) -> None:
            await ctx.send("done")

        await TestClient(app).get("/x")
        assert seen == [True]


class TestHalt:
    @pytest.mark.asyncio
    async def test_halt_skips_rest(self) -> None:
        app = App()
        calls: list[str] = []

        @app.after
        def after(ctx: RequestContext) -> None:
            calls.append("after")

        async def deny(ctx: RequestContext) -> object:
            calls.append("deny")
            await ctx.set_status(401).end()
            return HALT

        def never(ctx: RequestContext) -> None:
            calls.append("never")

        async def handler(ctx: RequestContext) -> None:
            calls.append("handler")

        app.on("GET", "/x", {"middleware": [deny, never]}, handler)
        response = await TestClient(app).get("/x")

        assert response.status == 401
        assert calls == ["deny"]

    @pytest.mark.asyncio
    async def test_literal_false_halts(self) -> None:
        app = App()
        calls: list[str] = []

        def reject(ctx: RequestContext) -> bool:
            return False

        app.on("GET", "/x", {"middleware": reject}, lambda ctx: calls.append("handler"))
        response = await TestClient(app).get("/x")

        assert calls == []
        # Halted without writing: the pipeline still closes the exchange.
        assert response.status == 200
        assert response.completed

    @pytest.mark.asyncio
    async def test_none_continues(self) -> None:
        app = App()

        def noop(ctx: RequestContext) -> None:
            return None

        async def handler(ctx: RequestContext) -> None:
            await ctx.send("reached")

        app.on("GET", "/x", {"middleware": [noop]}, handler)
        assert (await TestClient(app).get("/x")).text == "reached"

    @pytest.mark.asyncio
    async def test_halt_is_done(self) -> None:
        app = App()
        app.on("GET", "/x", {"middleware": [lambda ctx: HALT]}, lambda ctx: None)
        outcome, sink = await _dispatch(app.pipeline, "/x")
        assert outcome is DispatchOutcome.DONE
        assert sink.status == 200


class TestErrors:
    @pytest.mark.asyncio
    async def test_handler_error_gives_500(self) -> None:
        app = App()

        @app.route("/boom")
        async def boom(ctx: RequestContext) -> None:
            ctx.set_headers({"X-Partial": "yes"})
            raise RuntimeError("boom")

        response = await TestClient(app).get("/boom")
        assert response.status == 500
        assert response.body == b""
        assert "x-partial" not in response.headers
        assert response.start_count == 1

    @pytest.mark.asyncio
    async def test_error_hooks_receive_ctx_and_exc(self) -> None:
        app = App()
        seen: list[tuple[str, Any, BaseException]] = []
        error = ValueError("bad")

        @app.on_error
        def e1(ctx: RequestContext, exc: Exception) -> None:
            seen.append(("e1", ctx, exc))

        @app.on_error
        async def e2(ctx: RequestContext, exc: Exception) -> None:
            seen.append(("e2", ctx, exc))

        @app.route("/x")
        def handler(ctx: RequestContext) -> None:
            raise error

        response = await TestClient(app).get("/x")
        assert response.status == 500
        assert [label for label, _, _ in seen] == ["e1", "e2"]
        assert all(exc is error for _, _, exc in seen)
        assert isinstance(seen[0][1], RequestContext)
        assert seen[0][1] is seen[1][1]

    @pytest.mark.asyncio
    async def test_error_hook_can_write_response(self) -> None:
        app = App()

        @app.on_error
        async def render(ctx: RequestContext, exc: Exception) -> None:
            await ctx.set_status(503).send({"error": str(exc)})

        @app.route("/x")
        def handler(ctx: RequestContext) -> None:
            raise RuntimeError("down")

        response = await TestClient(app).get("/x")
        assert response.status == 503
        assert response.json() == {"error": "down"}
        assert response.start_count == 1

    @pytest.mark.asyncio
    async def test_raising_error_hook_skips_rest_and_gives_500(self) -> None:
        app = App()
        calls: list[str] = []

        @app.on_error
        def broken(ctx: RequestContext, exc: Exception) -> None:
            calls.append("broken")
            raise KeyError("oops")

        @app.on_error
        def later(ctx: RequestContext, exc: Exception) -> None:
            calls.append("later")

        @app.route("/x")
        def handler(ctx: RequestContext) -> None:
            raise RuntimeError("first")

        response = await TestClient(app).get("/x")
        assert response.status == 500
        assert calls == ["broken"]

    @pytest.mark.asyncio
    async def test_before_hook_error(self) -> None:
        app = App()
        calls: list[str] = []

        @app.before
        def fail(ctx: RequestContext) -> None:
            raise RuntimeError("no session")

        @app.on_error
        def record(ctx: RequestContext, exc: Exception) -> None:
            calls.append(str(exc))

        @app.route("/x")
        def handler(ctx: RequestContext) -> None:
            calls.append("handler")

        response = await TestClient(app).get("/x")
        assert response.status == 500
        assert calls == ["no session"]

    @pytest.mark.asyncio
    async def test_after_hook_error_after_response_sent(self) -> None:
        app = App()
        errors: list[Exception] = []

        @app.after
        def fail(ctx: RequestContext) -> None:
            raise RuntimeError("late")

        @app.on_error
        def record(ctx: RequestContext, exc: Exception) -> None:
            errors.append(exc)

        @app.route("/x")
        async def handler(ctx: RequestContext) -> None:
            await ctx.send("ok")

        response = await TestClient(app).get("/x")
        # Already finalized; the error path cannot change the status.
        assert response.status == 200
        assert response.text == "ok"
        assert response.start_count == 1
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_error_after_headers_flushed(self) -> None:
        app = App()

        @app.route("/x")
        async def handler(ctx: RequestContext) -> None:
            await ctx.send("partial", finalize=False)
            raise RuntimeError("mid-stream")

        response = await TestClient(app).get("/x")
        assert response.status == 200
        assert response.start_count == 1
        assert response.completed
        assert response.text == "partial"

    @pytest.mark.asyncio
    async def test_missing_named_middleware(self) -> None:
        app = App()
        seen: list[Exception] = []
        calls: list[str] = []

        @app.on_error
        def record(ctx: RequestContext, exc: Exception) -> None:
            seen.append(exc)

        app.on("GET", "/x", {"middleware": ["missing"]}, lambda ctx: calls.append("handler"))
        response = await TestClient(app).get("/x")

        assert response.status == 500
        assert calls == []
        assert len(seen) == 1
        assert isinstance(seen[0], MiddlewareNotFound)
        assert seen[0].name == "missing"

    @pytest.mark.asyncio
    async def test_outcome_failed(self) -> None:
        app = App()

        def handler(ctx: RequestContext) -> None:
            raise RuntimeError("x")

        app.on("GET", "/x", handler)
        outcome, sink = await _dispatch(app.pipeline, "/x")
        assert outcome is DispatchOutcome.FAILED
        assert sink.status == 500

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        app = App()

        def handler(ctx: RequestContext) -> None:
            raise RuntimeError("logged")

        app.on("GET", "/x", handler)
        with caplog.at_level(logging.ERROR, logger="conduit.server"):
            await TestClient(app).get("/x")
        assert any("500 GET /x" in record.getMessage() for record in caplog.records)


class TestNotFound:
    @pytest.mark.asyncio
    async def test_unmatched_gives_404_and_runs_no_hooks(self) -> None:
        app = App()
        calls: list[str] = []
        app.register_hook(lambda ctx: calls.append("before"), "before")
        app.register_hook(lambda ctx: calls.append("after"), "after")
        app.register_hook(lambda ctx, exc: calls.append("error"), "error")

        response = await TestClient(app).get("/nowhere")
        assert response.status == 404
        assert response.completed
        assert calls == []

    @pytest.mark.asyncio
    async def test_outcome_not_found(self) -> None:
        outcome, sink = await _dispatch(App().pipeline, "/nowhere")
        assert outcome is DispatchOutcome.NOT_FOUND
        assert sink.status == 404

    @pytest.mark.asyncio
    async def test_method_mismatch_is_404(self) -> None:
        app = App()
        app.on("POST", "/x", lambda ctx: None)
        assert (await TestClient(app).get("/x")).status == 404


class TestFinalization:
    @pytest.mark.asyncio
    async def test_handler_that_never_writes_gets_closed(self) -> None:
        app = App()

        def handler(ctx: RequestContext) -> None:
            ctx.set_status(202).set_headers({"X-Queued": "1"})

        app.on("GET", "/x", handler)
        outcome, sink = await _dispatch(app.pipeline, "/x")

        assert outcome is DispatchOutcome.DONE
        assert sink.status == 202
        assert sink.messages[-1]["more_body"] is False

    @pytest.mark.asyncio
    async def test_open_stream_gets_closed(self) -> None:
        app = App()

        async def handler(ctx: RequestContext) -> None:
            await ctx.send("chunk", finalize=False)

        app.on("GET", "/x", handler)
        response = await TestClient(app).get("/x")
        assert response.completed
        assert response.text == "chunk"
        assert response.start_count == 1

    @pytest.mark.asyncio
    async def test_exactly_one_start_message(self) -> None:
        app = App()

        async def handler(ctx: RequestContext) -> None:
            await ctx.send("a", finalize=False)
            await ctx.send("b", finalize=False)
            await ctx.end("c")
            await ctx.end("ignored")

        app.on("GET", "/x", handler)
        response = await TestClient(app).get("/x")
        assert response.start_count == 1
        assert response.text == "abc"


class TestContextVar:
    @pytest.mark.asyncio
    async def test_current_context_during_dispatch(self) -> None:
        app = App()
        seen: list[RequestContext] = []

        def helper() -> None:
            seen.append(get_context())

        def handler(ctx: RequestContext) -> None:
            helper()
            assert seen[0] is ctx

        app.on("GET", "/x", handler)
        await TestClient(app).get("/x")

        assert len(seen) == 1
        assert seen[0].state is ResponseState.FINALIZED
        with pytest.raises(LookupError):
            get_context()

    @pytest.mark.asyncio
    async def test_reset_after_failure(self) -> None:
        app = App()

        def handler(ctx: RequestContext) -> None:
            raise RuntimeError("x")

        app.on("GET", "/x", handler)
        await TestClient(app).get("/x")
        with pytest.raises(LookupError):
            get_context()


class TestScenarios:
    @pytest.mark.asyncio
    async def test_user_lookup_with_auth_and_session(self) -> None:
        app = App()
        calls: list[str] = []

        @app.before
        def load_session(ctx: RequestContext) -> None:
            calls.append("session")
            ctx.session = {"user": "ada"}

        @app.middleware("auth")
        async def auth(ctx: RequestContext) -> object:
            calls.append("auth")
            if ctx.session is None:
                await ctx.set_status(401).end()
                return HALT
            return None

        async def show_user(ctx: RequestContext) -> None:
            calls.append("handler")
            await ctx.set_headers({"Cache-Control": "no-store"}).send(
                {"id": ctx.params["id"], "by": ctx.session["user"]}
            )

        app.on("GET", "/users/:id", {"middleware": ["auth"]}, show_user)
        response = await TestClient(app).get("/users/42")

        assert response.status == 200
        assert response.json() == {"id": "42", "by": "ada"}
        assert response.headers["content-type"] == "application/json; charset=utf-8"
        assert response.headers["cache-control"] == "no-store"
        assert calls == ["session", "auth", "handler"]

    @pytest.mark.asyncio
    async def test_middleware_registered_after_route(self) -> None:
        app = App()

        async def handler(ctx: RequestContext) -> None:
            await ctx.send(ctx.locals["tag"])

        app.on("GET", "/x", {"middleware": ["tag"]}, handler)

        @app.middleware("tag")
        def tag(ctx: RequestContext) -> None:
            ctx.locals["tag"] = "late"

        assert (await TestClient(app).get("/x")).text == "late"
