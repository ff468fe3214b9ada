"""Tests for madhatter.chain -- composition, append, reuse, root boundary."""

import threading

import pytest

from madhatter.boundary import RootHandler, create_root_handler
from madhatter.chain import Chain, new
from madhatter.context import Context, with_value
from madhatter.handler import Constructor, Handler, HandlerFunc
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter
from madhatter.testing import ResponseRecorder, new_request

TAG_KEY = "tag"


def tag_middleware(tag: str) -> Constructor:
    """Constructor whose handler appends *tag* to the context's tag value.

    Useful for checking that a chain nests in the right order.
    """

    def construct(h: Handler) -> Handler:
        def serve(ctx: Context, w: ResponseWriter, r: Request) -> None:
            existing = ctx.value(TAG_KEY, "")
            h.serve_http(with_value(ctx, TAG_KEY, existing + tag), w, r)

        return HandlerFunc(serve)

    return construct


def _app(ctx: Context, w: ResponseWriter, r: Request) -> None:
    w.write(ctx.value(TAG_KEY, "") + "app\n")


echo_app = HandlerFunc(_app)


def _serve(handler, request: Request | None = None) -> ResponseRecorder:
    w = ResponseRecorder()
    handler.serve_http(w, request or new_request("GET", "/"))
    return w


class TestNew:
    def test_keeps_constructors_in_order(self) -> None:
        def c1(h: Handler) -> Handler:
            return h

        def c2(h: Handler) -> Handler:
            return h

        constructors = [c1, c2]
        chain = Chain(*constructors)

        assert chain.constructors[0] is c1
        assert chain.constructors[1] is c2

    def test_copies_caller_sequence(self) -> None:
        def c1(h: Handler) -> Handler:
            return h

        constructors = [c1]
        chain = Chain(*constructors)
        constructors.append(c1)

        assert len(chain) == 1

    def test_new_is_chain(self) -> None:
        chain = new(tag_middleware("a"))
        assert isinstance(chain, Chain)
        assert len(chain) == 1

    def test_empty_chain_is_valid(self) -> None:
        assert len(Chain()) == 0

    def test_constructors_not_called_at_creation(self) -> None:
        calls: list[str] = []

        def c1(h: Handler) -> Handler:
            calls.append("c1")
            return h

        Chain(c1)
        assert calls == []

    def test_chain_is_immutable(self) -> None:
        chain = Chain()
        with pytest.raises(AttributeError, match="immutable"):
            chain._constructors = ()  # type: ignore[misc]
        with pytest.raises(AttributeError):
            del chain._finalize


class TestThen:
    def test_works_with_no_middleware(self) -> None:
        final = Chain().then(echo_app)
        assert final is not None

        w = _serve(final)
        assert w.text == "app\n"

    def test_returns_root_handler(self) -> None:
        final = Chain(tag_middleware("x")).then(echo_app)
        assert isinstance(final, RootHandler)

    def test_treats_none_as_default_serve_mux(self) -> None:
        w = _serve(Chain().then(None))

        assert w.status == 404
        assert w.header("Content-Type") == "text/plain; charset=utf-8"

    def test_then_func_treats_none_as_default_serve_mux(self) -> None:
        w = _serve(Chain().then_func(None))

        assert w.status == 404
        assert w.header("Content-Type") == "text/plain; charset=utf-8"

    def test_orders_handlers_right(self) -> None:
        chained = Chain(
            tag_middleware("t1\n"),
            tag_middleware("t2\n"),
            tag_middleware("t3\n"),
        ).then(echo_app)

        assert _serve(chained).text == "t1\nt2\nt3\napp\n"

    def test_then_func_wraps_plain_function(self) -> None:
        chained = Chain(tag_middleware("t1\n")).then_func(_app)
        assert _serve(chained).text == "t1\napp\n"

    def test_equivalent_to_manual_composition(self) -> None:
        t1, t2, t3 = tag_middleware("a"), tag_middleware("b"), tag_middleware("c")

        chained = Chain(t1, t2, t3).then(echo_app)
        manual = create_root_handler(t1(t2(t3(echo_app))))

        assert _serve(chained).text == _serve(manual).text == "abcapp\n"

    def test_pre_and_post_work_nest(self) -> None:
        events: list[str] = []

        def tracing(name: str) -> Constructor:
            def construct(h: Handler) -> Handler:
                def serve(ctx: Context, w: ResponseWriter, r: Request) -> None:
                    events.append(f"{name}:before")
                    h.serve_http(ctx, w, r)
                    events.append(f"{name}:after")

                return HandlerFunc(serve)

            return construct

        def app(ctx: Context, w: ResponseWriter, r: Request) -> None:
            events.append("app")

        _serve(Chain(tracing("outer"), tracing("inner")).then_func(app))

        assert events == [
            "outer:before",
            "inner:before",
            "app",
            "inner:after",
            "outer:after",
        ]

    def test_short_circuit_stops_inner_handlers(self) -> None:
        reached: list[str] = []

        def gate(h: Handler) -> Handler:
            def serve(ctx: Context, w: ResponseWriter, r: Request) -> None:
                w.write_header(401)
                w.write("unauthorized\n")

            return HandlerFunc(serve)

        def spy(h: Handler) -> Handler:
            def serve(ctx: Context, w: ResponseWriter, r: Request) -> None:
                reached.append("spy")
                h.serve_http(ctx, w, r)

            return HandlerFunc(serve)

        def app(ctx: Context, w: ResponseWriter, r: Request) -> None:
            reached.append("app")

        w = _serve(Chain(gate, spy).then_func(app))

        assert w.status == 401
        assert w.text == "unauthorized\n"
        assert reached == []


class TestReuse:
    def test_constructors_reinvoked_per_then(self) -> None:
        calls: list[str] = []

        def counting(h: Handler) -> Handler:
            calls.append("built")
            return h

        chain = Chain(counting)
        chain.then(echo_app)
        chain.then(echo_app)

        assert calls == ["built", "built"]

    def test_then_calls_are_independent(self) -> None:
        def counter(h: Handler) -> Handler:
            seen = {"count": 0}

            def serve(ctx: Context, w: ResponseWriter, r: Request) -> None:
                seen["count"] += 1
                w.headers.set("X-Count", str(seen["count"]))
                h.serve_http(ctx, w, r)

            return HandlerFunc(serve)

        def other(ctx: Context, w: ResponseWriter, r: Request) -> None:
            w.write("other\n")

        chain = Chain(counter)
        first = chain.then(echo_app)
        second = chain.then_func(other)

        _serve(first)
        w_first = _serve(first)
        w_second = _serve(second)

        assert w_first.header("X-Count") == "2"
        assert w_first.text == "app\n"
        assert w_second.header("X-Count") == "1"
        assert w_second.text == "other\n"

    def test_chain_shared_across_threads(self) -> None:
        chain = Chain(tag_middleware("t1\n"), tag_middleware("t2\n"))
        results: list[str] = []
        lock = threading.Lock()

        def worker() -> None:
            text = _serve(chain.then(echo_app)).text
            with lock:
                results.append(text)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == ["t1\nt2\napp\n"] * 8


class TestAppend:
    def test_adds_handlers_correctly(self) -> None:
        chain = Chain(tag_middleware("t1\n"), tag_middleware("t2\n"))
        new_chain = chain.append(tag_middleware("t3\n"), tag_middleware("t4\n"))

        assert len(chain) == 2
        assert len(new_chain) == 4

        assert _serve(new_chain.then_func(_app)).text == "t1\nt2\nt3\nt4\napp\n"

    def test_respects_immutability(self) -> None:
        chain = Chain(tag_middleware(""))
        new_chain = chain.append(tag_middleware(""))

        assert new_chain is not chain
        assert new_chain.constructors is not chain.constructors
        assert new_chain.constructors[0] is chain.constructors[0]

    def test_sibling_appends_do_not_alias(self) -> None:
        base = Chain(tag_middleware("base\n"))
        left = base.append(tag_middleware("left\n"))
        right = base.append(tag_middleware("right\n"))

        assert len(base) == 1
        assert _serve(left.then(echo_app)).text == "base\nleft\napp\n"
        assert _serve(right.then(echo_app)).text == "base\nright\napp\n"

    def test_append_nothing_copies(self) -> None:
        chain = Chain(tag_middleware("a"))
        copy = chain.append()

        assert copy is not chain
        assert copy.constructors == chain.constructors

    def test_keeps_fixed_finalizer(self) -> None:
        chain = Chain().append(tag_middleware("a"))
        assert isinstance(chain.then(echo_app), RootHandler)


class TestRootBoundary:
    def test_each_request_gets_fresh_context(self) -> None:
        seen: list[Context] = []

        def app(ctx: Context, w: ResponseWriter, r: Request) -> None:
            seen.append(ctx)

        handler = Chain().then_func(app)
        _serve(handler)
        _serve(handler)

        assert len(seen) == 2
        assert seen[0] is not seen[1]

    def test_context_live_during_request(self) -> None:
        states: list[bool] = []

        def app(ctx: Context, w: ResponseWriter, r: Request) -> None:
            states.append(ctx.cancelled)

        _serve(Chain().then_func(app))
        assert states == [False]

    def test_context_cancelled_after_return(self) -> None:
        seen: list[Context] = []

        def app(ctx: Context, w: ResponseWriter, r: Request) -> None:
            seen.append(ctx)

        _serve(Chain(tag_middleware("x")).then_func(app))

        assert seen[0].cancelled
        assert seen[0].wait(timeout=0)

    def test_context_cancelled_after_exception(self) -> None:
        seen: list[Context] = []

        def app(ctx: Context, w: ResponseWriter, r: Request) -> None:
            seen.append(ctx)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            _serve(Chain(tag_middleware("x")).then_func(app))

        assert seen[0].cancelled

    def test_exception_propagates_through_constructors(self) -> None:
        after: list[str] = []

        def outer(h: Handler) -> Handler:
            def serve(ctx: Context, w: ResponseWriter, r: Request) -> None:
                h.serve_http(ctx, w, r)
                after.append("outer")

            return HandlerFunc(serve)

        def app(ctx: Context, w: ResponseWriter, r: Request) -> None:
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            _serve(Chain(outer).then_func(app))
        assert after == []
