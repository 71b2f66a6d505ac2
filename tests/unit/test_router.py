"""
Unit tests for the exact-match router.
"""

import pytest

from weehttp import Method, Protocol, Request, Response, StatusCode
from weehttp.http.router import Router, RouterFrozenError, not_found_handler


def make_request(path: str) -> Request:
    """Helper to create a request for testing."""
    return Request(protocol=Protocol.HTTP_1_1, method=Method.GET, path=path)


def dummy_handler(request: Request) -> Response:
    """Dummy handler for testing."""
    return Response().set_body(request.path)


def other_handler(request: Request) -> Response:
    return Response(StatusCode.ACCEPTED)


class TestRouter:
    """Tests for Router class."""

    def test_register_and_resolve(self):
        router = Router()
        router.register("/a", dummy_handler)

        assert router.resolve("/a") is dummy_handler

    def test_trailing_slash_equivalent(self):
        """Test that /a and /a/ resolve to the same handler."""
        router = Router()
        router.register("/a", dummy_handler)

        assert router.resolve("/a/") is dummy_handler
        assert "/a/" in router

    def test_registration_normalizes(self):
        """Test that a route registered with a trailing slash is keyed without it."""
        router = Router()
        router.register("/users/", dummy_handler)

        assert dict(router.routes) == {"/users": dummy_handler}
        assert router.resolve("/users") is dummy_handler

    def test_root(self):
        """Test that "/" is stored under the empty key and matches both forms."""
        router = Router()
        router.register("/", dummy_handler)

        assert "" in router.routes
        assert router.resolve("") is dummy_handler
        assert router.resolve("/") is dummy_handler

    def test_register_overwrites(self):
        router = Router()
        router.register("/a", dummy_handler)
        router.register("/a/", other_handler)

        assert router.resolve("/a") is other_handler
        assert len(router) == 1

    def test_unregistered_path_gets_default(self):
        """Test that the built-in default answers 404."""
        router = Router()
        router.register("/a", dummy_handler)

        handler = router.resolve("/b")
        assert handler is not_found_handler
        assert handler(make_request("/b")).status_code == StatusCode.NOT_FOUND

    def test_custom_default(self):
        router = Router(default=other_handler)

        assert router.resolve("/anything") is other_handler

    def test_set_default(self):
        router = Router()
        router.set_default(other_handler)

        assert router.default is other_handler

    def test_no_prefix_matching(self):
        """Test that only exact paths match."""
        router = Router()
        router.register("/api", dummy_handler)

        assert router.lookup("/api/users") is None
        assert router.lookup("/ap") is None
        assert router.resolve("/api/users") is not_found_handler

    def test_route_decorator(self):
        router = Router()

        @router.route("/echo")
        def echo(request):
            return Response().set_body(request.body)

        assert router.resolve("/echo") is echo

    def test_callable_object_handler(self):
        """Test that any callable works as a handler."""
        class Greeter:
            def __call__(self, request):
                return Response().set_body("hi")

        router = Router()
        greeter = Greeter()
        router.register("/hi", greeter)

        assert router.resolve("/hi")(make_request("/hi")).body == "hi"

    def test_iteration(self):
        router = Router()
        router.register("/a", dummy_handler)
        router.register("/b", other_handler)

        assert sorted(path for path, _ in router) == ["/a", "/b"]


class TestFrozenRouter:
    """Tests for the read-only table shared by workers."""

    def test_freeze_blocks_registration(self):
        router = Router()
        router.register("/a", dummy_handler)
        router.freeze()

        assert router.frozen
        with pytest.raises(RouterFrozenError):
            router.register("/b", dummy_handler)
        with pytest.raises(RouterFrozenError):
            router.set_default(dummy_handler)

    def test_frozen_still_resolves(self):
        router = Router()
        router.register("/a", dummy_handler)
        router.freeze()

        assert router.resolve("/a/") is dummy_handler
        assert router.resolve("/z") is not_found_handler

    def test_freeze_idempotent(self):
        router = Router()
        assert router.freeze() is router
        assert router.freeze() is router

    def test_routes_view_read_only(self):
        router = Router()
        router.register("/a", dummy_handler)

        with pytest.raises(TypeError):
            router.routes["/b"] = dummy_handler
