"""
=============================================================================
EXACT-MATCH ROUTER
=============================================================================

Maps a normalized path to a handler, one handler per path.

    register("/users/", list_users)      key "/users"
    register("/", index)                 key ""

    resolve("/users")   → list_users
    resolve("/users/")  → list_users     (same key after normalization)
    resolve("/nope")    → default handler (404 unless replaced)

There is no method dispatch, no prefix matching and no ":param" or "*"
segments: a path either equals a registered key or falls through to the
default handler.

=============================================================================
SHARING ACROSS WORKERS
=============================================================================

The table is filled before the server starts listening, then frozen.
freeze() swaps the dict for a read-only view, so every worker thread can
resolve() without a lock and nothing can register a route mid-flight.
=============================================================================
"""

from types import MappingProxyType
from typing import Callable, Dict, Iterator, Mapping, Optional, Tuple

from .request import Request, normalize_path
from .response import Response, not_found


Handler = Callable[[Request], Response]


def not_found_handler(request: Request) -> Response:
    """Built-in default handler: 404 with a short apology."""
    return not_found()


class RouterFrozenError(RuntimeError):
    """Raised when a route is registered after the server started listening."""


class Router:
    """
    Exact-match route table.

    Usage:
        router = Router()
        router.register("/", index)

        @router.route("/echo")
        def echo(request):
            return Response().set_body(request.body)

        handler = router.resolve(request.path)
        response = handler(request)
    """

    def __init__(self, default: Optional[Handler] = None):
        """
        Args:
            default: Handler for paths with no entry. Defaults to the
                     built-in 404 handler.
        """
        self._routes: Dict[str, Handler] = {}
        self._default: Handler = default or not_found_handler
        self._frozen = False

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, path: str, handler: Handler) -> None:
        """
        Insert or replace the handler for a path.

        The path is normalized the same way the parser normalizes request
        paths, so "/a", "/a/" and "/a//" all register key "/a".

        Raises:
            RouterFrozenError: If the router has been frozen.
        """
        self._check_mutable()
        self._routes[normalize_path(path)] = handler

    def route(self, path: str) -> Callable[[Handler], Handler]:
        """Decorator form of register(); returns the function unchanged."""
        def decorator(handler: Handler) -> Handler:
            self.register(path, handler)
            return handler
        return decorator

    def set_default(self, handler: Handler) -> None:
        """Replace the handler used when no path matches."""
        self._check_mutable()
        self._default = handler

    def freeze(self) -> "Router":
        """Make the table read-only. Idempotent."""
        if not self._frozen:
            self._routes = MappingProxyType(dict(self._routes))
            self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RouterFrozenError("Routes cannot change once the server is listening")

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def resolve(self, path: str) -> Handler:
        """
        Find the handler for a path, or the default handler.

        The lookup normalizes its argument, so callers may pass either a
        raw or an already normalized path.
        """
        return self._routes.get(normalize_path(path), self._default)

    def lookup(self, path: str) -> Optional[Handler]:
        """Like resolve(), but None instead of the default handler."""
        return self._routes.get(normalize_path(path))

    @property
    def default(self) -> Handler:
        return self._default

    @property
    def routes(self) -> Mapping[str, Handler]:
        """Read-only view of the table, keyed by normalized path."""
        return MappingProxyType(self._routes) if not self._frozen else self._routes

    def __contains__(self, path: str) -> bool:
        return normalize_path(path) in self._routes

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[Tuple[str, Handler]]:
        return iter(self._routes.items())
