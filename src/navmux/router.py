"""Navigation router: resolves relative urls to registered handlers.

Patterns are collected into an immutable segment tree, then each url is split
into path and query, matched against the tree, and the query params are merged
over the path params.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from functools import reduce

from navmux.tree import (
    Match,
    Node,
    add_route,
    collect_routes,
    find_handler,
    format_routes,
    mount_tree,
)
from navmux.url import parse_query, split_path, split_url

logger = logging.getLogger(__name__)

type RouteFunction[T] = Callable[[str], Match[T] | None]
type Middleware[T] = Callable[[RouteFunction[T]], RouteFunction[T]]


class Router[T]:
    """Maps url paths to handlers.

    Handlers are opaque values, they are never inspected or called by the
    router. Register patterns with `add`, then call the router with a url:

        router = Router()
        router.add("/users/:id", view_user)
        router.add("*", not_found)
        match = router("/users/42?tab=posts")
        # Match(handler=view_user, params={"id": "42", "tab": "posts"}, route="/users/:id")

    The router is finalized on first call (or explicitly with `finalize`);
    after that no more routes or middleware can be added.
    """

    __slots__ = ("_finalized", "_middleware", "_route", "_tree")
    _tree: Node[T]
    _middleware: tuple[Middleware[T], ...]
    _route: RouteFunction[T]
    _finalized: bool

    def __init__(self) -> None:
        self._tree = Node()
        self._middleware = ()
        self._route = self._resolve
        self._finalized = False

    def __call__(self, url: str) -> Match[T] | None:
        if not self._finalized:
            self.finalize()
        return self._route(url)

    def _resolve(self, url: str) -> Match[T] | None:
        """Match the path, then merge query params over path params."""
        path, query = split_url(url)
        match = find_handler(self._tree, split_path(path))
        if match is None or not query:
            return match
        return replace(match, params=match.params | parse_query(query))

    def finalize(self) -> None:
        """Finalize the router.

        Wraps the route function in middleware and freezes the router.
        Idempotent - safe to call multiple times.

        This is called automatically on first use, but can be called manually
        at startup so the first navigation doesn't pay for it. The lazy call is
        not locked, so multi-threaded hosts should finalize before sharing the
        router between threads.
        """
        if self._finalized:
            return
        self._route = reduce(lambda r, m: m(r), reversed(self._middleware), self._resolve)
        self._finalized = True
        if logger.isEnabledFor(logging.INFO):
            logger.info(
                "router finalized with %d routes", len(collect_routes(self._tree))
            )

    def add(self, pattern: str, handler: T) -> None:
        """Registers handler in tree at pattern.

        Registering the same pattern twice replaces the earlier handler.
        """
        self._check_not_finalized()
        self._tree = add_route(self._tree, pattern, handler)

    def use(self, *middleware: Middleware[T]) -> None:
        """Adds middleware around the route function."""
        self._check_not_finalized()
        self._middleware = self._middleware + middleware

    def mount(self, prefix: str, router: Router[T]) -> None:
        """Merges in another router's routes underneath prefix.

        Middleware of the mounted router is not carried over; add it to this
        router instead.
        """
        self._check_not_finalized()
        if router._middleware:
            msg = "cannot mount a router that has middleware"
            raise ValueError(msg)
        self._tree = mount_tree(prefix, self._tree, router._tree)

    def routes(self) -> list[tuple[str, T]]:
        """Registered (pattern, handler) pairs, patterns in canonical form."""
        return collect_routes(self._tree)

    def format(self, *, tree: bool = False) -> str:
        """Human-readable route table, see `navmux.tree.format_routes`."""
        return format_routes(self._tree, tree=tree)

    def _check_not_finalized(self) -> None:
        if self._finalized:
            msg = "router is finalized"
            raise ValueError(msg)


def build_router[T](
    routes: Mapping[str, T],
    *,
    middleware: tuple[Middleware[T], ...] = (),
) -> Router[T]:
    """Build and finalize a router from a pattern -> handler mapping.

    Example:
        route = build_router({
            "": "home",
            "users/:id": "view_user",
            "*url": "not_found",
        })
        route("/users/42").params  # {"id": "42"}
    """
    router: Router[T] = Router()
    for pattern, handler in routes.items():
        router.add(pattern, handler)
    router.use(*middleware)
    router.finalize()
    return router
