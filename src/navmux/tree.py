"""Zero dependency routing tree with named and wildcard segment support.

Patterns are ``/``-delimited segments:

    users             literal, matched case-insensitively
    :name             named, captures exactly one segment
    *rest             wildcard, captures every remaining segment joined by "/"

Lookup backtracks: at every level a literal match is tried before a named match
before a wildcard match, so the most specific pattern wins regardless of the
order the patterns were registered in.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Never

from navmux.url import decode_component, split_path

logger = logging.getLogger(__name__)


class FrozenDict[K, V](dict[K, V]):
    """Read-only dict. Unhashable, like dict, since handlers may be unhashable."""

    def _immutable(self, *args, **kwargs) -> Never:
        msg = "FrozenDict is immutable"
        raise TypeError(msg)

    __setitem__ = __delitem__ = clear = pop = popitem = setdefault = update = _immutable
    __ior__ = _immutable


@dataclass(slots=True, frozen=True)
class Node[T]:
    """Segment-based trie node

    Nodes compare by value but cannot be hashed.
    """

    handler: T | None = field(default=None)
    children: FrozenDict[str, Node[T]] = field(default_factory=FrozenDict)
    param: ParamNode[T] | None = field(default=None)
    catchall: CatchAllNode[T] | None = field(default=None)


@dataclass(slots=True, frozen=True)
class ParamNode[T]:
    name: str
    child: Node[T]


@dataclass(slots=True, frozen=True)
class CatchAllNode[T]:
    name: str
    child: Node[T]


@dataclass(slots=True, frozen=True)
class Match[T]:
    """A resolved route.

    ``route`` is the matched pattern in canonical form, e.g. ``/users/:name``.
    """

    handler: T
    params: dict[str, str]
    route: str

    def __iter__(self) -> Iterator[Any]:
        """Unpack as a (handler, params) pair."""
        yield self.handler
        yield self.params


def find_handler[T](tree: Node[T], segments: Sequence[str]) -> Match[T] | None:
    """Traverses the tree to find the most specific match for segments.

    Each path segment priority is: literal match > named match > wildcard match.
    When a branch dead-ends further down, lookup backs out and tries the next
    candidate, discarding any params captured along the abandoned branch.

    Returns None if no registered pattern matches.
    """
    return _lookup(tree, segments, 0, [], [])


def _lookup[T](
    node: Node[T],
    segments: Sequence[str],
    i: int,
    params: list[tuple[str, str]],
    route_parts: list[str],
) -> Match[T] | None:
    if i >= len(segments):
        if node.handler is None:
            return None
        return Match(
            handler=node.handler,
            params=dict(params),
            route="/" + "/".join(route_parts),
        )

    seg = segments[i]
    params_len = len(params)
    parts_len = len(route_parts)

    key = seg.lower()
    child = node.children.get(key)
    if child is not None:  # literal match
        route_parts.append(key)
        match = _lookup(child, segments, i + 1, params, route_parts)
        if match is not None:
            return match

    if node.param is not None:  # fallback to named match
        del params[params_len:], route_parts[parts_len:]
        _capture(params, node.param.name, seg)
        route_parts.append(":" + node.param.name)
        match = _lookup(node.param.child, segments, i + 1, params, route_parts)
        if match is not None:
            return match

    if node.catchall is not None:  # fallback to wildcard match, consumes the rest
        del params[params_len:], route_parts[parts_len:]
        _capture(params, node.catchall.name, "/".join(segments[i:]))
        route_parts.append("*" + node.catchall.name)
        return _lookup(
            node.catchall.child, segments, len(segments), params, route_parts
        )

    return None


def _capture(params: list[tuple[str, str]], name: str, raw: str) -> None:
    # bare ":" and "*" match without capturing
    if name:
        params.append((name, decode_component(raw)))


def build_tree[T](routes: Mapping[str, T]) -> Node[T]:
    """build tree from a pattern -> handler mapping"""
    tree: Node[T] = Node()
    for pattern, handler in routes.items():
        tree = add_route(tree, pattern, handler)
    return tree


def add_route[T](tree: Node[T], pattern: str, handler: T) -> Node[T]:
    """add route to tree for handler on pattern, replacing any previous handler"""
    new_tree = _construct_sub_tree(pattern, Node(handler=handler))
    return _merge_trees(tree, new_tree)


def mount_tree[T](prefix: str, parent: Node[T], child: Node[T]) -> Node[T]:
    """Merge child's routes into parent underneath prefix."""
    if any(seg.startswith("*") for seg in split_path(prefix)):
        msg = f"mount prefix cannot contain a wildcard, provided {prefix=}"
        raise ValueError(msg)
    return _merge_trees(parent, _construct_sub_tree(prefix, child))


def _construct_sub_tree[T](pattern: str, child: Node[T]) -> Node[T]:
    """construct sub tree for existing node on pattern"""
    segments = split_path(pattern)
    if any(seg.startswith("*") for seg in segments[:-1]):
        logger.warning(
            "pattern %r has segments after a wildcard and will never match", pattern
        )

    for seg in reversed(segments):
        if seg.startswith(":"):
            child = Node(param=ParamNode(name=seg[1:], child=child))
        elif seg.startswith("*"):
            child = Node(catchall=CatchAllNode(name=seg[1:], child=child))
        else:
            child = Node(children=FrozenDict({seg.lower(): child}))

    return child


def _merge_trees[T](tree1: Node[T], tree2: Node[T]) -> Node[T]:
    """merge tree2 into tree1, tree2 wins on conflict"""
    handler = tree1.handler
    if tree2.handler is not None:
        if handler is not None and handler is not tree2.handler:
            logger.debug("replacing handler %r with %r", handler, tree2.handler)
        handler = tree2.handler

    if tree1.param is not None and tree2.param is not None:
        if tree1.param.name != tree2.param.name:
            logger.debug(
                "renaming parameter %r to %r", tree1.param.name, tree2.param.name
            )
        param: ParamNode[T] | None = ParamNode(
            name=tree2.param.name,
            child=_merge_trees(tree1.param.child, tree2.param.child),
        )
    else:
        param = tree1.param or tree2.param

    if tree1.catchall is not None and tree2.catchall is not None:
        if tree1.catchall.name != tree2.catchall.name:
            logger.debug(
                "renaming wildcard %r to %r", tree1.catchall.name, tree2.catchall.name
            )
        catchall: CatchAllNode[T] | None = CatchAllNode(
            name=tree2.catchall.name,
            child=_merge_trees(tree1.catchall.child, tree2.catchall.child),
        )
    else:
        catchall = tree1.catchall or tree2.catchall

    children = dict(tree1.children)
    for key, child in tree2.children.items():
        existing = children.get(key)
        children[key] = child if existing is None else _merge_trees(existing, child)

    return Node(
        handler=handler,
        children=FrozenDict(children),
        param=param,
        catchall=catchall,
    )


def collect_routes[T](node: Node[T], parts: tuple[str, ...] = ()) -> list[tuple[str, T]]:
    """Walk the trie, returning (canonical pattern, handler) for every route."""
    routes: list[tuple[str, T]] = []
    if node.handler is not None:
        routes.append(("/" + "/".join(parts), node.handler))
    for key, child in node.children.items():
        routes.extend(collect_routes(child, (*parts, key)))
    if node.param is not None:
        routes.extend(collect_routes(node.param.child, (*parts, ":" + node.param.name)))
    if node.catchall is not None:
        routes.extend(
            collect_routes(node.catchall.child, (*parts, "*" + node.catchall.name))
        )
    return routes


def format_routes[T](root: Node[T], *, tree: bool = False) -> str:
    """Format registered routes as a human-readable string.

    By default produces a column-aligned flat route list:

        /                      home
        /users/:id             view_user
        /users/:id/comments    user_comments
        /*url                  not_found

    With `tree=True`, produces a visual tree instead:

        /
        ├── [home]
        ├── users
        │   └── :id
        │       ├── [view_user]
        │       └── comments
        │           └── [user_comments]
        └── *url
            └── [not_found]
    """
    if tree:
        lines = ["/"]
        _render_tree(root, "", lines=lines)
        return "\n".join(lines)

    routes = sorted(collect_routes(root), key=lambda r: r[0])
    if not routes:
        return ""
    route_w = max(len(r[0]) for r in routes)
    return "\n".join(
        f"{route:<{route_w}}   {_qualname(handler)}" for route, handler in routes
    )


def _render_tree[T](node: Node[T], prefix: str, *, lines: list[str]) -> None:
    """Recursively render a node's children with tree-drawing prefixes."""
    items: list[tuple[str, Node[T] | None]] = []
    if node.handler is not None:
        items.append((f"[{_qualname(node.handler)}]", None))
    for seg, child in sorted(node.children.items(), key=lambda x: x[0]):
        items.append((seg, child))
    if node.param is not None:
        items.append((":" + node.param.name, node.param.child))
    if node.catchall is not None:
        items.append(("*" + node.catchall.name, node.catchall.child))

    for i, (label, child) in enumerate(items):
        is_last = i == len(items) - 1
        connector = "└── " if is_last else "├── "
        lines.append(f"{prefix}{connector}{label}")
        if child is not None:
            extension = "    " if is_last else "│   "
            _render_tree(child, prefix + extension, lines=lines)


def _qualname(obj: object) -> str:
    """Extract __qualname__ from a callable, falling back to repr."""
    return str(obj.__qualname__) if hasattr(obj, "__qualname__") else repr(obj)
