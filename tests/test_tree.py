import logging

import pytest

from navmux.tree import (
    CatchAllNode,
    FrozenDict,
    Match,
    Node,
    ParamNode,
    _construct_sub_tree,
    _merge_trees,
    add_route,
    build_tree,
    collect_routes,
    find_handler,
    format_routes,
    mount_tree,
)


def test_frozen_dict_is_immutable() -> None:
    d = FrozenDict({"a": 1})
    with pytest.raises(TypeError, match="FrozenDict is immutable"):
        d["b"] = 2
    with pytest.raises(TypeError, match="FrozenDict is immutable"):
        d.update({"b": 2})
    with pytest.raises(TypeError, match="FrozenDict is immutable"):
        del d["a"]
    assert d == {"a": 1}


def test_tree_is_unhashable_but_comparable() -> None:
    handler = {"component": "UserPage"}
    with pytest.raises(TypeError):
        hash(FrozenDict({"a": 1}))
    with pytest.raises(TypeError):
        hash(add_route(Node(), "users", handler))
    assert add_route(Node(), "users", handler) == add_route(Node(), "USERS", handler)


def test__construct_sub_tree() -> None:
    leaf = Node(handler="comments")
    tree = _construct_sub_tree("/Users/:id/*rest", leaf)
    expected_tree = Node(
        children=FrozenDict(
            {
                "users": Node(
                    param=ParamNode(
                        name="id",
                        child=Node(catchall=CatchAllNode(name="rest", child=leaf)),
                    )
                )
            }
        )
    )
    assert tree == expected_tree


def test__construct_sub_tree_empty_pattern() -> None:
    leaf = Node(handler="home")
    assert _construct_sub_tree("", leaf) is leaf
    assert _construct_sub_tree("/", leaf) is leaf


def test__construct_sub_tree_warns_on_segments_after_wildcard(
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING, logger="navmux.tree"):
        _construct_sub_tree("files/*path/edit", Node(handler="edit"))
    assert "will never match" in caplog.text


def test__merge_trees() -> None:
    tree1 = Node(
        children=FrozenDict(
            {"users": Node(param=ParamNode(name="id", child=Node(handler="view")))}
        )
    )
    tree2 = Node(
        children=FrozenDict(
            {
                "users": Node(
                    param=ParamNode(
                        name="id",
                        child=Node(
                            children=FrozenDict({"comments": Node(handler="comments")})
                        ),
                    )
                )
            }
        )
    )
    expected_tree = Node(
        children=FrozenDict(
            {
                "users": Node(
                    param=ParamNode(
                        name="id",
                        child=Node(
                            handler="view",
                            children=FrozenDict({"comments": Node(handler="comments")}),
                        ),
                    )
                )
            }
        )
    )
    assert _merge_trees(tree1, tree2) == expected_tree


def test__merge_trees_last_write_wins(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="navmux.tree"):
        tree = _merge_trees(
            Node(param=ParamNode(name="id", child=Node(handler="first"))),
            Node(param=ParamNode(name="user_id", child=Node(handler="second"))),
        )
    assert tree == Node(param=ParamNode(name="user_id", child=Node(handler="second")))
    assert "replacing handler" in caplog.text
    assert "renaming parameter" in caplog.text


def test_add_route_does_not_mutate() -> None:
    tree = add_route(Node(), "hello", "A")
    new_tree = add_route(tree, "hello/world", "B")
    assert tree == Node(children=FrozenDict({"hello": Node(handler="A")}))
    assert new_tree.children["hello"].children["world"] == Node(handler="B")


def test_build_tree() -> None:
    tree = build_tree(
        {
            "greetings/earthling": "Mars",
            "hello/:title/:age": "Hi",
            "users/:userId": "ViewUser",
            "users/:userId/comments": "UserComments",
            "*url": "404",
        }
    )
    expected_tree = Node(
        children=FrozenDict(
            {
                "greetings": Node(
                    children=FrozenDict({"earthling": Node(handler="Mars")})
                ),
                "hello": Node(
                    param=ParamNode(
                        name="title",
                        child=Node(
                            param=ParamNode(name="age", child=Node(handler="Hi"))
                        ),
                    )
                ),
                "users": Node(
                    param=ParamNode(
                        name="userId",
                        child=Node(
                            handler="ViewUser",
                            children=FrozenDict(
                                {"comments": Node(handler="UserComments")}
                            ),
                        ),
                    )
                ),
            }
        ),
        catchall=CatchAllNode(name="url", child=Node(handler="404")),
    )
    assert tree == expected_tree


def test_mount_tree() -> None:
    child = build_tree({"": "list", ":id": "view"})
    tree = mount_tree("/users", build_tree({"": "home"}), child)
    assert sorted(collect_routes(tree)) == [
        ("/", "home"),
        ("/users", "list"),
        ("/users/:id", "view"),
    ]


def test_mount_tree_rejects_wildcard_prefix() -> None:
    with pytest.raises(ValueError, match="cannot contain a wildcard"):
        mount_tree("/files/*path", Node(), Node(handler="x"))


# --- find_handler -------------------------------------------------------------
tree = build_tree(
    {
        "": "home",
        "foo/:bar/baz": "A",
        "foo/:bar/:boo": "B",
        "foo/bar/bing": "C",
        "users/:name/baz": "user_baz",
        "users/*name": "user_rest",
        "users/:id/:pet": "user_pet",
        "*": "not_found",
    }
)


@pytest.mark.parametrize(
    "segments, expected_handler, expected_params, expected_route",
    [
        # root
        ([], "home", {}, "/"),
        # named segment, then literal
        (["foo", "babar", "baz"], "A", {"bar": "babar"}, "/foo/:bar/baz"),
        # two named segments
        (["foo", "x", "y"], "B", {"bar": "x", "boo": "y"}, "/foo/:bar/:boo"),
        # literal beats named
        (["foo", "bar", "bing"], "C", {}, "/foo/bar/bing"),
        # literal dead end backs out to named
        (["foo", "bar", "baz"], "A", {"bar": "bar"}, "/foo/:bar/baz"),
        # literal match is case insensitive
        (["FOO", "Bar", "BING"], "C", {}, "/foo/bar/bing"),
        # named dead end backs out to wildcard, dropping captures
        (
            ["users", "chris", "bar", "qux"],
            "user_rest",
            {"name": "chris/bar/qux"},
            "/users/*name",
        ),
        # named beats wildcard
        (["users", "chris", "cat"], "user_pet", {"id": "chris", "pet": "cat"}, "/users/:id/:pet"),
        # wildcard with a single segment
        (["users", "chris"], "user_rest", {"name": "chris"}, "/users/*name"),
        # values are percent-decoded
        (["foo", "a%2Fb", "baz"], "A", {"bar": "a/b"}, "/foo/:bar/baz"),
        # bare catch-all captures nothing
        (["nope"], "not_found", {}, "/*"),
        (["foo", "1", "2", "3"], "not_found", {}, "/*"),
    ],
)
def test_find_handler(
    segments: list[str],
    expected_handler: str,
    expected_params: dict[str, str],
    expected_route: str,
) -> None:
    match = find_handler(tree, segments)
    assert match == Match(
        handler=expected_handler, params=expected_params, route=expected_route
    )


def test_find_handler_bare_named_segment_captures_nothing() -> None:
    bare = build_tree({"a/:": "A", "a/:/b": "B"})
    assert find_handler(bare, ["a", "x"]) == Match(handler="A", params={}, route="/a/:")
    assert find_handler(bare, ["a", "x", "b"]) == Match(
        handler="B", params={}, route="/a/:/b"
    )
    # bare segments never decode, so bad escapes are ignored
    assert find_handler(bare, ["a", "%zz"]) == Match(
        handler="A", params={}, route="/a/:"
    )


def test_find_handler_no_match() -> None:
    no_catchall = build_tree({"foo/:bar": "A"})
    assert find_handler(no_catchall, ["foo"]) is None
    assert find_handler(no_catchall, ["foo", "a", "b"]) is None
    assert find_handler(no_catchall, ["bar"]) is None


def test_find_handler_empty_path_does_not_hit_catchall() -> None:
    only_catchall = build_tree({"*rest": "not_found"})
    assert find_handler(only_catchall, []) is None


def test_find_handler_order_independent() -> None:
    routes = [("hey/joe", "A"), ("hey/:name", "B"), ("hey/jane", "C")]
    for ordering in (routes, list(reversed(routes))):
        t = build_tree(dict(ordering))
        assert find_handler(t, ["hey", "joe"]).handler == "A"  # type: ignore[union-attr]
        assert find_handler(t, ["hey", "jane"]).handler == "C"  # type: ignore[union-attr]
        assert find_handler(t, ["hey", "bob"]).handler == "B"  # type: ignore[union-attr]


# --- formatting ---------------------------------------------------------------
def view_user() -> None: ...


def user_comments() -> None: ...


format_tree = build_tree(
    {
        "": "home",
        "users/:id": view_user,
        "users/:id/comments": user_comments,
        "*url": "not_found",
    }
)


def test_format_routes() -> None:
    assert format_routes(format_tree) == "\n".join(
        [
            "/                     'home'",
            "/*url                 'not_found'",
            "/users/:id            view_user",
            "/users/:id/comments   user_comments",
        ]
    )


def test_format_routes_tree() -> None:
    assert format_routes(format_tree, tree=True) == "\n".join(
        [
            "/",
            "├── ['home']",
            "├── users",
            "│   └── :id",
            "│       ├── [view_user]",
            "│       └── comments",
            "│           └── [user_comments]",
            "└── *url",
            "    └── ['not_found']",
        ]
    )


def test_format_routes_empty() -> None:
    assert format_routes(Node()) == ""
