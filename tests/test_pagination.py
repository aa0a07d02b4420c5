"""Tests for paginate(), simple_paginate() and the paginator models."""

import pytest
from pydantic import ValidationError

from parse_orm import Collection, LengthAwarePaginator, Paginator, pagination_context
from tests.fake_server import FakeParseServer
from tests.models import Post


@pytest.fixture
def many_posts(server: FakeParseServer) -> list[str]:
    return [server.seed("Post", title=f"Post {i:02d}", views=i, published=i % 2 == 0) for i in range(1, 24)]


# ==================== Query.paginate ====================


class TestPaginate:
    def test_total_ignores_page_window(self, server: FakeParseServer, many_posts: list[str]) -> None:
        page = Post.query().order_by("views").paginate(per_page=5, page=2)

        assert isinstance(page, LengthAwarePaginator)
        assert page.total == 23
        assert page.items.pluck("title") == [f"Post {i:02d}" for i in range(6, 11)]
        assert page.last_page == 5

    def test_total_matches_independent_count(self, many_posts: list[str]) -> None:
        query = Post.where("views", ">", 4)
        expected = query.count()

        page = query.paginate(per_page=10, page=2)

        assert page.total == expected == 19
        assert len(page.items) == 9

    def test_count_request_carries_no_window(self, server: FakeParseServer, many_posts: list[str]) -> None:
        Post.query().where("published", True).paginate(per_page=5, page=3)

        count_params = server.count_requests("Post")[-1].url.params
        assert "skip" not in count_params
        assert count_params["limit"] == "0"
        assert count_params["where"] == '{"published":true}'

        list_params = server.list_requests("Post")[-1].url.params
        assert list_params["limit"] == "5"
        assert list_params["skip"] == "10"

    def test_total_respects_constraints(self, many_posts: list[str]) -> None:
        page = Post.where("published", True).paginate(per_page=4, page=1)

        assert page.total == 11
        assert len(page) == 4
        assert page.has_more_pages

    def test_last_page(self, many_posts: list[str]) -> None:
        page = Post.query().order_by("views").paginate(per_page=5, page=5)

        assert len(page.items) == 3
        assert page.on_last_page
        assert not page.has_more_pages
        assert page.next_page_url is None

    def test_page_beyond_end_is_empty(self, many_posts: list[str]) -> None:
        page = Post.query().paginate(per_page=10, page=9)

        assert page.is_empty()
        assert page.total == 23

    def test_select_keys(self, server: FakeParseServer, many_posts: list[str]) -> None:
        Post.query().paginate(per_page=5, select_keys=["title"], page=1)
        assert server.list_requests("Post")[-1].url.params["keys"] == "title"

    @pytest.mark.parametrize("wildcard", [None, "*", ["*"]])
    def test_wildcard_select(self, server: FakeParseServer, many_posts: list[str], wildcard: object) -> None:
        Post.query().paginate(per_page=5, select_keys=wildcard, page=1)
        assert "keys" not in server.list_requests("Post")[-1].url.params

    def test_page_from_context(self, many_posts: list[str]) -> None:
        with pagination_context(params={"page": "2"}, path="/posts"):
            page = Post.query().order_by("views").paginate(per_page=10)

        assert page.current_page == 2
        assert page.path == "/posts"
        assert page.items.first().title == "Post 11"
        assert page.next_page_url == "/posts?page=3"
        assert page.previous_page_url == "/posts?page=1"

    def test_custom_page_name(self, many_posts: list[str]) -> None:
        with pagination_context(params={"p": "3", "page": "1"}):
            page = Post.query().paginate(per_page=10, page_name="p")

        assert page.current_page == 3
        assert page.page_name == "p"

    @pytest.mark.parametrize("raw", [None, "abc", "0", "-4", ""])
    def test_invalid_page_falls_back_to_first(self, many_posts: list[str], raw: object) -> None:
        with pagination_context(params={"page": raw}):
            page = Post.query().paginate(per_page=10)
        assert page.current_page == 1

    def test_registered_resolver(self, many_posts: list[str]) -> None:
        Paginator.current_page_resolver(lambda name: 2)
        Paginator.current_path_resolver(lambda: "/custom")

        page = Post.query().paginate(per_page=10)

        assert page.current_page == 2
        assert page.path == "/custom"

    def test_model_entry_point(self, many_posts: list[str]) -> None:
        page = Post.paginate(5, page=1)
        assert page.total == 23


class TestSimplePaginate:
    @pytest.mark.parametrize("wildcard", [None, "*", ["*"]])
    def test_wildcard_select(self, server: FakeParseServer, many_posts: list[str], wildcard: object) -> None:
        Post.query().simple_paginate(per_page=5, select_keys=wildcard, page=1)
        assert "keys" not in server.list_requests("Post")[-1].url.params

    def test_no_count_request(self, server: FakeParseServer, many_posts: list[str]) -> None:
        page = Post.query().order_by("views").simple_paginate(per_page=5, page=2)

        assert type(page) is Paginator
        assert not hasattr(page, "total")
        assert server.count_requests() == []
        assert [p.views for p in page.items] == [6, 7, 8, 9, 10]

    def test_does_not_modify_query(self, server: FakeParseServer, many_posts: list[str]) -> None:
        query = Post.query().order_by("views")
        query.simple_paginate(per_page=5, page=2)

        assert "limit" not in query.get_parse_query().to_params()
        assert "skip" not in query.get_parse_query().to_params()

    def test_full_page_has_more(self, many_posts: list[str]) -> None:
        page = Post.query().simple_paginate(per_page=5, page=1)
        assert page.has_more_pages
        assert page.next_page_url == "/?page=2"

    def test_model_entry_point(self, server: FakeParseServer, many_posts: list[str]) -> None:
        page = Post.simple_paginate(5, page=2)

        assert type(page) is Paginator
        assert page.current_page == 2
        assert len(page) == 5
        assert server.count_requests() == []

    def test_short_page_has_no_more(self, many_posts: list[str]) -> None:
        page = Post.query().simple_paginate(per_page=5, page=5)
        assert len(page) == 3
        assert not page.has_more_pages


# ==================== Paginator models ====================


class TestPaginatorModel:
    def test_items_become_collection(self) -> None:
        page = Paginator(items=[1, 2], per_page=2)
        assert isinstance(page.items, Collection)

    def test_first_and_last_item(self) -> None:
        page = Paginator(items=["a", "b", "c"], per_page=3, current_page=3)
        assert page.first_item == 7
        assert page.last_item == 9

    def test_empty_page_has_no_item_numbers(self) -> None:
        page = Paginator(items=[], per_page=3)
        assert page.first_item is None
        assert page.last_item is None

    def test_url_keeps_query_parameters(self) -> None:
        page = Paginator(items=[], per_page=3, path="/posts", query={"sort": "new"})
        assert page.url(4) == "/posts?sort=new&page=4"

    def test_url_clamps_to_first_page(self) -> None:
        page = Paginator(items=[], per_page=3, path="/posts")
        assert page.url(0) == "/posts?page=1"

    def test_rejects_invalid_values(self) -> None:
        with pytest.raises(ValidationError):
            Paginator(items=[], per_page=0)
        with pytest.raises(ValidationError):
            Paginator(items=[], per_page=5, current_page=0)
        with pytest.raises(ValidationError):
            LengthAwarePaginator(items=[], per_page=5, total=-1)

    def test_last_page_never_below_one(self) -> None:
        page = LengthAwarePaginator(items=[], per_page=5, total=0)

        assert page.last_page == 1
        assert not page.has_pages
        assert page.on_last_page

    def test_last_page_in_dump(self) -> None:
        page = LengthAwarePaginator(items=[], per_page=5, total=11)
        assert page.model_dump()["last_page"] == 3

    def test_resolve_current_page_default(self) -> None:
        assert Paginator.resolve_current_page() == 1
        assert Paginator.resolve_current_page(default=4) == 4
