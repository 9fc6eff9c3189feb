"""Tests for pagination."""

import pytest

from querykit.pagination import Paginator


class TestPaginator:
    """Tests for page arithmetic."""

    def test_middle_page(self):
        p = Paginator(total_items=8, per_page=3, current_page=2)
        assert p.total_pages == 3
        assert p.offset == 3
        assert p.items_on_current_page == 3
        assert p.has_pages
        assert p.prev_page == 1
        assert p.next_page == 3

    def test_last_page_remainder(self):
        p = Paginator(8, 3, 3)
        assert p.items_on_current_page == 2
        assert p.has_next_page is False
        assert p.next_page is None

    def test_page_is_clamped(self):
        assert Paginator(8, 3, 99).current_page == 3
        assert Paginator(8, 3, 0).current_page == 1
        assert Paginator(8, 3, -4).offset == 0

    def test_empty_result_has_one_page(self):
        p = Paginator(0, 10)
        assert p.total_pages == 1
        assert p.items_on_current_page == 0
        assert not p.has_pages
        assert p.prev_page is None

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            Paginator(10, 0)
        with pytest.raises(ValueError):
            Paginator(-1, 10)

    def test_to_dict(self):
        assert Paginator(8, 3, 2).to_dict() == {
            "total_items": 8,
            "per_page": 3,
            "current_page": 2,
            "total_pages": 3,
            "offset": 3,
        }


@pytest.fixture
def eight_users(session):
    for n in range(5):
        session.builder().insert("users", {"name": f"User {n}", "role": "member"}).execute()
    return session.table("users").order_by("id")


class TestPaginate:
    """Tests for QueryBuilder.paginate()."""

    def test_second_page(self, eight_users):
        page = eight_users.paginate(per_page=3, current_page=2)

        assert page.paginator.total_pages == 3
        assert page.paginator.offset == 3
        assert len(page) == 3
        assert [row["id"] for row in page] == [4, 5, 6]

    def test_last_page(self, eight_users):
        page = eight_users.paginate(3, 3)
        assert [row["id"] for row in page.items] == [7, 8]

    def test_out_of_range_page_is_clamped(self, eight_users):
        page = eight_users.paginate(3, 10)
        assert page.paginator.current_page == 3
        assert len(page) == 2

    def test_filtered(self, eight_users):
        page = eight_users.where("role", "admin").paginate(3)
        assert page.paginator.total_items == 1
        assert [row["name"] for row in page] == ["Alice"]

    def test_no_rows(self, session):
        page = session.table("users").where("id", 99).paginate(5)
        assert page.items == []
        assert page.paginator.total_pages == 1
