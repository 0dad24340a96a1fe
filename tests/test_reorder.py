"""Tests for reordering and ReorderCoordinator"""

import pytest

from core.models.blog import BlogSummary
from core.reorder import (
    STATUS_QUEUED,
    STATUS_REVERTED,
    STATUS_SAVED,
    STATUS_UNCHANGED,
    ReorderCoordinator,
    order_payload,
    reorder_blogs,
    sort_by_order,
)
from utils.api import ApiResponseError


def _posts(*ids, orders=None):
    orders = orders or range(len(ids))
    return [BlogSummary(id=blog_id, order=order) for blog_id, order in zip(ids, orders)]


class TestReorderBlogs:
    def test_move_first_to_last(self):
        result = reorder_blogs(_posts("a", "b", "c"), 0, 2)
        assert [b.id for b in result] == ["b", "c", "a"]
        assert [b.order for b in result] == [0, 1, 2]

    @pytest.mark.parametrize(
        "source, destination, expected",
        [
            (2, 0, ["c", "a", "b", "d"]),
            (1, 2, ["a", "c", "b", "d"]),
            (3, 1, ["a", "d", "b", "c"]),
            (0, 3, ["b", "c", "d", "a"]),
        ],
    )
    def test_permutation_and_contiguous_orders(self, source, destination, expected):
        # Gappy starting orders still come out as 0..N-1.
        blogs = _posts("a", "b", "c", "d", orders=[5, 10, 40, 41])
        result = reorder_blogs(blogs, source, destination)
        assert [b.id for b in result] == expected
        assert [b.order for b in result] == list(range(4))

    @pytest.mark.parametrize("destination", [None, 1])
    def test_no_op_keeps_orders(self, destination):
        blogs = _posts("a", "b", "c", orders=[3, 7, 9])
        result = reorder_blogs(blogs, 1, destination)
        assert [(b.id, b.order) for b in result] == [("a", 3), ("b", 7), ("c", 9)]

    def test_input_is_not_mutated(self):
        blogs = _posts("a", "b", "c")
        reorder_blogs(blogs, 0, 2)
        assert [(b.id, b.order) for b in blogs] == [("a", 0), ("b", 1), ("c", 2)]

    @pytest.mark.parametrize("source, destination", [(3, 0), (0, 3), (-1, 0)])
    def test_out_of_range_raises(self, source, destination):
        with pytest.raises(IndexError):
            reorder_blogs(_posts("a", "b", "c"), source, destination)

    def test_sort_by_order_is_stable(self):
        blogs = _posts("x", "y", "z", orders=[1, 0, 1])
        assert [b.id for b in sort_by_order(blogs)] == ["y", "x", "z"]

    def test_order_payload(self):
        payload = order_payload(_posts("a", "b"))
        assert [u.to_dict() for u in payload] == [{"id": "a", "order": 0}, {"id": "b", "order": 1}]


class TestReorderCoordinator:
    def test_load_sorts_by_order(self, engine, fake_api):
        fake_api.blogs["a"]["order"] = 9
        coordinator = ReorderCoordinator(engine)
        assert [b.id for b in coordinator.load()] == ["b", "c", "a"]

    def test_reorder_saved_online(self, engine, fake_api):
        coordinator = ReorderCoordinator(engine)
        coordinator.load()

        result = coordinator.reorder(0, 2)

        assert result.status == STATUS_SAVED
        assert [b.id for b in result.blogs] == ["b", "c", "a"]
        assert fake_api.calls[-1] == (
            "batch_update_order",
            [{"id": "b", "order": 0}, {"id": "c", "order": 1}, {"id": "a", "order": 2}],
        )
        # The cache reflects the new positions too.
        cached = {b.id: b.order for b in engine.cache.load()}
        assert cached == {"a": 2, "b": 0, "c": 1}

    def test_reorder_queued_offline(self, engine):
        coordinator = ReorderCoordinator(engine)
        coordinator.load()
        engine.connectivity.set_online(False)

        result = coordinator.reorder(0, 2)

        assert result.status == STATUS_QUEUED
        assert [b.id for b in coordinator.blogs] == ["b", "c", "a"]
        [op] = engine.queue.pending()
        assert op.type == "updateOrder"
        assert [u.to_dict() for u in op.updates] == [u.to_dict() for u in result.updates]

    def test_reorder_reverts_on_server_rejection(self, engine, fake_api):
        coordinator = ReorderCoordinator(engine)
        coordinator.load()
        fake_api.failures["batch_update_order"] = ApiResponseError("Error updating blog order", status_code=500)

        result = coordinator.reorder(0, 2)

        assert result.status == STATUS_REVERTED
        assert "Error updating blog order" in result.error
        assert [b.id for b in coordinator.blogs] == ["a", "b", "c"]
        assert fake_api.call_names()[-1] == "list_blogs"
        assert len(engine.queue) == 0

    def test_reorder_same_index_does_nothing(self, engine, fake_api):
        coordinator = ReorderCoordinator(engine)
        coordinator.load()
        calls_before = len(fake_api.calls)

        result = coordinator.reorder(1, 1)

        assert result.status == STATUS_UNCHANGED
        assert len(fake_api.calls) == calls_before

    def test_filtered_view(self, engine):
        coordinator = ReorderCoordinator(engine, "drafts")
        assert [b.id for b in coordinator.load()] == ["a", "c"]

    def test_remove(self, engine, fake_api):
        coordinator = ReorderCoordinator(engine)
        coordinator.load()

        result = coordinator.remove("b")

        assert result.queued is False
        assert [b.id for b in coordinator.blogs] == ["a", "c"]
        assert "b" not in fake_api.blogs

    def test_remove_absent_id_keeps_list(self, engine):
        coordinator = ReorderCoordinator(engine)
        coordinator.load()

        coordinator.remove("nope")

        assert [b.id for b in coordinator.blogs] == ["a", "b", "c"]
