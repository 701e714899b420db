"""Tests for the processed message id set"""

import pytest

from shopfloor.client.dedup import ProcessedIds


def test_accept_is_idempotent():
    ids = ProcessedIds()

    assert ids.accept("m1") is True
    assert ids.accept("m1") is False
    assert len(ids) == 1


def test_oldest_id_is_evicted():
    ids = ProcessedIds(capacity=2)
    ids.mark_processed("m1")
    ids.mark_processed("m2")
    ids.mark_processed("m3")

    assert "m1" not in ids
    assert "m2" in ids and "m3" in ids


def test_lookup_refreshes_recency():
    ids = ProcessedIds(capacity=2)
    ids.mark_processed("m1")
    ids.mark_processed("m2")

    assert ids.is_processed("m1")
    ids.mark_processed("m3")

    assert "m1" in ids
    assert "m2" not in ids


def test_clear():
    ids = ProcessedIds()
    ids.accept("m1")

    ids.clear()

    assert ids.accept("m1") is True


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ProcessedIds(capacity=0)
