from __future__ import annotations

from maps_harvester.infra import RotatingPool


def test_cycle_mode_round_robins() -> None:
    pool = RotatingPool(["a", " b ", ""])
    assert len(pool) == 2
    assert [pool.next() for _ in range(5)] == ["a", "b", "a", "b", "a"]


def test_random_mode_picks_known_entries() -> None:
    pool = RotatingPool(["x", "y"], mode="random")
    assert {pool.next() for _ in range(20)} <= {"x", "y"}


def test_blank_entries_leave_pool_falsy() -> None:
    pool = RotatingPool(["", "   "])
    assert not pool
    assert pool.next() is None
