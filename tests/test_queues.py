import pytest

from ncclflow.queues import BackendType, Direction, QueueLevelHandler, QueueLevels

CW = Direction.CLOCKWISE
ACW = Direction.ANTICLOCKWISE


def test_handler_covers_inclusive_range():
    handler = QueueLevelHandler(0, 3, 6, BackendType.NS3)
    assert handler.queues == [3, 4, 5, 6]
    assert handler.last_allocator * 2 == len(handler.queues)


def test_next_queue_second_half_anticlockwise():
    handler = QueueLevelHandler(0, 3, 6, BackendType.NS3)
    got = [handler.next_queue_id() for _ in range(5)]
    assert got == [(3, CW), (4, CW), (5, ACW), (6, ACW), (3, CW)]


def test_garnet_level_zero_always_clockwise():
    handler = QueueLevelHandler(0, 0, 3, BackendType.GARNET)
    got = [handler.next_queue_id() for _ in range(4)]
    assert [q for q, _ in got] == [0, 1, 2, 3]
    assert all(d is CW for _, d in got)


def test_garnet_higher_level_uses_both_directions():
    handler = QueueLevelHandler(1, 0, 3, BackendType.GARNET)
    got = [handler.next_queue_id()[1] for _ in range(4)]
    assert got == [CW, CW, ACW, ACW]


def test_single_queue_is_clockwise():
    handler = QueueLevelHandler(2, 9, 9, BackendType.NS3)
    assert [handler.next_queue_id() for _ in range(3)] == [(9, CW)] * 3


def test_empty_level_returns_minus_one():
    handler = QueueLevelHandler(0, 5, 4, BackendType.NS3)
    assert handler.next_queue_id() == (-1, CW)
    assert handler.next_queue_id_first() == (-1, CW)
    assert handler.next_queue_id_last() == (-1, ACW)
    assert handler.allocator == 0


def test_first_cycles_over_first_half():
    handler = QueueLevelHandler(0, 3, 6, BackendType.NS3)
    got = [handler.next_queue_id_first() for _ in range(4)]
    assert got == [(3, CW), (4, CW), (3, CW), (4, CW)]


def test_last_cycles_over_second_half():
    handler = QueueLevelHandler(0, 3, 6, BackendType.NS3)
    got = [handler.next_queue_id_last() for _ in range(4)]
    assert got == [(5, ACW), (6, ACW), (5, ACW), (6, ACW)]


def test_levels_are_consecutive_blocks():
    levels = QueueLevels([2, 3], 10, BackendType.NS3)
    assert [h.queues for h in levels.levels] == [[10, 11], [12, 13, 14]]
    assert [h.level for h in levels.levels] == [0, 1]


def test_uniform_matches_explicit_sizes():
    uniform = QueueLevels.uniform(3, 2, 0, BackendType.ANALYTICAL)
    explicit = QueueLevels([2, 2, 2], 0, BackendType.ANALYTICAL)
    assert [h.queues for h in uniform.levels] == [h.queues for h in explicit.levels]
    assert all(h.backend is BackendType.ANALYTICAL for h in uniform.levels)


def test_level_access_delegates_to_handler():
    levels = QueueLevels([2, 4], 0, BackendType.NS3)
    assert levels.next_queue_at_level(1) == (2, CW)
    assert levels.next_queue_at_level_first(1) == (2, CW)
    assert levels.next_queue_at_level_last(1) == (4, ACW)
    assert levels.next_queue_at_level(0) == (0, CW)


def test_unknown_level_raises():
    levels = QueueLevels([1], 0, BackendType.NS3)
    with pytest.raises(IndexError):
        levels.next_queue_at_level(1)