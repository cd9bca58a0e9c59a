"""Round-robin allocation of queues, grouped by dimension level."""

from __future__ import annotations

import enum
from typing import Iterable


class Direction(enum.Enum):
    """Direction a ring stream travels in."""

    CLOCKWISE = "clockwise"
    ANTICLOCKWISE = "anticlockwise"


class BackendType(enum.Enum):
    """Network backend the simulator runs on."""

    NOT_SPECIFIED = "not_specified"
    GARNET = "garnet"
    NS3 = "ns3"
    ANALYTICAL = "analytical"


class QueueLevelHandler:
    """Hands out the queues start..end (inclusive) of one level in turn."""

    def __init__(self, level: int, start: int, end: int, backend: BackendType) -> None:
        self.queues = list(range(start, end + 1))
        self.allocator = 0
        self.first_allocator = 0
        self.last_allocator = len(self.queues) // 2
        self.level = level
        self.backend = backend

    def next_queue_id(self) -> tuple[int, Direction]:
        """Next queue over the whole level; the second half runs anticlockwise."""
        half = len(self.queues) // 2
        if (
            (self.backend != BackendType.GARNET or self.level > 0)
            and len(self.queues) > 1
            and self.allocator >= half
        ):
            direction = Direction.ANTICLOCKWISE
        else:
            direction = Direction.CLOCKWISE
        if not self.queues:
            return -1, direction
        queue = self.queues[self.allocator]
        self.allocator += 1
        if self.allocator == len(self.queues):
            self.allocator = 0
        return queue, direction

    def next_queue_id_first(self) -> tuple[int, Direction]:
        """Next queue from the first half of the level, clockwise."""
        if not self.queues:
            return -1, Direction.CLOCKWISE
        queue = self.queues[self.first_allocator]
        self.first_allocator += 1
        if self.first_allocator == len(self.queues) // 2:
            self.first_allocator = 0
        return queue, Direction.CLOCKWISE

    def next_queue_id_last(self) -> tuple[int, Direction]:
        """Next queue from the second half of the level, anticlockwise."""
        if not self.queues:
            return -1, Direction.ANTICLOCKWISE
        queue = self.queues[self.last_allocator]
        self.last_allocator += 1
        if self.last_allocator == len(self.queues):
            self.last_allocator = len(self.queues) // 2
        return queue, Direction.ANTICLOCKWISE


class QueueLevels:
    """Consecutive blocks of queue ids, one block per level."""

    def __init__(self, queues_per_level: Iterable[int], offset: int, backend: BackendType) -> None:
        self.levels: list[QueueLevelHandler] = []
        start = offset
        for level, count in enumerate(queues_per_level):
            self.levels.append(QueueLevelHandler(level, start, start + count - 1, backend))
            start += count

    @classmethod
    def uniform(
        cls, total_levels: int, queues_per_level: int, offset: int, backend: BackendType
    ) -> "QueueLevels":
        """Levels that all hold the same number of queues."""
        return cls([queues_per_level] * total_levels, offset, backend)

    def next_queue_at_level(self, level: int) -> tuple[int, Direction]:
        return self.levels[level].next_queue_id()

    def next_queue_at_level_first(self, level: int) -> tuple[int, Direction]:
        return self.levels[level].next_queue_id_first()

    def next_queue_at_level_last(self, level: int) -> tuple[int, Direction]:
        return self.levels[level].next_queue_id_last()