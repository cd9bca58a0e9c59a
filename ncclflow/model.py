"""Data types shared by channel construction and flow generation."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Mapping, Optional


class GroupType(enum.IntEnum):
    """Kind of parallel communication group."""

    TP = 0
    DP = 1
    DP_EP = 2
    EP = 3
    NONE = 4


class GPUType(enum.Enum):
    """GPU model, which decides the collective algorithm."""

    A100 = "A100"
    A800 = "A800"
    H100 = "H100"
    H800 = "H800"
    NONE = "NONE"


class ComType(enum.IntEnum):
    """Collective operation."""

    NONE = 0
    REDUCE_SCATTER = 1
    ALL_GATHER = 2
    ALL_REDUCE = 3
    ALL_TO_ALL = 4
    ALL_REDUCE_ALL_TO_ALL = 5
    ALL_REDUCE_NVLS = 6


class Algorithm(enum.IntEnum):
    """Collective algorithm."""

    TREE = 0
    RING = 1
    COLLNET_DIRECT = 2
    COLLNET_CHAIN = 3
    NVLS = 4
    NVLS_TREE = 5


class Protocol(enum.IntEnum):
    """Transfer protocol."""

    UNDEF = -1
    LL = 0
    LL128 = 1
    SIMPLE = 2


@dataclass
class GroupInfo:
    """Ranks and NVSwitches belonging to one communication group."""

    group_index: int
    type: GroupType
    n_nodes: int
    n_ranks: int
    ranks: list[int] = field(default_factory=list)
    nvswitches: list[int] = field(default_factory=list)

    def nlocal_ranks(self) -> int:
        """Ranks of this group on each node."""
        return self.n_ranks // self.n_nodes


@dataclass
class SingleFlow:
    """One point-to-point transfer and its dependencies."""

    flow_id: int
    src: int
    dest: int
    flow_size: int = 0
    prev: list[int] = field(default_factory=list)
    parent_flow_id: list[int] = field(default_factory=list)
    child_flow_id: list[int] = field(default_factory=list)
    channel_id: int = 0
    chunk_id: int = 0
    chunk_count: int = 0
    conn_type: str = ""


@dataclass
class TreeNode:
    """A rank in a tree channel, linked by rank number."""

    depth: int
    rank: int
    up: int = -1
    down: list[int] = field(default_factory=list)


@dataclass(eq=False)
class ChannelNode:
    """A rank or switch in an NVLS tree channel, linked by reference."""

    depth: int
    rank: int
    up: Optional["ChannelNode"] = field(default=None, repr=False)
    down: list["ChannelNode"] = field(default_factory=list, repr=False)


@dataclass
class NcclInfo:
    """Algorithm and protocol chosen for one collective."""

    coll: ComType
    n_bytes: int
    algorithm: Algorithm
    protocol: Protocol = Protocol.UNDEF
    n_channels: int = 0


FlowModels = dict[tuple[int, int], SingleFlow]


def split_by_rank(flows: Mapping[tuple[int, int], SingleFlow]) -> dict[int, FlowModels]:
    """Give each rank its own copy of every flow it sends or receives."""
    per_rank: dict[int, FlowModels] = {}
    for key, flow in sorted(flows.items()):
        for rank in (flow.src, flow.dest):
            per_rank.setdefault(rank, {})[key] = copy.deepcopy(flow)
    return dict(sorted(per_rank.items()))