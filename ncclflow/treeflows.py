"""Flow models for tree-shaped and NVLS all-reduce collectives."""

from __future__ import annotations

from collections import deque
from typing import Callable, Hashable, Iterator, Mapping, Optional, Sequence, TypeVar

from ncclflow.model import ChannelNode, FlowModels, GroupInfo, SingleFlow, TreeNode, split_by_rank

TREE_CHUNK_COUNT = 64
NVLS_TREE_CHUNK_COUNT = 1
NVLS_CHUNK_COUNT = 4

_TREE_TAG = "TREE_INIT"
_NVLS_TREE_TAG = "NVLS_TREE"
_NVLS_TAG = "NVLS"

K = TypeVar("K", bound=Hashable)


def _check_size(data_size: int) -> None:
    if data_size < 0:
        raise ValueError(f"data size must not be negative, got {data_size}")


def _link(result: FlowModels, channel_id: int, parents: Sequence[int], flow_id: int) -> None:
    for parent in parents:
        result[(channel_id, parent)].child_flow_id.append(flow_id)


def _reduce_up(
    nodes: Sequence[K],
    up_of: Callable[[K], Optional[K]],
    down_of: Callable[[K], Sequence[K]],
    rank_of: Callable[[K], int],
    prevs: dict[K, list[int]],
    *,
    size: int,
    chunk_id: int,
    chunk_count: int,
    channel_id: int,
    tag: str,
    ids: Iterator[int],
    result: FlowModels,
) -> None:
    """Send a chunk from the leaves towards the root, children before parents."""
    pending = {node: len(down_of(node)) for node in nodes}
    queue: deque[K] = deque()
    for node in nodes:
        if pending[node] == 0:
            queue.append(node)
            prevs[node] = []
    while queue:
        current = queue.popleft()
        up = up_of(current)
        if up is None:
            continue
        pending[up] -= 1
        downs = down_of(current)
        prev_ranks = [rank_of(d) for d in downs] if downs else [rank_of(up)]
        parents = list(prevs.get(current, []))
        flow_id = next(ids)
        flow = SingleFlow(
            flow_id, rank_of(current), rank_of(up), size, prev_ranks, parents,
            [], channel_id, chunk_id, chunk_count, tag,
        )
        _link(result, channel_id, parents, flow_id)
        result[(channel_id, flow_id)] = flow
        prevs.setdefault(up, []).append(flow_id)
        prevs.pop(current, None)
        if pending[up] == 0:
            queue.append(up)


def _broadcast_down(
    nodes: Sequence[K],
    up_of: Callable[[K], Optional[K]],
    down_of: Callable[[K], Sequence[K]],
    rank_of: Callable[[K], int],
    prevs: dict[K, list[int]],
    *,
    size: int,
    chunk_id: int,
    chunk_count: int,
    channel_id: int,
    tag: str,
    ids: Iterator[int],
    result: FlowModels,
) -> None:
    """Send a chunk from the root back out to every leaf."""
    waiting = {node: 0 if up_of(node) is None else 1 for node in nodes}
    queue: deque[K] = deque(node for node in nodes if waiting[node] == 0)
    while queue:
        current = queue.popleft()
        downs = down_of(current)
        up = up_of(current)
        for down in downs:
            waiting[down] -= 1
            prev_ranks = [rank_of(d) for d in downs] if up is None else [rank_of(up)]
            parents = list(prevs.setdefault(current, []))
            flow_id = next(ids)
            flow = SingleFlow(
                flow_id, rank_of(current), rank_of(down), size, prev_ranks, parents,
                [], channel_id, chunk_id, chunk_count, tag,
            )
            _link(result, channel_id, parents, flow_id)
            result[(channel_id, flow_id)] = flow
            prevs.setdefault(down, []).append(flow_id)
            if waiting[down] == 0:
                queue.append(down)


def _allreduce_channel(
    nodes: Sequence[K],
    up_of: Callable[[K], Optional[K]],
    down_of: Callable[[K], Sequence[K]],
    rank_of: Callable[[K], int],
    *,
    size: int,
    chunk_count: int,
    channel_id: int,
    tag: str,
    ids: Iterator[int],
    result: FlowModels,
) -> None:
    for chunk_id in range(chunk_count):
        prevs: dict[K, list[int]] = {}
        options = dict(
            size=size, chunk_id=chunk_id, chunk_count=chunk_count,
            channel_id=channel_id, tag=tag, ids=ids, result=result,
        )
        _reduce_up(nodes, up_of, down_of, rank_of, prevs, **options)
        _broadcast_down(nodes, up_of, down_of, rank_of, prevs, **options)


def tree_allreduce_flows(
    tree_channels: Mapping[int, Mapping[int, TreeNode]],
    data_size: int,
    ids: Iterator[int],
) -> FlowModels:
    """Tree all-reduce: every chunk is reduced up each tree, then broadcast down."""
    _check_size(data_size)
    if not tree_channels:
        raise ValueError("no tree channels to spread the data over")
    size = data_size // len(tree_channels) // TREE_CHUNK_COUNT
    result: FlowModels = {}
    for channel_id, channel in sorted(tree_channels.items()):
        for rank, node in channel.items():
            linked = ([node.up] if node.up != -1 else []) + list(node.down)
            missing = [r for r in linked if r not in channel]
            if missing:
                raise ValueError(
                    f"rank {rank} in tree channel {channel_id} links to unknown ranks {missing}"
                )

        def up_of(rank: int, channel: Mapping[int, TreeNode] = channel) -> Optional[int]:
            up = channel[rank].up
            return None if up == -1 else up

        def down_of(rank: int, channel: Mapping[int, TreeNode] = channel) -> Sequence[int]:
            return channel[rank].down

        _allreduce_channel(
            sorted(channel), up_of, down_of, lambda rank: rank,
            size=size, chunk_count=TREE_CHUNK_COUNT, channel_id=channel_id,
            tag=_TREE_TAG, ids=ids, result=result,
        )
    return result


def nvls_tree_allreduce_flows(
    nvls_tree_channels: Mapping[int, Mapping[int, Sequence[ChannelNode]]],
    data_size: int,
    ids: Iterator[int],
) -> FlowModels:
    """NVLS tree all-reduce over NVSwitch-rooted trees linked across nodes."""
    _check_size(data_size)
    if not nvls_tree_channels:
        raise ValueError("no NVLS tree channels to spread the data over")
    size = data_size // len(nvls_tree_channels) // NVLS_TREE_CHUNK_COUNT
    result: FlowModels = {}
    for channel_id, channel in sorted(nvls_tree_channels.items()):
        nodes = [node for _, entries in sorted(channel.items()) for node in entries]
        known = {id(node) for node in nodes}
        for node in nodes:
            linked = ([node.up] if node.up is not None else []) + list(node.down)
            if any(id(other) not in known for other in linked):
                raise ValueError(
                    f"node of rank {node.rank} in NVLS tree channel {channel_id} "
                    "links outside the channel"
                )
        _allreduce_channel(
            nodes, lambda n: n.up, lambda n: n.down, lambda n: n.rank,
            size=size, chunk_count=NVLS_TREE_CHUNK_COUNT, channel_id=channel_id,
            tag=_NVLS_TREE_TAG, ids=ids, result=result,
        )
    return result


def nvls_allreduce_flows(
    group_info: GroupInfo,
    data_size: int,
    ids: Iterator[int],
) -> dict[int, FlowModels]:
    """NVLS all-reduce inside one node: every rank sends to each NVSwitch and back.

    Groups spanning more than one node produce no flows.
    """
    _check_size(data_size)
    result: FlowModels = {}
    if group_info.n_nodes == 1:
        size = data_size // NVLS_CHUNK_COUNT
        for chunk_id in range(NVLS_CHUNK_COUNT):
            for switch in group_info.nvswitches:
                senders: list[int] = []
                parents: list[int] = []
                for rank in group_info.ranks:
                    flow_id = next(ids)
                    result[(0, flow_id)] = SingleFlow(
                        flow_id, rank, switch, size, [switch], [], [],
                        0, chunk_id, NVLS_CHUNK_COUNT, _NVLS_TAG,
                    )
                    senders.append(rank)
                    parents.append(flow_id)
                for rank in group_info.ranks:
                    flow_id = next(ids)
                    result[(0, flow_id)] = SingleFlow(
                        flow_id, switch, rank, size, list(senders), list(parents), [],
                        0, chunk_id, NVLS_CHUNK_COUNT, _NVLS_TAG,
                    )
                    _link(result, 0, parents, flow_id)
    return split_by_rank(result)