"""Flow models for ring-based collectives: all-reduce, all-gather, reduce-scatter."""

from __future__ import annotations

from typing import Iterator, Mapping, Optional, Sequence

from ncclflow.model import FlowModels, GroupInfo, SingleFlow, split_by_rank

RingChannels = Mapping[int, Mapping[int, Sequence[int]]]

_RING = "RING"
_PXN_INIT = "PXN_INIT"
_PXN = "PXN"


def _known(rank: int) -> list[int]:
    """A one-element rank list, or empty when the rank is unset (-1)."""
    return [rank] if rank != -1 else []


def _ring_step(
    ring_id: int,
    ring: Mapping[int, Sequence[int]],
    *,
    size: int,
    chunk_id: int,
    chunk_count: int,
    ids: Iterator[int],
    pxn: bool,
    pxn_tag: str,
    previous: Optional[Mapping[int, SingleFlow]],
    result: FlowModels,
) -> dict[int, SingleFlow]:
    """Emit one step of a ring: every rank forwards one chunk to its successor.

    ``previous`` maps each rank to the flow it sent in the previous step; a new
    flow from a rank depends on the flow its ring predecessor sent before.
    Returns the flows of this step keyed by sending rank.
    """
    items = sorted((rank, tuple(entry[:4])) for rank, entry in ring.items())
    pre_node_recv = items[-1][1][2]
    cur_node_recv, cur_node_send = items[0][1][2], items[0][1][3]
    tasks: dict[int, SingleFlow] = {}

    for rank, (prev, nxt, node_recv, node_send) in items:
        if cur_node_recv != node_recv and cur_node_send != node_send:
            pre_node_recv = cur_node_recv
            cur_node_recv, cur_node_send = node_recv, node_send

        parents = [] if previous is None else [previous[prev].flow_id]

        def link(flow_id: int) -> None:
            for parent in parents:
                result[(ring_id, parent)].child_flow_id.append(flow_id)

        if pxn and node_send == rank and node_recv != rank:
            relay_id = next(ids)
            forward_id = next(ids)
            link(relay_id)
            result[(ring_id, relay_id)] = SingleFlow(
                relay_id, rank, node_recv, size, _known(prev), list(parents),
                [forward_id], ring_id, chunk_id, chunk_count, _RING,
            )
            flow = SingleFlow(
                forward_id, node_recv, nxt, size, _known(rank), [relay_id],
                [], ring_id, chunk_id, chunk_count, pxn_tag,
            )
        elif pxn and node_recv == rank and node_send != rank:
            flow_id = next(ids)
            link(flow_id)
            flow = SingleFlow(
                flow_id, rank, nxt, size, _known(pre_node_recv), list(parents),
                [], ring_id, chunk_id, chunk_count, _RING,
            )
        else:
            flow_id = next(ids)
            link(flow_id)
            flow = SingleFlow(
                flow_id, rank, nxt, size, _known(prev), list(parents),
                [], ring_id, chunk_id, chunk_count, _RING,
            )
        result[(ring_id, flow.flow_id)] = flow
        tasks[rank] = flow
    return tasks


def _ring_flows(
    ring_channels: RingChannels,
    group_info: GroupInfo,
    data_size: int,
    ids: Iterator[int],
    *,
    pxn: bool,
    chunk_count: int,
    step_tags: Sequence[str],
) -> dict[int, FlowModels]:
    n_ranks = group_info.n_ranks
    if n_ranks <= 0:
        raise ValueError(f"group must hold at least one rank, got {n_ranks}")
    if not ring_channels:
        raise ValueError("no ring channels to spread the data over")
    if data_size < 0:
        raise ValueError(f"data size must not be negative, got {data_size}")

    size = data_size // n_ranks // len(ring_channels)
    use_pxn = pxn and group_info.n_nodes > 1
    result: FlowModels = {}
    for ring_id, ring in sorted(ring_channels.items()):
        if not ring:
            raise ValueError(f"ring channel {ring_id} holds no ranks")
        if size == 0:
            continue
        previous: Optional[dict[int, SingleFlow]] = None
        for chunk_id, tag in enumerate(step_tags):
            previous = _ring_step(
                ring_id,
                ring,
                size=size,
                chunk_id=chunk_id,
                chunk_count=chunk_count,
                ids=ids,
                pxn=use_pxn,
                pxn_tag=tag,
                previous=previous,
                result=result,
            )
    return split_by_rank(result)


def all_reduce_ring_flows(
    ring_channels: RingChannels,
    group_info: GroupInfo,
    data_size: int,
    ids: Iterator[int],
    pxn_enabled: bool = False,
) -> dict[int, FlowModels]:
    """Ring all-reduce: a reduce-scatter pass followed by an all-gather pass.

    Returns, for every rank involved, the flows it sends or receives.
    """
    n = group_info.n_ranks
    steps = 1 + max(n - 1, 0) + max(n - 2, 0)
    return _ring_flows(
        ring_channels, group_info, data_size, ids,
        pxn=pxn_enabled, chunk_count=2 * (n - 1), step_tags=[_PXN_INIT] * steps,
    )


def all_gather_ring_flows(
    ring_channels: RingChannels,
    group_info: GroupInfo,
    data_size: int,
    ids: Iterator[int],
) -> dict[int, FlowModels]:
    """Ring all-gather; PXN routing is never used for this collective."""
    n = group_info.n_ranks
    return _ring_flows(
        ring_channels, group_info, data_size, ids,
        pxn=False, chunk_count=n - 1,
        step_tags=[_PXN_INIT] + [_PXN] * max(n - 2, 0),
    )


def reduce_scatter_ring_flows(
    ring_channels: RingChannels,
    group_info: GroupInfo,
    data_size: int,
    ids: Iterator[int],
    pxn_enabled: bool = False,
) -> dict[int, FlowModels]:
    """Ring reduce-scatter over every ring channel."""
    n = group_info.n_ranks
    return _ring_flows(
        ring_channels, group_info, data_size, ids,
        pxn=pxn_enabled, chunk_count=n - 1,
        step_tags=[_PXN_INIT] + [_RING] * max(n - 2, 0),
    )