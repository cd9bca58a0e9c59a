"""Construction of ring, tree and NVLS tree channels for a communication group."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Mapping, MutableMapping, Optional, Sequence

from ncclflow.model import ChannelNode, GroupInfo, TreeNode

RingChannels = dict[int, dict[int, list[int]]]
TreeChannels = dict[int, dict[int, TreeNode]]
NVLSTreeChannels = dict[int, dict[int, list[ChannelNode]]]


@dataclass(eq=False)
class BinaryTreeNode:
    """A node (machine) in an inter-node binary tree."""

    node: int
    left: Optional["BinaryTreeNode"] = None
    right: Optional["BinaryTreeNode"] = None


def _layout(group_info: GroupInfo) -> tuple[int, int, int]:
    """Return (nodes, ranks per node, rank distance between nodes)."""
    n_nodes = group_info.n_nodes
    if n_nodes < 1:
        raise ValueError(f"group must span at least one node, got {n_nodes}")
    nlocal = group_info.nlocal_ranks()
    if nlocal < 1:
        raise ValueError(
            f"group has {group_info.n_ranks} ranks for {n_nodes} nodes: no local ranks"
        )
    if n_nodes > 1:
        if len(group_info.ranks) <= nlocal:
            raise ValueError("group ranks do not cover the second node")
        delta = group_info.ranks[nlocal] - group_info.ranks[0]
    else:
        delta = 0
    return n_nodes, nlocal, delta


def _local_part(ring: Sequence[int], nlocal: int, ring_id: int) -> list[int]:
    if len(ring) < nlocal:
        raise ValueError(
            f"local ring {ring_id} has {len(ring)} ranks, {nlocal} are needed"
        )
    return list(ring[:nlocal])


def build_ring_channels(
    local_rings: Mapping[int, Sequence[int]], group_info: GroupInfo
) -> RingChannels:
    """Extend each node-local ring across all nodes of the group.

    Every rank maps to ``[prev, next, node_recv, node_send]`` where the last two
    are the ranks through which the ring enters and leaves that rank's node.
    """
    n_nodes, nlocal, delta = _layout(group_info)
    channels: RingChannels = {}
    for ring_id, ring in sorted(local_rings.items()):
        local = _local_part(ring, nlocal, ring_id)
        successors = local[1:] + [local[0] + delta]
        entries: dict[int, list[int]] = {}
        prev = -1
        for node in range(n_nodes):
            offset = node * delta
            node_recv = local[0] + offset
            node_send = local[-1] + offset
            for rank, succ in zip(local, successors):
                current = rank + offset
                entries[current] = [prev, succ + offset, node_recv, node_send]
                prev = current
        end_rank = local[-1] + (n_nodes - 1) * delta
        entries[local[0]][0] = end_rank
        entries[end_rank][1] = local[0]
        channels[ring_id] = dict(sorted(entries.items()))
    return channels


def expand_rings(
    local_rings: Mapping[int, Sequence[int]], group_info: GroupInfo
) -> dict[int, list[int]]:
    """Lay each node-local ring out over every node, node after node."""
    n_nodes, nlocal, delta = _layout(group_info)
    rings: dict[int, list[int]] = {}
    for ring_id, ring in sorted(local_rings.items()):
        local = _local_part(ring, nlocal, ring_id)
        rings[ring_id] = [
            rank + node * delta for node in range(n_nodes) for rank in local
        ]
    return rings


def node_ranks(
    rings: Mapping[int, Sequence[int]], group_info: GroupInfo
) -> dict[int, dict[int, list[int]]]:
    """Split each expanded ring into the ranks of each node."""
    n_nodes, nlocal, _ = _layout(group_info)
    result: dict[int, dict[int, list[int]]] = {}
    for ring_id, ring in sorted(rings.items()):
        if len(ring) < n_nodes * nlocal:
            raise ValueError(
                f"ring {ring_id} has {len(ring)} ranks, {n_nodes * nlocal} are needed"
            )
        result[ring_id] = {
            node: list(ring[node * nlocal:(node + 1) * nlocal])
            for node in range(n_nodes)
        }
    return result


def double_binary_trees(n_nodes: int) -> list[BinaryTreeNode]:
    """Build the two complementary inter-node trees over nodes 0..n_nodes-1."""
    if n_nodes < 1:
        raise ValueError(f"need at least one node, got {n_nodes}")
    nodes = list(range(n_nodes))
    level = [BinaryTreeNode(node) for node in nodes]
    while len(level) > 1:
        merged: list[BinaryTreeNode] = []
        i = 0
        while i + 2 < len(level):
            parent = level[i + 1]
            parent.left = level[i]
            parent.right = level[i + 2]
            merged.append(parent)
            if i + 3 < len(level):
                merged.append(level[i + 3])
            i += 4
        remaining = len(level) - i
        if remaining == 1:
            merged.append(level[i])
        elif remaining == 2:
            parent = level[i + 1]
            parent.left = level[i]
            merged.append(parent)
        level = merged
    root = level[0]
    return [root, shift_tree(root, nodes)]


def shift_tree(root: BinaryTreeNode, nodes: Sequence[int]) -> BinaryTreeNode:
    """Copy a tree with every node replaced by its successor in ``nodes``."""
    if not nodes:
        raise ValueError("nodes must not be empty")
    index = {node: i for i, node in enumerate(nodes)}

    def successor(node: int) -> int:
        return nodes[(index[node] + 1) % len(nodes)]

    shifted = {node: BinaryTreeNode(node) for node in nodes}
    queue: deque[BinaryTreeNode] = deque([root])
    while queue:
        current = queue.popleft()
        target = shifted[successor(current.node)]
        if current.left is not None:
            target.left = shifted[successor(current.left.node)]
            queue.append(current.left)
        if current.right is not None:
            target.right = shifted[successor(current.right.node)]
            queue.append(current.right)
    return shifted[successor(root.node)]


def _tree_node(tree_channel: MutableMapping[int, TreeNode], rank: int) -> TreeNode:
    node = tree_channel.get(rank)
    if node is None:
        node = TreeNode(-1, rank)
        tree_channel[rank] = node
    return node


def connect_inter_intra_tree(
    root: Optional[BinaryTreeNode],
    node2ranks: Mapping[int, Sequence[int]],
    tree_channel: MutableMapping[int, TreeNode],
) -> None:
    """Chain the ranks of each node and hang child nodes off the first rank."""
    if root is None:
        return
    ranks = list(node2ranks[root.node])
    for upper, lower in zip(ranks, ranks[1:]):
        _tree_node(tree_channel, upper).down.append(lower)
        _tree_node(tree_channel, lower).up = upper
    for child in (root.left, root.right):
        if child is None:
            continue
        head = ranks[0]
        down_rank = node2ranks[child.node][0]
        _tree_node(tree_channel, head).down.append(down_rank)
        _tree_node(tree_channel, down_rank).up = head
        connect_inter_intra_tree(child, node2ranks, tree_channel)


def nvls_tree_intra_channel(
    intra_topo: Sequence[int], channel: MutableMapping[int, list[ChannelNode]]
) -> ChannelNode:
    """Build one node's NVLS tree: head rank, its NVSwitch, then the leaf ranks.

    ``intra_topo`` is ``[head_rank, nvswitch, leaf_rank, ...]``. Every created
    node is recorded in ``channel`` under its rank; the head is returned.
    """
    if len(intra_topo) < 2:
        raise ValueError("intra topology needs a head rank and an NVSwitch")
    root = ChannelNode(-1, intra_topo[0])
    channel.setdefault(root.rank, []).append(root)
    switch = ChannelNode(-1, intra_topo[1], root)
    channel.setdefault(switch.rank, []).append(switch)
    root.down.append(switch)
    for rank in intra_topo[2:]:
        leaf = ChannelNode(-1, rank, switch)
        switch.down.append(leaf)
        channel.setdefault(leaf.rank, []).append(leaf)
    return root


def nvls_tree_inter_channel(
    root: Optional[BinaryTreeNode], node_channel_nodes: Mapping[int, ChannelNode]
) -> Optional[ChannelNode]:
    """Link the per-node NVLS tree heads following an inter-node tree."""
    if root is None:
        return None
    current = node_channel_nodes[root.node]
    for child in (root.left, root.right):
        if child is None:
            continue
        below = node_channel_nodes[child.node]
        current.down.append(below)
        below.up = current
        nvls_tree_inter_channel(child, node_channel_nodes)
    return current