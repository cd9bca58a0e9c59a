# ncclflow

`ncclflow` builds the flow models that a network simulator needs to replay
NCCL-style collective operations. From the ranks of a communication group it
lays out ring, double-binary-tree and NVLS tree channels, and expands a
collective into a dependency graph of point-to-point flows: who sends to whom,
how much, and which flows must finish first.

## Installation

```
pip install .
```

For running the tests:

```
pip install .[test]
pytest
```

## Concepts

- `ncclflow.model.GroupInfo` describes one group: its index, `GroupType`,
  node count, rank count, member ranks and the NVSwitch ids of its nodes.
  `nlocal_ranks()` gives the ranks per node.
- `SingleFlow` is one transfer, with `parent_flow_id` and `child_flow_id`
  lists that describe its dependencies.
- A flow model maps `(channel_id, flow_id)` to a `SingleFlow`.
  `split_by_rank` turns one into a separate model per rank, holding every flow
  that rank sends or receives.
- Flow ids are drawn from an iterator of integers that you pass in
  (`itertools.count()` does). Sharing one iterator across calls keeps ids
  unique across collectives.

## Ring collectives

```python
import itertools

from ncclflow.channels import build_ring_channels
from ncclflow.model import GroupInfo, GroupType
from ncclflow.ringflows import all_reduce_ring_flows

info = GroupInfo(0, GroupType.TP, n_nodes=1, n_ranks=4,
                 ranks=[0, 1, 2, 3], nvswitches=[4])
rings = build_ring_channels({0: [0, 1, 2, 3]}, info)
# rings[0][0] == [3, 1, 0, 3]  ->  [prev, next, node_recv, node_send]

ids = itertools.count()
per_rank = all_reduce_ring_flows(rings, info, 1 << 20, ids)
for (channel, flow_id), flow in sorted(per_rank[0].items()):
    print(channel, flow_id, flow.src, "->", flow.dest, flow.flow_size)
```

`all_gather_ring_flows` and `reduce_scatter_ring_flows` take the same
arguments. `all_reduce_ring_flows` and `reduce_scatter_ring_flows` also
accept `pxn_enabled=True`, which routes traffic leaving a node through the
rank that receives on the next node when the group spans several nodes;
all-gather never uses that routing.

## Tree and NVLS collectives

```python
import itertools

from ncclflow.channels import (connect_inter_intra_tree, double_binary_trees,
                               expand_rings, node_ranks)
from ncclflow.model import GroupInfo, GroupType
from ncclflow.treeflows import tree_allreduce_flows

info = GroupInfo(0, GroupType.DP, n_nodes=2, n_ranks=4,
                 ranks=[0, 1, 2, 3], nvswitches=[8, 9])
node2ranks = node_ranks(expand_rings({0: [0, 1]}, info), info)[0]

tree_channels = {}
for channel_id, root in enumerate(double_binary_trees(info.n_nodes)):
    channel = {}
    connect_inter_intra_tree(root, node2ranks, channel)
    tree_channels[channel_id] = channel

flows = tree_allreduce_flows(tree_channels, 1 << 20, itertools.count())
```

- `tree_allreduce_flows` splits the data over the channels and 64 chunks,
  reducing each chunk up the tree and broadcasting it back down.
- `nvls_tree_allreduce_flows` does the same over trees of `ChannelNode`s built
  with `nvls_tree_intra_channel` and linked with `nvls_tree_inter_channel`.
- `nvls_allreduce_flows(group_info, data_size, ids)` models an all-reduce
  through the NVSwitches of a single-node group in 4 chunks; a group spanning
  more than one node yields no flows.

Tree results are a single flow model; use `split_by_rank` for per-rank models.
Invalid input (no channels, a negative size, ranks that do not fit the group
layout) raises `ValueError`.

## Queue allocation

`ncclflow.queues.QueueLevels` hands out queue ids round-robin, one block of
consecutive ids per level:

```python
from ncclflow.queues import BackendType, QueueLevels

levels = QueueLevels([2, 2], offset=0, backend=BackendType.NS3)
levels.next_queue_at_level(0)   # (0, Direction.CLOCKWISE)
levels.next_queue_at_level(0)   # (1, Direction.ANTICLOCKWISE)
```

`QueueLevels.uniform` builds levels of equal size;
`next_queue_at_level_first` and `next_queue_at_level_last` draw only from the
first (clockwise) or second (anticlockwise) half of a level.

## What this package does not do

It works from groups and rings you give it. It does not split a cluster into
TP and DP groups, pick an algorithm for a collective, read settings from the
environment, cache flow models between calls, or write a log file. There is no
command-line tool and no simulator: the flow models are data for another
program to replay.