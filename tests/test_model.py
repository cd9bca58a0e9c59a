from ncclflow.model import (
    ChannelNode,
    GroupInfo,
    GroupType,
    SingleFlow,
    TreeNode,
    split_by_rank,
)


def _flows():
    return {
        (0, 1): SingleFlow(1, 2, 3, 64, [2], [0], [], 0, 0, 2, "RING"),
        (0, 0): SingleFlow(0, 1, 2, 64, [1], [], [1], 0, 0, 2, "RING"),
    }


def test_nlocal_ranks_times_nodes_is_group_size():
    info = GroupInfo(0, GroupType.TP, 2, 16, list(range(16)), [100, 101])
    assert info.nlocal_ranks() * info.n_nodes == info.n_ranks


def test_split_by_rank_keys_are_sorted_ranks():
    result = split_by_rank(_flows())
    assert list(result) == [1, 2, 3]


def test_split_by_rank_each_flow_touches_its_rank():
    result = split_by_rank(_flows())
    for rank, flows in result.items():
        assert all(rank in (f.src, f.dest) for f in flows.values())
    assert list(result[2]) == [(0, 0), (0, 1)]
    assert list(result[1]) == [(0, 0)]


def test_split_by_rank_copies_are_independent():
    result = split_by_rank(_flows())
    result[1][(0, 0)].child_flow_id.append(99)
    assert result[2][(0, 0)].child_flow_id == [1]


def test_split_by_rank_self_flow_appears_once():
    result = split_by_rank({(0, 5): SingleFlow(5, 4, 4)})
    assert list(result) == [4]
    assert list(result[4]) == [(0, 5)]


def test_split_by_rank_empty():
    assert split_by_rank({}) == {}


def test_single_flow_lists_not_shared():
    a = SingleFlow(0, 0, 1)
    b = SingleFlow(1, 1, 2)
    a.prev.append(7)
    assert b.prev == []
    assert a.conn_type == ""


def test_tree_node_defaults():
    node = TreeNode(-1, 4)
    other = TreeNode(-1, 5)
    node.down.append(5)
    assert node.up == -1
    assert other.down == []


def test_channel_nodes_hash_by_identity():
    a = ChannelNode(-1, 3)
    b = ChannelNode(-1, 3)
    degrees = {a: 1, b: 2}
    assert len(degrees) == 2
    assert a != b


def test_channel_node_repr_with_cycle():
    parent = ChannelNode(-1, 0)
    child = ChannelNode(-1, 1, parent)
    parent.down.append(child)
    assert "rank=1" in repr(child)
    assert child.up is parent