"""Tests for tree module."""

import random

import pytest
from pymindmap.errors import (
    InvalidParent, LayoutError, NodeNotFound, RootDeletionForbidden
)
from pymindmap.geom import Point, Side
from pymindmap.tree import (
    ROOT_ID, DEFAULT_LABEL, Edge, Node, NodeStyle, TreeStore, edge_id, tree_fault
)


def reachable(store):
    """Ids reachable from the root by following edges forward."""
    seen = {ROOT_ID}
    stack = [ROOT_ID]
    while stack:
        for child in store.get_children(stack.pop()):
            seen.add(child)
            stack.append(child)
    return seen


def assert_tree(store):
    """Every non-root node has one parent and everything hangs off the root."""
    incoming = {}
    for e in store.edges():
        incoming[e.target] = incoming.get(e.target, 0) + 1
    ids = {n.id for n in store.nodes()}
    assert ROOT_ID not in incoming
    assert all(incoming.get(node_id) == 1 for node_id in ids - {ROOT_ID})
    assert ids == reachable(store)
    store.check_invariant()


class TestNodeStyle:
    """Test NodeStyle class."""

    def test_defaults(self):
        """Test default style values."""
        style = NodeStyle()
        assert style.background_color == '#fff'
        assert style.text_color == '#333'
        assert style.font_size == 14

    def test_merged(self):
        """Test merging keeps untouched fields."""
        style = NodeStyle().merged(background_color='#4caf50')
        assert style.background_color == '#4caf50'
        assert style.text_color == '#333'

    def test_merged_is_a_copy(self):
        """Test merging leaves the original alone."""
        style = NodeStyle()
        style.merged(font_size=20)
        assert style.font_size == 14

    def test_merged_unknown_field(self):
        """Test unknown fields are rejected."""
        with pytest.raises(ValueError):
            NodeStyle().merged(border='1px')

    def test_equality(self):
        """Test styles compare by value."""
        assert NodeStyle(font_size=16) == NodeStyle(font_size=16)
        assert NodeStyle(font_size=16) != NodeStyle()


class TestNodeAndEdge:
    """Test Node and Edge records."""

    def test_node_defaults(self):
        """Test node defaults."""
        node = Node('n')
        assert node.label == DEFAULT_LABEL
        assert node.position == Point(0, 0)
        assert not node.collapsed
        assert not node.hidden
        assert node.node_type == 'mindmap'
        assert node.source_side is None

    def test_node_copy_is_deep(self):
        """Test copies do not share position or style."""
        node = Node('n', position=Point(1, 2))
        node.source_side = Side.right
        other = node.copy()
        other.position.x = 99
        other.style.font_size = 30
        assert node.position == Point(1, 2)
        assert node.style.font_size == 14
        assert other.source_side is Side.right

    def test_edge_default_id(self):
        """Test edge ids are derived from their endpoints."""
        e = Edge('root', 'node_2')
        assert e.id == 'edge_root-node_2'
        assert e.id == edge_id('root', 'node_2')

    def test_edge_equality(self):
        """Test edges compare by value."""
        assert Edge('a', 'b') == Edge('a', 'b')
        assert Edge('a', 'b') != Edge('a', 'b', id='other')


class TestTreeFault:
    """Test tree invariant check."""

    def test_valid(self):
        """Test a valid tree has no fault."""
        edges = [Edge('root', 'a'), Edge('a', 'b')]
        assert tree_fault(['root', 'a', 'b'], edges) is None

    def test_missing_root(self):
        """Test a tree needs a root."""
        assert 'root' in tree_fault(['a'], [])

    def test_duplicate_id(self):
        """Test ids must be unique."""
        assert 'Duplicate' in tree_fault(['root', 'a', 'a'], [Edge('root', 'a')])

    def test_unknown_endpoint(self):
        """Test edges must connect known nodes."""
        assert 'unknown' in tree_fault(['root'], [Edge('root', 'ghost')])
        assert 'unknown' in tree_fault(['root', 'a'], [Edge('ghost', 'a')])

    def test_two_parents(self):
        """Test a node may have only one parent."""
        edges = [Edge('root', 'a'), Edge('root', 'b'), Edge('a', 'c'), Edge('b', 'c')]
        assert 'more than one parent' in tree_fault(['root', 'a', 'b', 'c'], edges)

    def test_edge_into_root(self):
        """Test the root has no parent."""
        edges = [Edge('root', 'a'), Edge('a', 'root')]
        assert 'root' in tree_fault(['root', 'a'], edges)

    def test_cycle(self):
        """Test a detached cycle is unreachable."""
        edges = [Edge('a', 'b'), Edge('b', 'a')]
        assert 'not reachable' in tree_fault(['root', 'a', 'b'], edges)

    def test_orphan(self):
        """Test every node must hang off the root."""
        assert 'orphan' in tree_fault(['root', 'orphan'], [])


class TestTreeStore:
    """Test TreeStore queries and construction."""

    def test_fresh_store(self):
        """Test a fresh store holds only the root at the default anchor."""
        store = TreeStore()
        assert len(store) == 1
        assert ROOT_ID in store
        assert store.root_position == Point(250, 200)
        assert store.edges() == []

    def test_custom_anchor(self):
        """Test the root can start elsewhere."""
        store = TreeStore(root_label='Topic', anchor=(0, 0))
        assert store.root_position == Point(0, 0)
        assert store.node(ROOT_ID).label == 'Topic'

    def test_snapshots_are_copies(self):
        """Test changing a snapshot does not change the store."""
        store = TreeStore()
        store.nodes()[0].label = 'changed'
        store.node(ROOT_ID).collapsed = True
        assert store.node(ROOT_ID).label != 'changed'
        assert not store.node(ROOT_ID).collapsed

    def test_from_parts(self):
        """Test building a store from nodes and edges."""
        nodes = [Node('root'), Node('a'), Node('b')]
        edges = [Edge('root', 'a'), Edge('a', 'b')]
        store = TreeStore.from_parts(nodes, edges)
        assert store.get_children('root') == ['a']
        assert store.parent_of('b') == 'a'

    def test_from_parts_rejects_non_tree(self):
        """Test invalid parts are a programming error."""
        with pytest.raises(LayoutError):
            TreeStore.from_parts([Node('root'), Node('a')], [])

    def test_unknown_node_queries(self):
        """Test queries on a missing node."""
        store = TreeStore()
        with pytest.raises(NodeNotFound):
            store.get_children('ghost')
        with pytest.raises(NodeNotFound):
            store.get_descendants('ghost')
        with pytest.raises(NodeNotFound):
            store.parent_of('ghost')
        with pytest.raises(NodeNotFound):
            store.node('ghost')


class TestAddChild:
    """Test TreeStore.add_child."""

    def test_add_child(self):
        """Test a child is attached under its parent."""
        store = TreeStore()
        node_id = store.add_child(ROOT_ID, 'Idea')

        assert node_id == 'node_2'
        assert store.node(node_id).label == 'Idea'
        assert store.node(node_id).position == Point(0, 0)
        assert store.get_children(ROOT_ID) == [node_id]
        assert store.parent_of(node_id) == ROOT_ID
        assert store.edges() == [Edge(ROOT_ID, node_id)]
        assert_tree(store)

    def test_children_keep_insertion_order(self):
        """Test children are listed in the order they were added."""
        store = TreeStore()
        ids = [store.add_child(ROOT_ID) for _ in range(4)]
        assert store.get_children(ROOT_ID) == ids

    def test_ids_stay_unique_after_delete(self):
        """Test new ids never reuse a live id."""
        store = TreeStore()
        a = store.add_child(ROOT_ID)
        b = store.add_child(ROOT_ID)
        store.delete_subtree(a)
        c = store.add_child(ROOT_ID)
        assert c != b
        assert len({n.id for n in store.nodes()}) == len(store)

    def test_missing_parent(self):
        """Test adding under a missing node fails."""
        store = TreeStore()
        with pytest.raises(InvalidParent):
            store.add_child('ghost')
        assert len(store) == 1

    def test_collapsed_parent(self):
        """Test adding under a collapsed node fails and changes nothing."""
        store = TreeStore()
        a = store.add_child(ROOT_ID)
        store.toggle_collapse(a)
        with pytest.raises(InvalidParent):
            store.add_child(a)
        assert len(store) == 2
        assert store.get_children(a) == []

    def test_child_of_hidden_node_is_hidden(self):
        """Test a child added inside a hidden branch starts hidden."""
        store = TreeStore()
        a = store.add_child(ROOT_ID)
        b = store.add_child(a)
        store.toggle_collapse(a)
        store.toggle_collapse(b)
        store.toggle_collapse(b)
        c = store.add_child(b)
        assert store.node(c).hidden


class TestDeleteSubtree:
    """Test TreeStore.delete_subtree."""

    def build(self):
        store = TreeStore()
        a = store.add_child(ROOT_ID)
        b = store.add_child(ROOT_ID)
        a1 = store.add_child(a)
        a2 = store.add_child(a)
        a11 = store.add_child(a1)
        return store, a, b, a1, a2, a11

    def test_removes_descendants(self):
        """Test the node and every descendant are removed."""
        store, a, b, a1, a2, a11 = self.build()
        removed = store.delete_subtree(a)

        assert removed == {a, a1, a2, a11}
        assert {n.id for n in store.nodes()} == {ROOT_ID, b}
        assert_tree(store)

    def test_removes_edges(self):
        """Test no edge mentions a removed node."""
        store, a, b, a1, a2, a11 = self.build()
        removed = store.delete_subtree(a1)

        for e in store.edges():
            assert e.source not in removed
            assert e.target not in removed
        assert store.get_children(a) == [a2]

    def test_leaf(self):
        """Test deleting a leaf removes only the leaf."""
        store, a, b, a1, a2, a11 = self.build()
        assert store.delete_subtree(b) == {b}
        assert store.get_children(ROOT_ID) == [a]

    def test_root_forbidden(self):
        """Test the root cannot be deleted."""
        store, *_ = self.build()
        with pytest.raises(RootDeletionForbidden):
            store.delete_subtree(ROOT_ID)
        assert len(store) == 6

    def test_missing_node(self):
        """Test deleting a missing node fails."""
        store, *_ = self.build()
        with pytest.raises(NodeNotFound):
            store.delete_subtree('ghost')
        assert len(store) == 6


class TestToggleCollapse:
    """Test TreeStore.toggle_collapse."""

    def test_collapse_hides_descendants(self):
        """Test every descendant is hidden and nothing else."""
        store = TreeStore()
        a = store.add_child(ROOT_ID)
        b = store.add_child(ROOT_ID)
        a1 = store.add_child(a)
        a11 = store.add_child(a1)
        b1 = store.add_child(b)

        assert store.toggle_collapse(a) is True

        assert store.node(a).collapsed
        assert store.node(a1).hidden
        assert store.node(a11).hidden
        assert not store.node(a).hidden
        assert not store.node(b).hidden
        assert not store.node(b1).hidden
        assert not store.node(ROOT_ID).hidden

    def test_expand_reveals(self):
        """Test toggling twice restores visibility."""
        store = TreeStore()
        a = store.add_child(ROOT_ID)
        a1 = store.add_child(a)

        store.toggle_collapse(a)
        assert store.toggle_collapse(a) is False
        assert not store.node(a).collapsed
        assert not store.node(a1).hidden

    def test_collapse_keeps_structure(self):
        """Test collapsing deletes nothing."""
        store = TreeStore()
        a = store.add_child(ROOT_ID)
        store.add_child(a)
        edges = store.edges()

        store.toggle_collapse(a)

        assert len(store) == 3
        assert store.edges() == edges

    def test_missing_node(self):
        """Test collapsing a missing node fails."""
        with pytest.raises(NodeNotFound):
            TreeStore().toggle_collapse('ghost')


class TestDescendants:
    """Test descendant and parent queries."""

    def test_descendants_exclude_self(self):
        """Test the node itself is not its own descendant."""
        store = TreeStore()
        a = store.add_child(ROOT_ID)
        a1 = store.add_child(a)
        a2 = store.add_child(a)
        a21 = store.add_child(a2)

        assert store.get_descendants(a) == {a1, a2, a21}
        assert store.get_descendants(a21) == set()
        assert store.get_descendants(ROOT_ID) == {a, a1, a2, a21}

    def test_parent_of_root(self):
        """Test the root has no parent."""
        assert TreeStore().parent_of(ROOT_ID) is None


class TestEdits:
    """Test style, label and position edits."""

    def test_update_style(self):
        """Test merging style fields."""
        store = TreeStore()
        style = store.update_style(ROOT_ID, background_color='#2196f3', font_size=18)
        assert style.background_color == '#2196f3'
        assert store.node(ROOT_ID).style.font_size == 18
        assert store.node(ROOT_ID).style.text_color == '#333'

    def test_update_style_missing(self):
        """Test restyling a missing node fails."""
        with pytest.raises(NodeNotFound):
            TreeStore().update_style('ghost', font_size=3)

    def test_set_label(self):
        """Test renaming."""
        store = TreeStore()
        store.set_label(ROOT_ID, 'Plan')
        assert store.node(ROOT_ID).label == 'Plan'

    def test_set_positions(self):
        """Test committing a full position assignment."""
        store = TreeStore()
        a = store.add_child(ROOT_ID)
        store.set_positions(
            {ROOT_ID: Point(250, 200), a: Point(650, 200)},
            Side.right, Side.left
        )
        assert store.node(a).position == Point(650, 200)
        assert store.node(a).target_side is Side.left

    def test_set_positions_must_cover_all(self):
        """Test partial assignments are rejected."""
        store = TreeStore()
        store.add_child(ROOT_ID)
        with pytest.raises(LayoutError):
            store.set_positions({ROOT_ID: Point(0, 0)})


class TestRandomEdits:
    """Test the tree invariant under random edit sequences."""

    @pytest.mark.parametrize('seed', [1, 2, 3, 4, 5])
    def test_invariant_holds(self, seed):
        """Test adds and deletes always leave a rooted tree."""
        rng = random.Random(seed)
        store = TreeStore()
        for _ in range(200):
            ids = sorted(n.id for n in store.nodes())
            target = rng.choice(ids)
            if rng.random() < 0.7 or target == ROOT_ID:
                store.add_child(target)
            else:
                before = {n.id for n in store.nodes()}
                expected = {target} | store.get_descendants(target)
                removed = store.delete_subtree(target)
                assert removed == expected
                assert {n.id for n in store.nodes()} == before - removed
            assert_tree(store)
