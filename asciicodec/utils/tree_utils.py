from dataclasses import dataclass
from typing import Any, Iterator


@dataclass
class BinaryNode:
    """node of a binary (prefix-free) tree

    Leaf nodes carry the symbol in `id`; internal nodes have both children set and id=None.
    """

    left_child: Any = None
    right_child: Any = None
    id: Any = None

    @property
    def is_leaf_node(self):
        return (self.left_child is None) and (self.right_child is None)

    def iter_leaves(self) -> Iterator["BinaryNode"]:
        """yields the leaf nodes left to right (i.e. in preorder)"""
        if self.is_leaf_node:
            yield self
            return
        for child in (self.left_child, self.right_child):
            if child is not None:
                yield from child.iter_leaves()

    def get_height(self) -> int:
        """number of edges on the longest root-to-leaf path"""
        if self.is_leaf_node:
            return 0
        return 1 + max(
            child.get_height() for child in (self.left_child, self.right_child) if child is not None
        )

    def is_same_structure(self, other: "BinaryNode") -> bool:
        """True if both trees have the same shape, and the same leaf ids at the same positions"""
        if other is None:
            return False
        if self.is_leaf_node or other.is_leaf_node:
            return self.is_leaf_node and other.is_leaf_node and self.id == other.id

        def _same(a, b):
            if a is None or b is None:
                return a is None and b is None
            return a.is_same_structure(b)

        return _same(self.left_child, other.left_child) and _same(self.right_child, other.right_child)


def test_binary_node_helpers():
    #   |--A
    # ·-|
    #   |    |--B
    #   |--·-|
    #        |--C
    tree = BinaryNode(
        left_child=BinaryNode(id="A"),
        right_child=BinaryNode(left_child=BinaryNode(id="B"), right_child=BinaryNode(id="C")),
    )
    assert not tree.is_leaf_node
    assert [n.id for n in tree.iter_leaves()] == ["A", "B", "C"]
    assert tree.get_height() == 2

    swapped = BinaryNode(
        left_child=BinaryNode(left_child=BinaryNode(id="B"), right_child=BinaryNode(id="C")),
        right_child=BinaryNode(id="A"),
    )
    assert tree.is_same_structure(tree)
    assert not tree.is_same_structure(swapped)
    assert BinaryNode(id="A").is_same_structure(BinaryNode(id="A"))
    assert not BinaryNode(id="A").is_same_structure(BinaryNode(id="B"))
