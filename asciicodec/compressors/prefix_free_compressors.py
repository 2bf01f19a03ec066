"""File implementing the prefix free tree used by the glyph entropy coder

NOTE: prefix free codes are codes which allow convenient per-symbol encoding/decoding.
The codes are never validated for the prefix-free property, it holds by construction as
every symbol sits on a leaf of the tree.
"""

from typing import Any, Mapping, Tuple

import pytest

from asciicodec.core.errors import MalformedTreeError, TruncatedStreamError
from asciicodec.utils.bitarray_utils import BitArray, BitArrayReader
from asciicodec.utils.tree_utils import BinaryNode


class PrefixFreeTree:
    """
    Class representing a Prefix Free Tree

    Root node is the pointer to root of the tree with appropriate pointers to the children.
    Every internal node has exactly two children, every leaf node carries one symbol in its id.
    Subclasses (for eg. the HuffmanTree) only need to build the tree and set the root_node,
    a tree read back from a compressed file is a plain PrefixFreeTree.

    In particular,

            get_encoding_table: returns the mapping symbol -> code for the whole tree, used by the encoder
            decode_symbol: symbol-by-symbol decoding by walking the tree, used by the decoder
    """

    def __init__(self, root_node: BinaryNode):
        self.root_node = root_node

    @property
    def alphabet(self):
        """symbols of the leaves, left to right"""
        return [node.id for node in self.root_node.iter_leaves()]

    def get_encoding_table(self) -> Mapping[Any, BitArray]:
        """
        Utility func to get the encoding table based on the prefix-free tree.
        Does a DFS over the tree to return the encoding table over the whole symbol dictionary starting from root_node
        (left child -> 0, right child -> 1)

        NOTE: if the tree is a single leaf, the path to the symbol is empty. An empty code cannot be
        counted in the stream, so the symbol gets the code "0" instead.

        Returns:
            Mapping[Any,BitArray]: the encoding_array dict
        """
        if self.root_node is None:
            raise MalformedTreeError("the prefix free tree is empty")

        encoding_table = {}

        # define the DFS function
        def _parse_node(node: BinaryNode, code: BitArray):
            """parse the node in DFS fashion, and get the code corresponding to
            all the leaf nodes

            Args:
                node (BinaryNode): the current node being parsed
                code (BitArray): the code corresponding to the current node
            """
            # if node is leaf add it to the table
            if node.is_leaf_node:
                encoding_table[node.id] = code if len(code) > 0 else BitArray("0")

            if node.left_child is not None:
                _parse_node(node.left_child, code + BitArray("0"))

            if node.right_child is not None:
                _parse_node(node.right_child, code + BitArray("1"))

        # call the parsing function on the root node
        _parse_node(self.root_node, BitArray(""))

        return encoding_table

    def decode_symbol(self, reader: BitArrayReader) -> Tuple[Any, int]:
        """
        Decodes the next symbol from the reader. We parse through the prefix free tree, till
        we reach a leaf node which gives us the decoded symbol ID using prefix-free property of the tree.

        - start from the root node
        - if the next bit is 0, go left, else right
        - once you reach a leaf node, output the symbol corresponding the node

        The reader is advanced by the number of bits consumed (the code length of the symbol).
        For a single leaf tree, the code is "0", so one bit is consumed.
        """
        if self.root_node is None:
            raise MalformedTreeError("cannot decode with an empty prefix free tree")

        try:
            if self.root_node.is_leaf_node:
                reader.read_bit()
                return self.root_node.id, 1

            # initialize num_bits_consumed
            num_bits_consumed = 0

            # continue decoding until we reach leaf node
            curr_node = self.root_node
            while not curr_node.is_leaf_node:
                bit = reader.read_bit()
                if bit == 0:
                    curr_node = curr_node.left_child
                else:
                    curr_node = curr_node.right_child
                num_bits_consumed += 1

                if curr_node is None:
                    raise MalformedTreeError(
                        f"decode walk reached a missing child after {num_bits_consumed} bits"
                    )
        except TruncatedStreamError as e:
            raise MalformedTreeError(f"bits ran out before reaching a leaf of the tree: {e}") from e

        # as we reach the leaf node, the decoded symbol is the id of the node
        decoded_symbol = curr_node.id
        return decoded_symbol, num_bits_consumed


def _get_sample_tree() -> PrefixFreeTree:
    # A -> 0, B -> 10, C -> 11
    root = BinaryNode(
        left_child=BinaryNode(id="A"),
        right_child=BinaryNode(left_child=BinaryNode(id="B"), right_child=BinaryNode(id="C")),
    )
    return PrefixFreeTree(root)


def test_get_encoding_table():
    tree = _get_sample_tree()
    encoding_table = tree.get_encoding_table()
    assert encoding_table == {"A": BitArray("0"), "B": BitArray("10"), "C": BitArray("11")}
    assert tree.alphabet == ["A", "B", "C"]

    # single leaf tree gets the 1-bit code "0"
    single_leaf_tree = PrefixFreeTree(BinaryNode(id="A"))
    assert single_leaf_tree.get_encoding_table() == {"A": BitArray("0")}


def test_decode_symbol():
    tree = _get_sample_tree()
    reader = BitArrayReader(BitArray("11" + "0" + "10"))
    decoded = []
    while reader.num_bits_remaining > 0:
        symbol, num_bits = tree.decode_symbol(reader)
        decoded.append((symbol, num_bits))
    assert decoded == [("C", 2), ("A", 1), ("B", 2)]
    assert reader.pos == 5

    # single leaf tree consumes one bit per symbol
    single_leaf_tree = PrefixFreeTree(BinaryNode(id="A"))
    reader = BitArrayReader(BitArray("00"))
    assert single_leaf_tree.decode_symbol(reader) == ("A", 1)
    assert reader.pos == 1


def test_decode_symbol_malformed():
    tree = _get_sample_tree()

    # walk runs out of bits in the middle of the tree
    with pytest.raises(MalformedTreeError):
        tree.decode_symbol(BitArrayReader(BitArray("1")))

    # absent tree
    with pytest.raises(MalformedTreeError):
        PrefixFreeTree(None).decode_symbol(BitArrayReader(BitArray("0")))

    # internal node with a missing child
    broken_tree = PrefixFreeTree(BinaryNode(left_child=BinaryNode(id="A")))
    with pytest.raises(MalformedTreeError):
        broken_tree.decode_symbol(BitArrayReader(BitArray("1")))
