"""Serialization of the prefix free (huffman) tree

The tree is written once at the start of the compressed file, and is independent of the frame data.
The nodes are written in preorder:
    - internal node -> (uint8 flag = 0), followed by the left subtree and then the right subtree
    - leaf node -> (uint8 flag = 1, uint8 symbol)
No frequencies are written, the decoder only needs the shape of the tree to decode the codes.

For eg: the tree
        |--A
      ·-|
        |    |--B
        |--·-|
             |--C
is serialized as [0, 1, 'A', 0, 1, 'B', 1, 'C']
"""

import pytest

from asciicodec.compressors.huffman_coder import HuffmanTree
from asciicodec.compressors.prefix_free_compressors import PrefixFreeTree
from asciicodec.core.encoded_stream import EncodedStreamReader, EncodedStreamWriter
from asciicodec.core.errors import MalformedTreeError, TruncatedStreamError
from asciicodec.core.frame import byte_to_symbol, symbol_to_byte
from asciicodec.core.frequencies import Frequencies
from asciicodec.utils.test_utils import get_random_video, write_and_read_back
from asciicodec.utils.tree_utils import BinaryNode

INTERNAL_NODE_FLAG = 0
LEAF_NODE_FLAG = 1

# a huffman tree over 256 symbols is at most 255 levels deep
MAX_TREE_DEPTH = 255


def serialize_tree(tree: PrefixFreeTree) -> bytes:
    """returns the preorder serialization of the tree"""
    if tree.root_node is None:
        raise MalformedTreeError("cannot serialize an empty tree")

    out = bytearray()

    def _write_node(node: BinaryNode):
        if node.is_leaf_node:
            out.append(LEAF_NODE_FLAG)
            out.append(symbol_to_byte(node.id))
            return

        # huffman trees have no node with exactly one child
        if node.left_child is None or node.right_child is None:
            raise MalformedTreeError("internal node with a single child cannot be serialized")
        out.append(INTERNAL_NODE_FLAG)
        _write_node(node.left_child)
        _write_node(node.right_child)

    _write_node(tree.root_node)
    return bytes(out)


def write_tree(writer: EncodedStreamWriter, tree: PrefixFreeTree):
    writer.write_bytes(serialize_tree(tree))


def read_tree(reader: EncodedStreamReader) -> PrefixFreeTree:
    """reads back a tree written by write_tree

    Raises:
        TruncatedStreamError: if the stream ends before the tree is complete
        MalformedTreeError: on an unknown node flag, or a tree deeper than MAX_TREE_DEPTH
    """

    def _read_node(depth: int) -> BinaryNode:
        if depth > MAX_TREE_DEPTH:
            raise MalformedTreeError(f"huffman tree deeper than {MAX_TREE_DEPTH} levels")

        flag = reader.read_uint8("huffman tree node flag")
        if flag == LEAF_NODE_FLAG:
            symbol = byte_to_symbol(reader.read_uint8("huffman tree leaf symbol"))
            return BinaryNode(id=symbol)
        elif flag == INTERNAL_NODE_FLAG:
            left_child = _read_node(depth + 1)
            right_child = _read_node(depth + 1)
            return BinaryNode(left_child=left_child, right_child=right_child)
        else:
            raise MalformedTreeError(f"invalid huffman tree node flag {flag}")

    return PrefixFreeTree(_read_node(depth=0))


def test_serialize_tree_layout():
    # tree from the module docstring
    root = BinaryNode(
        left_child=BinaryNode(id="A"),
        right_child=BinaryNode(left_child=BinaryNode(id="B"), right_child=BinaryNode(id="C")),
    )
    assert serialize_tree(PrefixFreeTree(root)) == bytes([0, 1, ord("A"), 0, 1, ord("B"), 1, ord("C")])

    # single leaf
    assert serialize_tree(PrefixFreeTree(BinaryNode(id="@"))) == bytes([1, ord("@")])


def test_tree_serialization_round_trip():
    """read(write(tree)) is structurally the same tree, for trees built from random videos"""
    alphabets = ["@", " .", "@%#*+=-:. \n", [chr(i) for i in range(256)]]
    for seed, alphabet in enumerate(alphabets):
        video = get_random_video(num_frames=2, frame_size=500, alphabet=alphabet, seed=seed)
        tree = HuffmanTree(Frequencies.from_video(video))

        decoded_tree = write_and_read_back(
            lambda writer: write_tree(writer, tree), lambda reader: read_tree(reader)
        )
        assert decoded_tree.root_node.is_same_structure(tree.root_node)
        assert decoded_tree.get_encoding_table() == tree.get_encoding_table()


def test_read_tree_truncated():
    data = serialize_tree(HuffmanTree(Frequencies({"A": 3, "B": 2, "C": 1})))
    for num_bytes in range(len(data)):
        with pytest.raises(TruncatedStreamError):
            read_tree(EncodedStreamReader.from_bytes(data[:num_bytes]))


def test_read_tree_invalid_flag():
    with pytest.raises(MalformedTreeError):
        read_tree(EncodedStreamReader.from_bytes(bytes([0, 7, 1, 65])))

    # a chain of internal nodes which never ends in leaves
    with pytest.raises(MalformedTreeError):
        read_tree(EncodedStreamReader.from_bytes(bytes([INTERNAL_NODE_FLAG] * 300)))
