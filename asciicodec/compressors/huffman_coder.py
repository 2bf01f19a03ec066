from dataclasses import dataclass
from typing import Any, Tuple
import heapq
from functools import total_ordering

import numpy as np
import pytest

from asciicodec.compressors.prefix_free_compressors import PrefixFreeTree
from asciicodec.core.errors import EmptyInputError
from asciicodec.core.frame import symbol_to_byte
from asciicodec.core.frequencies import Frequencies
from asciicodec.utils.bitarray_utils import BitArray, BitArrayReader
from asciicodec.utils.tree_utils import BinaryNode
from asciicodec.utils.test_utils import get_random_video


@dataclass
@total_ordering  # decorator which adds other compare ops give one
class HuffmanHeapItem:
    """entry of the min-heap used while building the huffman tree

    NOTE: the weight is only needed while building the tree. The tree itself is made of plain
    BinaryNodes, which is also what we get back when reading the tree from a compressed file
    (frequencies are never stored).
    seq is unique per item, and breaks ties between items of equal weight so that the tree
    (and hence the compressed file) is deterministic.
    """

    weight: int
    seq: int
    node: BinaryNode = None

    def __le__(self, other):
        """
        Define a comparison operator, so that we can use this while comparing nodes
        # NOTE: we only need to define one compare op, as others can be implemented using the
        decorator @total_ordering
        """
        return (self.weight, self.seq) <= (other.weight, other.seq)


class HuffmanTree(PrefixFreeTree):
    def __init__(self, frequencies: Frequencies):
        self.frequencies = frequencies

        # construct the tree and set the root_node of PrefixFreeTree base class
        super().__init__(root_node=self.build_huffman_tree())

    def build_huffman_tree(self) -> BinaryNode:
        """Build the huffman coding tree

        1. create a leaf node per symbol, weighted by its count
        2. combine the two lowest weight nodes under a new internal node (the first one popped is
           the left child), whose weight is the sum of the two
        3. Continue until a single node is left, the root

        Ties: leaves get seq numbers in increasing order of the symbol byte value, every
        combined node gets the next seq number, and equal weights are ordered by seq.
        """
        # there is no tree for an empty alphabet
        self.frequencies.check_non_empty()

        # For the special case that there is a single symbol, the tree is just that leaf
        # (the PrefixFreeTree assigns it the code "0")
        if self.frequencies.size == 1:
            return BinaryNode(id=self.frequencies.alphabet[0])

        symbols = sorted(self.frequencies.alphabet, key=symbol_to_byte)
        node_heap = [
            HuffmanHeapItem(weight=self.frequencies.frequency(s), seq=seq, node=BinaryNode(id=s))
            for seq, s in enumerate(symbols)
        ]

        # NOTE: We create a min-heap data structure to represent the list, as
        # We are concerned about finding the top two smallest elements from the list
        # Heaps are efficient at such operations O(log(n)) -> push/pop, O(1) -> min val
        heapq.heapify(node_heap)
        next_seq = len(node_heap)

        while len(node_heap) > 1:
            # get the two smallest nodes
            last1 = heapq.heappop(node_heap)
            last2 = heapq.heappop(node_heap)

            # insert a node with the sum of the two weights
            combined_node = BinaryNode(left_child=last1.node, right_child=last2.node)
            combined_item = HuffmanHeapItem(
                weight=last1.weight + last2.weight, seq=next_seq, node=combined_node
            )
            heapq.heappush(node_heap, combined_item)
            next_seq += 1

        # finally the node_heap should contain a single element, the root
        assert len(node_heap) == 1
        return node_heap[0].node


class HuffmanEncoder:
    """
    Maps glyph symbols to their huffman codes.
    The encoding table is derived once from the tree, and then shared (by reference) with
    the frame encoder for all the frames of the video.
    """

    # the code length is written in an 8 bit field before every code
    MAX_CODE_LEN = 255

    def __init__(self, tree: PrefixFreeTree):
        self.encoding_table = tree.get_encoding_table()
        # the longest code is as long as the tree is high
        height = tree.root_node.get_height()
        if height > self.MAX_CODE_LEN:
            raise ValueError(f"huffman tree of height {height} has codes longer than {self.MAX_CODE_LEN} bits")

    def encode_symbol(self, s) -> BitArray:
        try:
            return self.encoding_table[s]
        except KeyError:
            raise ValueError(f"symbol {s!r} is not part of the huffman code table")


class HuffmanDecoder:
    """
    Decodes one glyph symbol at a time, by walking the (possibly deserialized) huffman tree.
    """

    def __init__(self, tree: PrefixFreeTree):
        self.tree = tree

    def decode_symbol(self, reader: BitArrayReader) -> Tuple[Any, int]:
        decoded_symbol, num_bits_consumed = self.tree.decode_symbol(reader)
        return decoded_symbol, num_bits_consumed


def get_avg_codelen(frequencies: Frequencies, encoding_table) -> float:
    """average code length (in bits/symbol) of the encoding table for the given counts"""
    total_bits = 0
    for s in frequencies.alphabet:
        total_bits += frequencies.frequency(s) * len(encoding_table[s])
    return total_bits / frequencies.total_freq


def get_entropy(frequencies: Frequencies) -> float:
    probs = np.array(frequencies.freq_list) / frequencies.total_freq
    return float(-np.sum(probs * np.log2(probs)))


def test_huffman_coding_dyadic():
    """test huffman coding on dyadic distributions

    On dyadic distributions Huffman coding should be perfectly equal to entropy
    """
    distributions = [
        Frequencies({"A": 4, "B": 4}),
        Frequencies({"A": 8, "B": 4, "C": 4}),
        Frequencies({"A": 16, "B": 8, "C": 4, "D": 4}),
    ]
    print()
    for freqs in distributions:
        tree = HuffmanTree(freqs)
        encoding_table = tree.get_encoding_table()

        avg_codelen = get_avg_codelen(freqs, encoding_table)
        entropy = get_entropy(freqs)
        np.testing.assert_almost_equal(
            avg_codelen, entropy, err_msg="Huffman coding is not equal to optimal codelens"
        )
        print(f"Avg Bits: {avg_codelen}, Entropy: {entropy}")


def test_huffman_codes_are_prefix_free():
    """no code is a prefix of another, for the symbols of a random video"""
    video = get_random_video(num_frames=3, frame_size=200, alphabet=" .:-=+*#%@\n", seed=0)
    tree = HuffmanTree(Frequencies.from_video(video))
    encoding_table = tree.get_encoding_table()

    codes = list(encoding_table.values())
    for i, code_1 in enumerate(codes):
        for j, code_2 in enumerate(codes):
            if i != j:
                assert code_2[: len(code_1)] != code_1

    # every code decodes back to its symbol, consuming exactly the code
    decoder = HuffmanDecoder(tree)
    for s, code in encoding_table.items():
        assert decoder.decode_symbol(BitArrayReader(code)) == (s, len(code))


def test_huffman_single_symbol():
    """single symbol alphabet: the tree is a single leaf, and the code is the single bit 0"""
    tree = HuffmanTree(Frequencies({"@": 1000}))
    assert tree.root_node.is_leaf_node
    assert HuffmanEncoder(tree).encode_symbol("@") == BitArray("0")

    reader = BitArrayReader(BitArray("0000"))
    assert HuffmanDecoder(tree).decode_symbol(reader) == ("@", 1)


def test_huffman_empty_input():
    with pytest.raises(EmptyInputError):
        HuffmanTree(Frequencies({}))


def test_huffman_deterministic_ties():
    """equal weights are combined in symbol byte order, independent of the dict order"""
    tree_1 = HuffmanTree(Frequencies({"A": 1, "B": 1, "C": 1, "D": 1}))
    tree_2 = HuffmanTree(Frequencies({"D": 1, "C": 1, "B": 1, "A": 1}))
    assert tree_1.root_node.is_same_structure(tree_2.root_node)
    assert tree_1.get_encoding_table() == {
        "A": BitArray("00"),
        "B": BitArray("01"),
        "C": BitArray("10"),
        "D": BitArray("11"),
    }


def test_huffman_encoder_unknown_symbol():
    encoder = HuffmanEncoder(HuffmanTree(Frequencies({"A": 2, "B": 1})))
    with pytest.raises(ValueError):
        encoder.encode_symbol("Z")


def test_huffman_encoder_code_length_limit():
    def _get_comb_tree(height):
        # every internal node has a leaf as its left child
        node = BinaryNode(id=height)
        for i in reversed(range(height)):
            node = BinaryNode(left_child=BinaryNode(id=i), right_child=node)
        return PrefixFreeTree(node)

    tree = _get_comb_tree(HuffmanEncoder.MAX_CODE_LEN)
    assert tree.root_node.get_height() == 255
    encoder = HuffmanEncoder(tree)
    assert len(encoder.encode_symbol(255)) == 255

    with pytest.raises(ValueError):
        HuffmanEncoder(_get_comb_tree(HuffmanEncoder.MAX_CODE_LEN + 1))
