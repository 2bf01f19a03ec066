"""Frame encoder/decoder

A frame is encoded to a bitarray in one of two ways:
- full frame: every cell, in positional order
- delta frame: only the cells which changed w.r.t the previous frame, in increasing index order,
  each one prefixed with its 32 bit linear index

Every cell is encoded as:
    | code_len (8 bits) | huffman code of the symbol (code_len bits) | R (8 bits) | G (8 bits) | B (8 bits) |
and a delta cell as:
    | index (32 bits) | cell |

The number of cells (pixel count for a full frame, change count for a delta frame) is returned
separately, it is written as a uint32 field before the packed bits of the frame.
"""

from typing import Sequence, Tuple

import pytest

from asciicodec.compressors.huffman_coder import HuffmanDecoder, HuffmanEncoder, HuffmanTree
from asciicodec.core.errors import IndexOutOfRangeError, MalformedTreeError, TruncatedStreamError
from asciicodec.core.frame import Cell, Color, Frame
from asciicodec.core.frequencies import Frequencies
from asciicodec.utils.bitarray_utils import BitArray, BitArrayReader, uint_to_bitarray
from asciicodec.utils.test_utils import get_random_video

CODE_LEN_BITS = 8
INDEX_BITS = 32
COLOR_CHANNEL_BITS = 8


class FrameEncoder:
    """encodes frames using the huffman code table of the video

    Args:
        huffman_encoder (HuffmanEncoder): encoder built from the tree of the whole video
    """

    def __init__(self, huffman_encoder: HuffmanEncoder):
        self.huffman_encoder = huffman_encoder

    def encode_cell(self, cell: Cell) -> BitArray:
        symbol, color = cell
        code = self.huffman_encoder.encode_symbol(symbol)

        encoded_bitarray = uint_to_bitarray(len(code), bit_width=CODE_LEN_BITS)
        encoded_bitarray += code
        for channel in color:
            encoded_bitarray += uint_to_bitarray(channel, bit_width=COLOR_CHANNEL_BITS)
        return encoded_bitarray

    def encode_full(self, frame: Sequence[Cell]) -> Tuple[int, BitArray]:
        """encodes every cell of the frame

        Returns:
            Tuple[int, BitArray]: (pixel_count, encoded_bitarray)
        """
        encoded_bitarray = BitArray("")
        for cell in frame:
            encoded_bitarray += self.encode_cell(cell)
        return len(frame), encoded_bitarray

    def encode_delta(self, frame: Sequence[Cell], prev_frame: Sequence[Cell]) -> Tuple[int, BitArray]:
        """encodes the cells of frame which differ from prev_frame (in symbol or color)

        Cells beyond the end of prev_frame are always considered changed.

        Returns:
            Tuple[int, BitArray]: (change_count, encoded_bitarray)
        """
        num_changes = 0
        encoded_bitarray = BitArray("")
        for i, cell in enumerate(frame):
            if i >= len(prev_frame) or cell != prev_frame[i]:
                encoded_bitarray += uint_to_bitarray(i, bit_width=INDEX_BITS)
                encoded_bitarray += self.encode_cell(cell)
                num_changes += 1
        return num_changes, encoded_bitarray


class FrameDecoder:
    """decodes frames encoded by the FrameEncoder

    Args:
        huffman_decoder (HuffmanDecoder): decoder for the tree read from the compressed file
    """

    def __init__(self, huffman_decoder: HuffmanDecoder):
        self.huffman_decoder = huffman_decoder

    def decode_cell(self, reader: BitArrayReader) -> Cell:
        code_len = reader.read_uint(CODE_LEN_BITS)
        symbol, num_bits_consumed = self.huffman_decoder.decode_symbol(reader)
        if num_bits_consumed != code_len:
            # the stream and the tree disagree on the code of this symbol
            raise MalformedTreeError(
                f"decoded {symbol!r} using {num_bits_consumed} bits, but the code length is {code_len}"
            )
        color = Color(*(reader.read_uint(COLOR_CHANNEL_BITS) for _ in range(3)))
        return Cell(symbol, color)

    def decode_full(self, pixel_count: int, encoded_bitarray: BitArray) -> Frame:
        reader = BitArrayReader(encoded_bitarray)
        return [self.decode_cell(reader) for _ in range(pixel_count)]

    def decode_delta(
        self, change_count: int, encoded_bitarray: BitArray, prev_frame: Sequence[Cell], frame_idx: int = None
    ) -> Frame:
        """applies change_count (index, cell) overwrites to a copy of prev_frame

        prev_frame itself is never modified.

        Raises:
            IndexOutOfRangeError: if an index is not a valid position of the frame
        """
        frame = list(prev_frame)
        reader = BitArrayReader(encoded_bitarray)
        for _ in range(change_count):
            index = reader.read_uint(INDEX_BITS)
            if index >= len(frame):
                raise IndexOutOfRangeError(index, len(frame), frame_idx=frame_idx)
            frame[index] = self.decode_cell(reader)
        return frame


def _get_frame_codec(frames) -> Tuple[FrameEncoder, FrameDecoder]:
    tree = HuffmanTree(Frequencies.from_video(frames))
    return FrameEncoder(HuffmanEncoder(tree)), FrameDecoder(HuffmanDecoder(tree))


def test_encode_cell_layout():
    frame = [Cell("A", Color(255, 0, 0)), Cell("B", Color(0, 255, 0))]
    encoder, _ = _get_frame_codec([frame])

    # A -> 0, B -> 1
    encoded = encoder.encode_cell(frame[1])
    expected = BitArray("00000001" + "1" + "00000000" + "11111111" + "00000000")
    assert encoded == expected


def test_full_frame_encode_decode():
    video = get_random_video(num_frames=1, frame_size=300, seed=0)
    encoder, decoder = _get_frame_codec(video)

    pixel_count, encoded = encoder.encode_full(video[0])
    assert pixel_count == 300
    assert decoder.decode_full(pixel_count, encoded) == video[0]


def test_delta_frame_encode_decode():
    video = get_random_video(num_frames=4, frame_size=300, change_prob=0.2, seed=1)
    encoder, decoder = _get_frame_codec(video)

    for prev_frame, frame in zip(video[:-1], video[1:]):
        expected_changes = sum(1 for c1, c2 in zip(prev_frame, frame) if c1 != c2)
        change_count, encoded = encoder.encode_delta(frame, prev_frame)
        assert change_count == expected_changes

        prev_copy = list(prev_frame)
        assert decoder.decode_delta(change_count, encoded, prev_frame) == frame
        # the previous frame is left untouched
        assert prev_frame == prev_copy


def test_delta_identical_frames():
    """identical frames have no changes, and an empty encoding"""
    frame = [Cell("A", Color(255, 0, 0))] * 3
    encoder, decoder = _get_frame_codec([frame])
    change_count, encoded = encoder.encode_delta(frame, list(frame))
    assert change_count == 0
    assert len(encoded) == 0
    assert decoder.decode_delta(0, encoded, frame) == frame


def test_delta_changed_indices():
    frame_0 = [Cell("A", Color(255, 0, 0))] * 3
    frame_1 = [frame_0[0], Cell("B", Color(0, 255, 0)), frame_0[2]]
    encoder, _ = _get_frame_codec([frame_0, frame_1])

    change_count, encoded = encoder.encode_delta(frame_1, frame_0)
    assert change_count == 1
    assert BitArrayReader(encoded).read_uint(INDEX_BITS) == 1

    # cells beyond the end of the previous frame count as changed
    change_count, encoded = encoder.encode_delta(frame_0 + [frame_0[0]], frame_0)
    assert change_count == 1
    assert BitArrayReader(encoded).read_uint(INDEX_BITS) == 3


def test_delta_index_out_of_range():
    frame = [Cell("A", Color(255, 0, 0))] * 3
    encoder, decoder = _get_frame_codec([frame])

    # crafted delta which writes cell index 3 of a 3 cell frame
    encoded = uint_to_bitarray(3, bit_width=INDEX_BITS) + encoder.encode_cell(frame[0])
    with pytest.raises(IndexOutOfRangeError) as excinfo:
        decoder.decode_delta(1, encoded, frame, frame_idx=1)
    assert excinfo.value.index == 3
    assert excinfo.value.frame_size == 3


def test_decode_truncated_and_mismatched():
    frame = [Cell("A", Color(1, 2, 3)), Cell("B", Color(4, 5, 6)), Cell("B", Color(4, 5, 6))]
    encoder, decoder = _get_frame_codec([frame])
    pixel_count, encoded = encoder.encode_full(frame)

    # missing bits at the end of the frame
    with pytest.raises(TruncatedStreamError):
        decoder.decode_full(pixel_count, encoded[:-4])

    # a code length which does not match the tree
    bad_cell = BitArray("00000010") + encoder.encode_cell(frame[0])[CODE_LEN_BITS:]
    with pytest.raises(MalformedTreeError):
        decoder.decode_full(1, bad_cell)
