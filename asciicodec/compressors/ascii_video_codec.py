"""Ascii video codec

Compresses a whole ascii video (list of frames of (symbol, color) cells) to a binary file, and
decompresses it back exactly.

- the glyph symbols are entropy coded with a single huffman code, built from the symbol counts over
  all the cells of all the frames. The tree is written once, at the start of the file.
- colors are stored raw (8 bits per channel)
- frame 0 is stored in full, every next frame as a delta w.r.t the frame before it: only the cells
  which changed are stored, together with their index

Compressed file layout (all integers are unsigned little-endian; uint32 unless noted):

    frame_count
    huffman tree (preorder, see tree_serializer.py)
    frame 0:        pixel_count,  bit_count, ceil(bit_count/8) bytes, remainder (uint8)
    frame 1..N-1:   change_count, bit_count, ceil(bit_count/8) bytes, remainder (uint8)

See frame_codec.py for the layout of the bits of a frame.

NOTE: the whole video is held in memory, there is no streaming/incremental mode.
The decoder needs the frames in order, as every delta frame is applied on top of the previous
decoded frame.
"""

import argparse
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import pytest

from asciicodec.compressors.frame_codec import FrameDecoder, FrameEncoder
from asciicodec.compressors.huffman_coder import HuffmanDecoder, HuffmanEncoder, HuffmanTree
from asciicodec.compressors.tree_serializer import read_tree, write_tree
from asciicodec.core.encoded_stream import BitPacker, EncodedStreamReader, EncodedStreamWriter
from asciicodec.core.errors import (
    CodecError,
    EmptyInputError,
    IndexOutOfRangeError,
    InvalidSourceError,
    TruncatedStreamError,
)
from asciicodec.core.frame import Cell, Color, Video, are_videos_equal, normalize_video
from asciicodec.core.frequencies import Frequencies
from asciicodec.utils.bitarray_utils import BitArray, uint_to_bitarray
from asciicodec.utils.test_utils import get_random_video

logger = logging.getLogger(__name__)

FILE_EXTENSION = ".bin"


class AsciiVideoEncoder:
    """encodes a whole video to an EncodedStreamWriter"""

    def encode(self, video, writer: EncodedStreamWriter):
        """
        - validate the video, and count the symbols over all the frames
        - build the huffman tree and the code table, write frame_count + tree
        - write frame 0 in full, and every next frame as a delta w.r.t the original previous frame

        Raises:
            EmptyInputError: if the video has no cells at all
            ValueError: for invalid cells, or frames whose size changes within the video
        """
        video = normalize_video(video)
        self._check_frame_sizes(video)

        tree = HuffmanTree(Frequencies.from_video(video))
        frame_encoder = FrameEncoder(HuffmanEncoder(tree))

        writer.write_uint32(len(video))
        write_tree(writer, tree)
        logger.debug(f"huffman tree written, alphabet size: {len(tree.alphabet)}")

        prev_frame = None
        for frame_idx, frame in enumerate(video):
            if prev_frame is None:
                count, encoded_bitarray = frame_encoder.encode_full(frame)
            else:
                count, encoded_bitarray = frame_encoder.encode_delta(frame, prev_frame)
            writer.write_uint32(count)
            writer.write_packed_bits(encoded_bitarray)
            logger.debug(f"frame {frame_idx}: count={count}, bit_count={len(encoded_bitarray)}")

            # NOTE: the delta is w.r.t the original previous frame, which the decoder reconstructs
            # exactly, as delta frames are plain overwrites
            prev_frame = frame

    @staticmethod
    def _check_frame_sizes(video: Video):
        """a delta frame can neither remove cells, nor add cells the decoder can index"""
        for frame_idx in range(1, len(video)):
            if len(video[frame_idx]) != len(video[frame_idx - 1]):
                raise ValueError(
                    f"frame {frame_idx} has {len(video[frame_idx])} cells, but frame {frame_idx - 1} "
                    f"has {len(video[frame_idx - 1])}: the frame size cannot change within a video"
                )


class AsciiVideoDecoder:
    """decodes a whole video from an EncodedStreamReader"""

    def decode(self, reader: EncodedStreamReader) -> Video:
        """
        Raises:
            TruncatedStreamError, MalformedTreeError, IndexOutOfRangeError: on a corrupted stream.
            Decoding stops at the first error, the frames decoded so far are left untouched.
        """
        num_frames = reader.read_uint32("frame count")
        logger.debug(f"number of frames: {num_frames}")

        tree = read_tree(reader)
        frame_decoder = FrameDecoder(HuffmanDecoder(tree))
        logger.debug("huffman tree loaded")

        video = []
        for frame_idx in range(num_frames):
            count = reader.read_uint32(f"cell count of frame {frame_idx}")
            encoded_bitarray = reader.read_packed_bits()
            if frame_idx == 0:
                frame = frame_decoder.decode_full(count, encoded_bitarray)
            else:
                frame = frame_decoder.decode_delta(
                    count, encoded_bitarray, prev_frame=video[-1], frame_idx=frame_idx
                )
            logger.debug(f"frame {frame_idx}/{num_frames - 1}: count={count}, cells={len(frame)}")
            video.append(frame)
        return video


def compress_ascii_video(video, output_path: str) -> str:
    """compresses the video to output_path

    The FILE_EXTENSION is added if output_path has no extension, and missing parent directories
    are created.

    Returns:
        str: the path of the compressed file
    """
    root, ext = os.path.splitext(output_path)
    if not ext:
        output_path = root + FILE_EXTENSION

    parent_dir = os.path.dirname(output_path)
    if parent_dir and not os.path.exists(parent_dir):
        os.makedirs(parent_dir)
        logger.info(f"directories created: {parent_dir}")

    # encode next to output_path, and only replace it once the whole video is written
    fd, tmp_path = tempfile.mkstemp(suffix=FILE_EXTENSION, dir=parent_dir or None)
    os.close(fd)
    try:
        with EncodedStreamWriter(tmp_path) as writer:
            AsciiVideoEncoder().encode(video, writer)
        os.replace(tmp_path, output_path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)

    logger.info(f"video compressed to: {output_path} ({writer.num_bytes_written} bytes)")
    return output_path


def check_source(input_path: str):
    """raises InvalidSourceError if input_path is not an existing FILE_EXTENSION file"""
    if os.path.splitext(input_path)[1] != FILE_EXTENSION or not os.path.isfile(input_path):
        raise InvalidSourceError(f"this file does not exist or is not a {FILE_EXTENSION} file: {input_path}")


def decompress_ascii_video(input_path: str) -> Video:
    """decompresses the video stored at input_path

    Failures (invalid source, corrupted or truncated file) are logged, and an empty video is returned.
    """
    try:
        check_source(input_path)
        logger.info(f"start decompressing from: {input_path}")
        with EncodedStreamReader(input_path) as reader:
            video = AsciiVideoDecoder().decode(reader)
    except InvalidSourceError as e:
        logger.error(str(e))
        return []
    except (CodecError, OSError) as e:
        logger.error(f"exception during decompression of {input_path}: {e}")
        return []

    logger.info(f"video decompressed successfully: {len(video)} frames")
    return video


@dataclass
class ContainerSummary:
    """what is stored in a compressed file, without reconstructing the frames"""

    num_frames: int
    alphabet: List[str]
    encoding_table: Dict[str, BitArray]
    frame_headers: List[Tuple[int, int]] = field(default_factory=list)  # (count, bit_count) per frame
    num_bytes: int = 0


def read_container_summary(input_path: str) -> ContainerSummary:
    """reads the frame count, the tree and the frame headers of a compressed file

    Unlike decompress_ascii_video, errors are raised.
    """
    check_source(input_path)
    with EncodedStreamReader(input_path) as reader:
        num_frames = reader.read_uint32("frame count")
        tree = read_tree(reader)
        summary = ContainerSummary(
            num_frames=num_frames, alphabet=tree.alphabet, encoding_table=tree.get_encoding_table()
        )
        for frame_idx in range(num_frames):
            count = reader.read_uint32(f"cell count of frame {frame_idx}")
            bits = reader.read_packed_bits()
            summary.frame_headers.append((count, len(bits)))
        summary.num_bytes = reader.num_bytes_read
    return summary


def _print_summary(summary: ContainerSummary):
    print(f"frames: {summary.num_frames}, size: {summary.num_bytes} bytes")
    print(f"alphabet ({len(summary.alphabet)} symbols):")
    for symbol in summary.alphabet:
        print(f"  {symbol!r:>8} -> {summary.encoding_table[symbol].to01()}")
    for frame_idx, (count, bit_count) in enumerate(summary.frame_headers):
        kind = "pixels" if frame_idx == 0 else "changes"
        print(f"  frame {frame_idx}: {count} {kind}, {bit_count} bits")


############################## TESTS ####################################


def _roundtrip(video, file_name="video.bin"):
    with tempfile.TemporaryDirectory() as tmpdirname:
        output_path = compress_ascii_video(video, os.path.join(tmpdirname, file_name))
        summary = read_container_summary(output_path)
        decoded = decompress_ascii_video(output_path)
    return decoded, summary


def test_ascii_video_simple():
    """3 frames of 3 cells, one cell changes per frame"""
    red, green, blue = (255, 0, 0), (0, 255, 0), (0, 0, 255)
    video = [
        [("A", red), ("A", red), ("A", red)],
        [("A", red), ("B", green), ("A", red)],
        [("A", red), ("B", green), ("C", blue)],
    ]
    decoded, summary = _roundtrip(video)
    assert decoded == video

    assert summary.num_frames == 3
    assert summary.frame_headers[0][0] == 3
    assert [count for count, _ in summary.frame_headers[1:]] == [1, 1]

    # each delta frame holds one 32 bit index + one cell
    for frame_idx in (1, 2):
        code_len = len(summary.encoding_table[video[frame_idx][frame_idx][0]])
        assert summary.frame_headers[frame_idx][1] == 32 + 8 + code_len + 24


def test_ascii_video_changed_index():
    """the index stored in the delta frames points to the changed cell"""
    video = [
        [Cell("A", Color(255, 0, 0))] * 3,
        [Cell("A", Color(255, 0, 0)), Cell("B", Color(0, 255, 0)), Cell("A", Color(255, 0, 0))],
    ]
    with tempfile.TemporaryDirectory() as tmpdirname:
        output_path = compress_ascii_video(video, os.path.join(tmpdirname, "video.bin"))
        with EncodedStreamReader(output_path) as reader:
            reader.read_uint32()
            read_tree(reader)
            reader.read_uint32()
            reader.read_packed_bits()
            assert reader.read_uint32() == 1
            delta_bits = reader.read_packed_bits()
    assert delta_bits[:32] == uint_to_bitarray(1, bit_width=32)


def test_ascii_video_no_changes():
    """identical frames: zero changes and zero bits per delta frame, constant overhead per frame"""
    frame = [("@", (10, 20, 30)), (".", (0, 0, 0)), ("@", (10, 20, 30))]
    decoded_1, summary_1 = _roundtrip([frame])
    decoded_5, summary_5 = _roundtrip([frame] * 5)

    assert decoded_5 == [frame] * 5
    assert summary_5.frame_headers[1:] == [(0, 0)] * 4

    # change_count (4) + bit_count (4) + remainder (1)
    assert summary_5.num_bytes - summary_1.num_bytes == 4 * 9


def test_ascii_video_single_symbol():
    """single symbol alphabet round trips, with a 1 bit code"""
    video = get_random_video(num_frames=4, frame_size=50, alphabet="#", seed=3)
    decoded, summary = _roundtrip(video)
    assert decoded == video
    assert summary.encoding_table == {"#": BitArray("0")}


def test_ascii_video_random_round_trip():
    """round trip random videos with different alphabets, change rates and palettes"""
    params = [
        dict(num_frames=1, frame_size=1, alphabet="A"),
        dict(num_frames=10, frame_size=200, change_prob=0.05),
        dict(num_frames=5, frame_size=100, change_prob=1.0, num_colors=4),
        dict(num_frames=3, frame_size=500, alphabet=[chr(i) for i in range(256)]),
        dict(num_frames=8, frame_size=80, alphabet="@%#*+=-:. \n", change_prob=0.3),
    ]
    for seed, kwargs in enumerate(params):
        video = get_random_video(seed=seed, **kwargs)
        decoded, _ = _roundtrip(video)
        assert are_videos_equal(decoded, video)


def test_ascii_video_accepts_frame_dict():
    frame = [("x", (1, 1, 1)), ("y", (2, 2, 2))]
    decoded, _ = _roundtrip({0: frame, 1: frame[::-1]})
    assert decoded == [frame, frame[::-1]]


def test_compress_is_deterministic():
    video = get_random_video(num_frames=3, frame_size=100, seed=7)
    with tempfile.TemporaryDirectory() as tmpdirname:
        path_1 = compress_ascii_video(video, os.path.join(tmpdirname, "a.bin"))
        path_2 = compress_ascii_video(video, os.path.join(tmpdirname, "b.bin"))
        with open(path_1, "rb") as f1, open(path_2, "rb") as f2:
            assert f1.read() == f2.read()


def test_compress_output_path():
    """the extension is added when missing, and parent directories are created"""
    video = [[("A", (0, 0, 0))]]
    with tempfile.TemporaryDirectory() as tmpdirname:
        output_path = compress_ascii_video(video, os.path.join(tmpdirname, "out", "nested", "video"))
        assert output_path.endswith(os.path.join("nested", "video.bin"))
        assert os.path.isfile(output_path)
        assert decompress_ascii_video(output_path) == video


def test_compress_invalid_video():
    with tempfile.TemporaryDirectory() as tmpdirname:
        output_path = os.path.join(tmpdirname, "video.bin")

        # nothing to build a tree from
        with pytest.raises(EmptyInputError):
            compress_ascii_video([], output_path)
        with pytest.raises(EmptyInputError):
            compress_ascii_video([[], []], output_path)

        # frame size changes
        frame = [("A", (0, 0, 0))] * 3
        with pytest.raises(ValueError):
            compress_ascii_video([frame, frame[:2]], output_path)
        with pytest.raises(ValueError):
            compress_ascii_video([frame, frame + frame[:1]], output_path)

        # invalid colors
        with pytest.raises(ValueError):
            compress_ascii_video([[("A", (0, 0, 300))]], output_path)

        # no partial output is left behind
        assert os.listdir(tmpdirname) == []


def test_failed_compress_keeps_existing_file():
    with tempfile.TemporaryDirectory() as tmpdirname:
        output_path = os.path.join(tmpdirname, "video.bin")
        video = [[("A", (1, 2, 3)), ("B", (4, 5, 6))]]
        compress_ascii_video(video, output_path)
        with open(output_path, "rb") as f:
            compressed_bytes = f.read()

        for bad_video in [[[("A", (0, 0, 300))]], [], [video[0], video[0][:1]]]:
            with pytest.raises(ValueError):
                compress_ascii_video(bad_video, output_path)

            with open(output_path, "rb") as f:
                assert f.read() == compressed_bytes
            assert are_videos_equal(decompress_ascii_video(output_path), video)
        assert os.listdir(tmpdirname) == ["video.bin"]


def test_decompress_invalid_source():
    """missing file or wrong extension: reported, and an empty video is returned"""
    with tempfile.TemporaryDirectory() as tmpdirname:
        assert decompress_ascii_video(os.path.join(tmpdirname, "missing.bin")) == []

        txt_path = os.path.join(tmpdirname, "video.txt")
        compress_ascii_video([[("A", (0, 0, 0))]], txt_path)
        assert decompress_ascii_video(txt_path) == []

        with pytest.raises(InvalidSourceError):
            read_container_summary(txt_path)


def test_decompress_truncated_file():
    video = get_random_video(num_frames=3, frame_size=40, seed=11)
    with tempfile.TemporaryDirectory() as tmpdirname:
        output_path = compress_ascii_video(video, os.path.join(tmpdirname, "video.bin"))
        with open(output_path, "rb") as f:
            data = f.read()

        truncated_path = os.path.join(tmpdirname, "truncated.bin")
        for num_bytes in [0, 3, len(data) // 2, len(data) - 1]:
            with open(truncated_path, "wb") as f:
                f.write(data[:num_bytes])
            assert decompress_ascii_video(truncated_path) == []

            with EncodedStreamReader(truncated_path) as reader:
                with pytest.raises(TruncatedStreamError):
                    AsciiVideoDecoder().decode(reader)


def test_decompress_index_out_of_range():
    """a crafted delta index beyond the frame size aborts decoding, earlier frames are intact"""
    frame = [Cell("A", Color(255, 0, 0))] * 3
    with tempfile.TemporaryDirectory() as tmpdirname:
        output_path = os.path.join(tmpdirname, "crafted.bin")

        tree = HuffmanTree(Frequencies.from_video([frame]))
        frame_encoder = FrameEncoder(HuffmanEncoder(tree))
        with EncodedStreamWriter(output_path) as writer:
            writer.write_uint32(3)
            write_tree(writer, tree)
            count, bits = frame_encoder.encode_full(frame)
            writer.write_uint32(count)
            writer.write_packed_bits(bits)
            # valid delta frame: no change
            writer.write_uint32(0)
            writer.write_packed_bits(BitArray(""))
            # invalid delta frame: index 5 of a 3 cell frame
            writer.write_uint32(1)
            writer.write_packed_bits(uint_to_bitarray(5, bit_width=32) + frame_encoder.encode_cell(frame[0]))

        decoder = AsciiVideoDecoder()
        with EncodedStreamReader(output_path) as reader:
            with pytest.raises(IndexOutOfRangeError) as excinfo:
                decoder.decode(reader)
        assert excinfo.value.index == 5
        assert excinfo.value.frame_size == 3
        assert excinfo.value.frame_idx == 2

        assert decompress_ascii_video(output_path) == []


def test_bit_packer_sizes_in_container():
    """every frame takes 4 (count) + 4 (bit_count) + ceil(bits/8) + 1 (remainder) bytes"""
    video = get_random_video(num_frames=4, frame_size=30, seed=5)
    _, summary = _roundtrip(video)
    tree_bytes = 2 * len(summary.alphabet) + (len(summary.alphabet) - 1)
    frame_bytes = sum(4 + len(BitPacker.pack(BitArray(bit_count))) for _, bit_count in summary.frame_headers)
    assert summary.num_bytes == 4 + tree_bytes + frame_bytes


if __name__ == "__main__":
    # Provide a simple CLI interface below for convenient experimentation
    parser = argparse.ArgumentParser(description="inspect/verify compressed ascii video files")
    parser.add_argument("-i", "--input", help="compressed file (.bin)", required=True, type=str)
    parser.add_argument("--info", help="print the frame count, code table and frame headers", action="store_true")
    parser.add_argument("--verify", help="decompress all the frames", action="store_true")
    parser.add_argument("-v", "--verbose", help="debug logging", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s"
    )

    if args.info:
        _print_summary(read_container_summary(args.input))

    if args.verify or not args.info:
        decoded_video = decompress_ascii_video(args.input)
        if not decoded_video:
            raise SystemExit(1)
        frame_sizes = sorted({len(f) for f in decoded_video})
        print(f"decoded {len(decoded_video)} frames, cells per frame: {frame_sizes}")
