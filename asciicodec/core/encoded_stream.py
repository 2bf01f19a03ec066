"""encoded stream writers and readers

The compressed ascii video is a sequence of fixed width integer fields and packed bit sequences.
- integer fields are unsigned, little-endian, 4 bytes (uint32) or 1 byte (uint8), independent of
  the platform the file was written on
- a bit sequence (for eg. the encoding of one frame) is written by the BitPacker as:
  (uint32 bit_count, ceil(bit_count/8) payload bytes, uint8 remainder)

The EncodedStreamWriter and EncodedStreamReader handle these fields, so that the codec only needs
to care about values and bitarrays. More information in the respective docstrings.
"""

import io
import logging
import os
import tempfile
from typing import Tuple

import pytest

from asciicodec.core.errors import TruncatedStreamError
from asciicodec.utils.bitarray_utils import BitArray

logger = logging.getLogger(__name__)

NUM_UINT32_BYTES = 4
BYTE_ORDER = "little"


def uint_to_bytes(x: int, num_bytes: int) -> bytes:
    assert isinstance(x, int)
    if not (0 <= x < (1 << (8 * num_bytes))):
        raise ValueError(f"{x} does not fit in an unsigned {num_bytes}-byte field")
    return x.to_bytes(num_bytes, BYTE_ORDER)


def bytes_to_uint(data: bytes) -> int:
    return int.from_bytes(data, BYTE_ORDER)


#################


class BitPacker:
    """Class to byte align a bitarray, with an explicit bit count

    structure of the packed bytes:
    - bit_count (uint32): number of meaningful bits
    - payload: ceil(bit_count/8) bytes, bits are packed MSB first, the low-order bits of the
      last byte are zero padding
    - remainder (uint8): bit_count % 8. Only informational, bit_count alone determines where
      the meaningful bits end
    """

    @staticmethod
    def get_num_payload_bytes(bit_count: int) -> int:
        return (bit_count + 7) // 8

    @classmethod
    def pack(cls, bits: BitArray) -> bytes:
        assert isinstance(bits, BitArray)

        bit_count = len(bits)
        # NOTE: tobytes() zero-pads the last byte
        payload = bits.tobytes()
        assert len(payload) == cls.get_num_payload_bytes(bit_count)
        return uint_to_bytes(bit_count, NUM_UINT32_BYTES) + payload + uint_to_bytes(bit_count % 8, 1)

    @classmethod
    def bits_from_payload(cls, payload: bytes, bit_count: int) -> BitArray:
        """expands the payload bytes MSB first, and drops the padding bits beyond bit_count"""
        assert len(payload) == cls.get_num_payload_bytes(bit_count)
        bits = BitArray()
        bits.frombytes(payload)
        return bits[:bit_count]

    @classmethod
    def unpack(cls, data: bytes) -> Tuple[BitArray, int]:
        """inverse of pack

        Returns:
            Tuple[BitArray, int]: the bits, and the number of bytes of data consumed
        """
        reader = EncodedStreamReader.from_bytes(data)
        bits = reader.read_packed_bits()
        return bits, reader.num_bytes_read


def test_bit_packer():
    """test packing/unpacking bitarrays of different sizes"""

    def _test(bits_gt: BitArray):
        packed = BitPacker.pack(bits_gt)
        num_payload_bytes = (len(bits_gt) + 7) // 8

        # bit_count + payload + remainder
        assert len(packed) == NUM_UINT32_BYTES + num_payload_bytes + 1
        assert bytes_to_uint(packed[:NUM_UINT32_BYTES]) == len(bits_gt)
        assert packed[-1] == len(bits_gt) % 8

        bits, num_bytes_consumed = BitPacker.unpack(packed)
        assert bits == bits_gt
        assert num_bytes_consumed == len(packed)

    payloads = [BitArray(""), BitArray("1"), BitArray("10110"), BitArray("1" * 23), BitArray("0" * 16)]
    payloads.append(BitArray("101011001110101010110011101010101100111010"))
    for payload in payloads:
        _test(payload)


def test_bit_packer_layout():
    """bits are packed MSB first, and the last byte is zero padded on its low-order bits"""
    packed = BitPacker.pack(BitArray("10110010" + "101"))
    assert packed == b"\x0b\x00\x00\x00" + bytes([0b10110010, 0b10100000]) + b"\x03"


def test_bit_packer_truncated():
    packed = BitPacker.pack(BitArray("1" * 20))
    with pytest.raises(TruncatedStreamError) as excinfo:
        BitPacker.unpack(packed[:-2])
    assert excinfo.value.expected == 3
    assert excinfo.value.available == 2


######################################


class EncodedStreamWriter:
    """writer to write integer fields, raw bytes and packed bitarrays to the encoded file"""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self.num_bytes_written = 0

    def __enter__(self):
        self.file_writer = open(self.file_path, "wb")  # open binary file
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self.file_writer.close()

    def write_bytes(self, data: bytes):
        self.file_writer.write(data)
        self.num_bytes_written += len(data)

    def write_uint32(self, x: int):
        self.write_bytes(uint_to_bytes(x, NUM_UINT32_BYTES))

    def write_uint8(self, x: int):
        self.write_bytes(uint_to_bytes(x, 1))

    def write_packed_bits(self, bits: BitArray):
        """packs the bitarray (see BitPacker) and writes it to the file"""
        self.write_bytes(BitPacker.pack(bits))


class EncodedStreamReader:
    """Reader to read the fields written by the EncodedStreamWriter

    Every read checks that the stream has enough bytes left, and raises TruncatedStreamError
    (with the expected vs available byte counts) otherwise.
    """

    def __init__(self, file_path: str = None):
        self.file_path = file_path
        self.file_reader = None
        self.num_bytes_read = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "EncodedStreamReader":
        """reader over an in-memory buffer, no need to use it as a context manager"""
        reader = cls()
        reader.file_reader = io.BytesIO(data)
        return reader

    def __enter__(self):
        self.file_reader = open(self.file_path, "rb")  # open binary file
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self.file_reader.close()

    def read_bytes(self, num_bytes: int, what: str = "bytes") -> bytes:
        data = self.file_reader.read(num_bytes)
        if len(data) != num_bytes:
            raise TruncatedStreamError(what, expected=num_bytes, available=len(data))
        self.num_bytes_read += num_bytes
        return data

    def read_uint32(self, what: str = "uint32") -> int:
        return bytes_to_uint(self.read_bytes(NUM_UINT32_BYTES, what))

    def read_uint8(self, what: str = "uint8") -> int:
        return bytes_to_uint(self.read_bytes(1, what))

    def read_packed_bits(self) -> BitArray:
        """reads a bitarray written by BitPacker.pack"""
        bit_count = self.read_uint32("bit count")
        num_payload_bytes = BitPacker.get_num_payload_bytes(bit_count)
        payload = self.read_bytes(num_payload_bytes, f"payload of {bit_count} bits")
        remainder = self.read_uint8("remainder")
        if remainder != bit_count % 8:
            # bit_count is authoritative, the remainder is only informational
            logger.debug(f"remainder {remainder} does not match bit count {bit_count}")
        return BitPacker.bits_from_payload(payload, bit_count)


###################################


def test_encoded_stream_reader_writer():
    """tests EncodedStreamReader and EncodedStreamWriter

    - write some integer fields and packed bitarrays to a binary file using EncodedStreamWriter
    - read the binary file back using EncodedStreamReader and check if the data is the same
    """

    with tempfile.TemporaryDirectory() as tmpdirname:
        bit_blocks = [BitArray("101000101010111"), BitArray("1" * 24), BitArray("")]

        temp_file_path = os.path.join(tmpdirname, "encoded.bin")
        with EncodedStreamWriter(temp_file_path) as writer:
            writer.write_uint32(len(bit_blocks))
            writer.write_uint8(7)
            for block in bit_blocks:
                writer.write_packed_bits(block)

        # integer fields are little-endian
        with open(temp_file_path, "rb") as f:
            assert f.read(5) == b"\x03\x00\x00\x00\x07"

        with EncodedStreamReader(temp_file_path) as reader:
            assert reader.read_uint32() == len(bit_blocks)
            assert reader.read_uint8() == 7
            read_blocks = [reader.read_packed_bits() for _ in range(len(bit_blocks))]
            assert reader.num_bytes_read == writer.num_bytes_written

            # nothing left to read
            with pytest.raises(TruncatedStreamError):
                reader.read_uint32()

        assert read_blocks == bit_blocks


def test_uint_fields_out_of_range():
    with pytest.raises(ValueError):
        uint_to_bytes(256, 1)
    with pytest.raises(ValueError):
        uint_to_bytes(-1, NUM_UINT32_BYTES)
    assert bytes_to_uint(uint_to_bytes((1 << 32) - 1, NUM_UINT32_BYTES)) == (1 << 32) - 1
