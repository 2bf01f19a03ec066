import bitarray
from bitarray.util import ba2int, int2ba
import numpy as np
import pytest

from asciicodec.core.errors import TruncatedStreamError


# all the bit sequences in the codec are bitarrays with big-endian bit order,
# i.e. the first bit of each byte is its most significant bit
BitArray = bitarray.bitarray


def uint_to_bitarray(x: int, bit_width=None) -> BitArray:
    """
    converts an unsigned int to bits.
    if bit_width is provided then data is converted accordingly
    """
    assert isinstance(x, (int, np.integer))
    if bit_width is not None and x >= (1 << bit_width):
        raise ValueError(f"{x} does not fit in {bit_width} bits")
    return int2ba(int(x), length=bit_width)  # int2ba requires input to be dtype int


def bitarray_to_uint(bit_array: BitArray) -> int:
    return ba2int(bit_array)


class BitArrayReader:
    """cursor over a bitarray

    Keeps track of the current read position, so that the fields of a packed frame
    (code lengths, codes, colors, indices) can be read one after the other.
    Reading past the end of the bitarray raises TruncatedStreamError.
    """

    def __init__(self, bits: BitArray, pos: int = 0):
        assert isinstance(bits, BitArray)
        self.bits = bits
        self.pos = pos

    @property
    def num_bits_remaining(self) -> int:
        return len(self.bits) - self.pos

    def _check_available(self, num_bits: int, what: str):
        if num_bits > self.num_bits_remaining:
            raise TruncatedStreamError(
                what, expected=num_bits, available=self.num_bits_remaining, unit="bits"
            )

    def read_bit(self) -> int:
        self._check_available(1, "bit")
        bit = self.bits[self.pos]
        self.pos += 1
        return bit

    def read_bits(self, num_bits: int) -> BitArray:
        self._check_available(num_bits, f"{num_bits}-bit field")
        out = self.bits[self.pos : self.pos + num_bits]
        self.pos += num_bits
        return out

    def read_uint(self, bit_width: int) -> int:
        """reads a bit_width wide unsigned int (MSB first)"""
        return bitarray_to_uint(self.read_bits(bit_width))


############################## TESTS ####################################


def test_basic_bitarray_operations():
    # testing if iterating through bitarray works
    # and if/else condition work on a bit
    code = BitArray("01011")
    for bit in code:
        if bit:
            assert bit == 1
        else:
            assert bit == 0


def test_bitarray_to_int():
    """simple tests to verify if uint to bitarray and reverse conversions work"""
    # ex-1
    x = 4
    b = uint_to_bitarray(x)
    assert len(b) == 3
    x_hat = bitarray_to_uint(b)
    assert x == x_hat

    # ex-2: fixed width fields are zero-extended on the left
    b = uint_to_bitarray(13, bit_width=8)
    assert b == BitArray("00001101")
    assert bitarray_to_uint(b) == 13

    # ex-3: values which do not fit the width are rejected
    with pytest.raises(ValueError):
        uint_to_bitarray(256, bit_width=8)


def test_bitarray_reader():
    """read fields one after the other and check the cursor position"""
    bits = BitArray("1") + uint_to_bitarray(200, bit_width=8) + BitArray("011")
    reader = BitArrayReader(bits)

    assert reader.read_bit() == 1
    assert reader.read_uint(8) == 200
    assert reader.pos == 9
    assert reader.read_bits(2) == BitArray("01")
    assert reader.num_bits_remaining == 1

    # reading more bits than available fails, and reports the counts
    with pytest.raises(TruncatedStreamError) as excinfo:
        reader.read_uint(8)
    assert excinfo.value.expected == 8
    assert excinfo.value.available == 1
