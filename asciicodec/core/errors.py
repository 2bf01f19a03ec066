"""error kinds raised by the ascii video codec

Every failure aborts the current compress/decompress call, there is no partial output
and no retry. The errors also subclass the closest builtin exception, so that callers
which only care about e.g. ValueError/IndexError can catch those.
"""


class CodecError(Exception):
    """base class for all the codec errors"""


class EmptyInputError(CodecError, ValueError):
    """there are no symbols to build a huffman tree from"""


class TruncatedStreamError(CodecError, EOFError):
    """the stream ended before a field could be fully read

    Args:
        what (str): name of the field being read
        expected (int): number of bytes (or bits) the field needs
        available (int): number of bytes (or bits) actually available
        unit (str): "bytes" or "bits"
    """

    def __init__(self, what: str, expected: int, available: int, unit: str = "bytes"):
        self.what = what
        self.expected = expected
        self.available = available
        self.unit = unit
        super().__init__(
            f"truncated stream while reading {what}: expected {expected} {unit}, "
            f"only {available} available"
        )


class MalformedTreeError(CodecError, ValueError):
    """the huffman tree is absent/invalid, or a decode walk did not end on a leaf"""


class IndexOutOfRangeError(CodecError, IndexError):
    """a delta frame references a cell index outside the current frame"""

    def __init__(self, index: int, frame_size: int, frame_idx: int = None):
        self.index = index
        self.frame_size = frame_size
        self.frame_idx = frame_idx
        location = f" (frame {frame_idx})" if frame_idx is not None else ""
        super().__init__(
            f"delta index {index} out of bounds for frame size {frame_size}{location}"
        )


class InvalidSourceError(CodecError, FileNotFoundError):
    """the compressed source does not exist or does not have the expected extension"""
