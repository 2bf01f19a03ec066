"""data model of an ascii video

- Symbol: a one character str, with a code point in 0..255 (the glyph used to render the cell)
- Color: (r, g, b), each channel an unsigned 8-bit value
- Cell: (symbol, color), one grid position of a frame
- Frame: list of cells. The position of a cell in the list is its linear index, which is what
  delta frames refer to
- Video: list of frames, frame i at index i

The codec consumes and produces fully formed frames; how they are captured from media or rendered
is up to the caller.
"""

from typing import List, Mapping, NamedTuple, Sequence, Union

import numpy as np
import pytest

NUM_SYMBOL_VALUES = 256
MAX_CHANNEL_VALUE = 255


class Color(NamedTuple):
    r: int
    g: int
    b: int


class Cell(NamedTuple):
    symbol: str
    color: Color


Frame = List[Cell]
Video = List[Frame]


def symbol_to_byte(symbol: str) -> int:
    """returns the 8-bit code of the symbol"""
    if not isinstance(symbol, str) or len(symbol) != 1:
        raise ValueError(f"symbol should be a single character, got {symbol!r}")
    code = ord(symbol)
    if code >= NUM_SYMBOL_VALUES:
        raise ValueError(f"symbol {symbol!r} is not an 8-bit character")
    return code


def byte_to_symbol(code: int) -> str:
    assert 0 <= code < NUM_SYMBOL_VALUES
    return chr(code)


def validate_cell(cell) -> Cell:
    """checks the cell and converts it (and its color) to the named tuples"""
    try:
        symbol, color = cell
    except (TypeError, ValueError):
        raise ValueError(f"cell should be a (symbol, (r, g, b)) pair, got {cell!r}")

    symbol_to_byte(symbol)
    if not isinstance(color, (tuple, list)) or len(color) != 3:
        raise ValueError(f"color should have 3 channels, got {color!r}")
    for channel in color:
        if not isinstance(channel, (int, np.integer)) or isinstance(channel, bool):
            raise ValueError(f"color channel values should be integers, got {color!r}")
        if not (0 <= channel <= MAX_CHANNEL_VALUE):
            raise ValueError(f"color channel values should be in 0..255, got {color!r}")
    return Cell(symbol, Color(*(int(c) for c in color)))


def normalize_video(video: Union[Sequence, Mapping[int, Sequence]]) -> Video:
    """returns the video as a list of validated frames

    A mapping from frame number to frame is also accepted, as long as the frame numbers are
    the contiguous range 0..N-1.
    """
    if isinstance(video, Mapping):
        if sorted(video.keys()) != list(range(len(video))):
            raise ValueError(
                f"frame numbers should be contiguous starting at 0, got {sorted(video.keys())}"
            )
        video = [video[i] for i in range(len(video))]

    return [[validate_cell(cell) for cell in frame] for frame in video]


def are_frames_equal(frame_1: Sequence, frame_2: Sequence) -> bool:
    """True if both frames have the same cells (symbol and color), in the same order"""
    if len(frame_1) != len(frame_2):
        return False
    for cell_1, cell_2 in zip(frame_1, frame_2):
        if cell_1[0] != cell_2[0] or tuple(cell_1[1]) != tuple(cell_2[1]):
            return False
    return True


def are_videos_equal(video_1: Sequence, video_2: Sequence) -> bool:
    if len(video_1) != len(video_2):
        return False
    return all(are_frames_equal(f1, f2) for f1, f2 in zip(video_1, video_2))


def test_validate_cell():
    cell = validate_cell(("A", (255, 0, 0)))
    assert cell == Cell("A", Color(255, 0, 0))
    assert cell.color.r == 255

    # plain tuples compare equal to the named ones
    assert cell == ("A", (255, 0, 0))

    for bad_cell in [("AB", (0, 0, 0)), ("Ā", (0, 0, 0)), ("A", (0, 0)), ("A", (0, 0, 256)), 5]:
        with pytest.raises(ValueError):
            validate_cell(bad_cell)

    # channels are integers, numpy ones included
    assert validate_cell(("A", (np.uint8(7), 0, 0))) == ("A", (7, 0, 0))
    for bad_cell in [("A", ("x", 0, 0)), ("A", (1.5, 0, 0)), ("A", (True, 0, 0)), ("A", (None, 0, 0))]:
        with pytest.raises(ValueError):
            validate_cell(bad_cell)


def test_normalize_video():
    frame = [("A", (1, 2, 3)), ("B", (4, 5, 6))]
    assert normalize_video({1: frame, 0: frame}) == [frame, frame]
    assert normalize_video([frame]) == [frame]

    # frame numbers need to be contiguous
    with pytest.raises(ValueError):
        normalize_video({0: frame, 2: frame})


def test_are_videos_equal():
    frame = [Cell("A", Color(1, 2, 3)), Cell(" ", Color(0, 0, 0))]
    changed = [Cell("A", Color(1, 2, 3)), Cell(" ", Color(0, 0, 1))]
    assert are_videos_equal([frame, frame], [list(frame), list(frame)])
    assert not are_videos_equal([frame, frame], [frame, changed])
    assert not are_videos_equal([frame], [frame, frame])
