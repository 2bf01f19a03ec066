"""
Utility functions useful for testing
"""

import os
import tempfile
from typing import Callable, Sequence

import numpy as np

from asciicodec.core.encoded_stream import EncodedStreamReader, EncodedStreamWriter
from asciicodec.core.frame import Cell, Color, Video


def get_random_video(
    num_frames: int,
    frame_size: int,
    alphabet: Sequence[str] = "@%#*+=-:. ",
    change_prob: float = 0.1,
    num_colors: int = None,
    seed: int = None,
) -> Video:
    """generates a random ascii video

    frame 0 is drawn i.i.d, every next frame copies the previous frame and redraws each cell
    with probability change_prob, which is roughly how consecutive frames of a real video behave.

    Args:
        num_frames (int): number of frames
        frame_size (int): number of cells per frame
        alphabet (Sequence[str]): glyphs to draw the symbols from
        change_prob (float): probability of a cell changing from one frame to the next
        num_colors (int): if provided, colors are drawn from a palette of that many colors
        seed (int): random seed used to generate the data
    """
    rng = np.random.default_rng(seed)
    alphabet = list(alphabet)

    if num_colors is not None:
        palette = rng.integers(0, 256, size=(num_colors, 3))

    def _random_cell():
        symbol = alphabet[rng.integers(len(alphabet))]
        if num_colors is not None:
            color = palette[rng.integers(num_colors)]
        else:
            color = rng.integers(0, 256, size=3)
        return Cell(symbol, Color(*(int(c) for c in color)))

    video = []
    for frame_idx in range(num_frames):
        if frame_idx == 0:
            frame = [_random_cell() for _ in range(frame_size)]
        else:
            frame = list(video[-1])
            for i in range(frame_size):
                if rng.random() < change_prob:
                    frame[i] = _random_cell()
        video.append(frame)
    return video


def write_and_read_back(write_fn: Callable, read_fn: Callable, file_name: str = "encoded.bin"):
    """writes to a temporary file with write_fn(writer), and returns read_fn(reader)

    Args:
        write_fn (Callable): function which writes to the EncodedStreamWriter
        read_fn (Callable): function which reads from the EncodedStreamReader
    """
    with tempfile.TemporaryDirectory() as tmpdirname:
        file_path = os.path.join(tmpdirname, file_name)
        with EncodedStreamWriter(file_path) as writer:
            write_fn(writer)
        with EncodedStreamReader(file_path) as reader:
            return read_fn(reader)
