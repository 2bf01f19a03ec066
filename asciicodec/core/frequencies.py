from typing import Iterable
import unittest

import numpy as np

from asciicodec.core.errors import EmptyInputError


class Frequencies:
    """
    Wrapper around a frequency dict {symbol: count}
    NOTE: the counts are integers > 0, symbols which never occur are simply absent
    """

    def __init__(self, freq_dict=None):
        if freq_dict is None:
            freq_dict = {}
        self._validate_freq_dist(freq_dict)

        # NOTE: We use the fact that since python 3.6, dictionaries in python are
        # also OrderedDicts. https://realpython.com/python-ordereddict/
        self.freq_dict = freq_dict

    def __repr__(self):
        return f"Frequencies({self.freq_dict.__repr__()})"

    @classmethod
    def from_video(cls, video: Iterable) -> "Frequencies":
        """counts the symbols over every cell of every frame of the video

        The huffman tree is built once from these counts, so that a single code table is valid
        for all the frames.
        """
        freq_dict = {}
        for frame in video:
            for symbol, _ in frame:
                freq_dict[symbol] = freq_dict.get(symbol, 0) + 1
        return cls(freq_dict)

    @property
    def size(self):
        return len(self.freq_dict)

    @property
    def alphabet(self):
        return list(self.freq_dict)

    @property
    def freq_list(self):
        return [self.freq_dict[s] for s in self.alphabet]

    @property
    def total_freq(self) -> int:
        """returns the sum of all the frequencies"""
        return int(np.sum(self.freq_list))

    def frequency(self, symbol):
        return self.freq_dict[symbol]

    def check_non_empty(self):
        if self.size == 0:
            raise EmptyInputError("no symbols to build the huffman tree from")

    @staticmethod
    def _validate_freq_dist(freq_dict):
        """
        checks if each value of the freq dist is a positive int
        """
        for _, freq in freq_dict.items():
            assert isinstance(freq, (int, np.integer))
            assert freq > 0, "frequency cannot be negative or 0"


def test_frequencies_from_video():
    video = [
        [("A", (255, 0, 0)), ("A", (255, 0, 0)), ("B", (0, 0, 0))],
        [("A", (255, 0, 0)), ("C", (0, 0, 0)), ("B", (0, 0, 0))],
    ]
    freqs = Frequencies.from_video(video)
    assert freqs.freq_dict == {"A": 3, "B": 2, "C": 1}
    assert freqs.alphabet == ["A", "B", "C"]
    assert freqs.total_freq == 6
    assert freqs.frequency("B") == 2


class FrequenciesTest(unittest.TestCase):
    def test_empty_frequencies(self):
        freqs = Frequencies.from_video([[], []])
        assert freqs.size == 0
        with self.assertRaises(EmptyInputError):
            freqs.check_non_empty()

    @unittest.expectedFailure
    def test_validation_failure(self):
        """zero counts are not a valid frequency table"""
        Frequencies({"A": 3, "B": 0})
