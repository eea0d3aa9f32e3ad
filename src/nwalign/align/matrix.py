"""
Module for the dynamic programming grids used by the aligner.
"""
from enum import IntEnum
from typing import TextIO, Optional
import sys

import numpy as np


# Constants ------------------------------------------------------------------------------------------------------------
class Direction(IntEnum):
    """
    Tags recording which neighbouring cell gave the optimum at a cell of the score grid.

    The two gap tags carry the index the gap run ends at, stored alongside in the target grid.
    """
    UNSET = 0
    DIAGONAL = 1
    GAP_IN_SEQ1 = 2  # Seq2 advances to the target index while seq1 takes gaps
    GAP_IN_SEQ2 = 3  # Seq1 advances to the target index while seq2 takes gaps


# Classes --------------------------------------------------------------------------------------------------------------
class AlignmentMatrix:
    """
    The score grid and tagged direction grid for one pairwise alignment.

    Both grids are indexed `[i, j]` with `i` a position in sequence 1 and `j` a position in
    sequence 2, and are sized exactly `len1 x len2`.

    Attributes:
        score (np.ndarray): int64 grid of cumulative scores.
        direction (np.ndarray): int8 grid of `Direction` tags.
        target (np.ndarray): int32 grid holding the gap-run end index for gap tags.

    Examples:
        >>> m = AlignmentMatrix(8, 6)
        >>> m.pointer(0, 0)
        (-1, -1)
    """
    __slots__ = ('score', 'direction', 'target')

    def __init__(self, len1: int, len2: int):
        self.score = np.zeros((len1, len2), dtype=np.int64)
        self.direction = np.full((len1, len2), Direction.UNSET, dtype=np.int8)
        self.target = np.full((len1, len2), -1, dtype=np.int32)

    def __repr__(self): return f"AlignmentMatrix{self.shape}"

    @property
    def shape(self) -> tuple[int, int]: return self.score.shape

    def pointer(self, i: int, j: int) -> tuple[int, int]:
        """
        Returns the coordinates of the cell the optimum at (i, j) was taken from.

        Unset cells give (-1, -1).
        """
        tag = self.direction[i, j]
        if tag == Direction.DIAGONAL: return i + 1, j + 1
        if tag == Direction.GAP_IN_SEQ2: return int(self.target[i, j]), j + 1
        if tag == Direction.GAP_IN_SEQ1: return i + 1, int(self.target[i, j])
        return -1, -1

    def dump(self, stream: Optional[TextIO] = None):
        """
        Writes both grids as text, one line per sequence 2 position.

        Args:
            stream: Output text stream, defaults to stdout.
        """
        stream = stream or sys.stdout
        len1, len2 = self.shape
        stream.write("Matrix:\n-------\n")
        for j in range(len2):
            stream.write(''.join(f"{self.score[i, j]:3d} " for i in range(len1)) + "\n")
        stream.write("Path:\n-----\n")
        for j in range(len2):
            stream.write(''.join("(%3d,%3d) " % self.pointer(i, j) for i in range(len1)) + "\n")
