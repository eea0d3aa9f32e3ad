"""
Dynamic programming kernels for Needleman & Wunsch alignment with affine gap penalties.

The score grid is filled from the far corner back towards (0, 0), so each cell holds the best
score of an alignment starting there. The alignment then starts from the best cell on the two
zero-index edges and is traced forward to the far edges.
"""
from warnings import warn

import numpy as np

from nwalign import DependencyWarning
from nwalign.align.matrix import AlignmentMatrix, Direction
from nwalign.utils.resources import RESOURCES, jit


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class TracebackError(RuntimeError):
    """Raised when the direction grid holds an entry the traceback cannot follow."""


# Constants ------------------------------------------------------------------------------------------------------------
_DIAGONAL = int(Direction.DIAGONAL)
_GAP_IN_SEQ1 = int(Direction.GAP_IN_SEQ1)
_GAP_IN_SEQ2 = int(Direction.GAP_IN_SEQ2)


# Functions ------------------------------------------------------------------------------------------------------------
def _check_numba() -> bool:
    """Warns once if the kernels cannot be compiled, returning whether numba is available."""
    if RESOURCES.has_module('numba'): return True
    warn('numba is not installed, alignment kernels will run as pure Python', DependencyWarning)
    return False


_check_numba()


# Drivers --------------------------------------------------------------------------------------------------------------
def fill_matrix(pair: np.ndarray, gap_open: int, gap_extend: int, window: int = 0) -> AlignmentMatrix:
    """
    Fills the score and direction grids.

    Args:
        pair: int array of shape (len1, len2) with the substitution score of every position pair.
        gap_open: Penalty for opening a gap.
        gap_extend: Additional penalty for each residue a gap is extended by.
        window: How far past the gap opening a gap run is searched. 0 means unbounded.

    Returns:
        The filled AlignmentMatrix.
    """
    pair = np.ascontiguousarray(pair, dtype=np.int64)
    len1, len2 = pair.shape
    matrix = AlignmentMatrix(len1, len2)
    if len1 == 0 or len2 == 0: return matrix
    if window <= 0: window = max(len1, len2)
    _fill_kernel(pair, matrix.score, matrix.direction, matrix.target, int(gap_open), int(gap_extend), int(window))
    return matrix


def find_best_edge(matrix: AlignmentMatrix) -> tuple[int, int]:
    """
    Finds the alignment start on the two zero-index edges of a filled matrix.

    The sequence 1 edge is chosen only when its best score is strictly higher; ties go to the
    sequence 2 edge. Within an edge the first maximum wins.

    Returns:
        The (i, j) start cell; one of the two is always 0.

    Raises:
        ValueError: If the matrix has no cells.
    """
    if 0 in matrix.shape: raise ValueError(f'Cannot find a start cell in an empty {matrix!r}')
    best_i, best_j = _best_edge_kernel(matrix.score)
    return int(best_i), int(best_j)


def trace_back(matrix: AlignmentMatrix) -> tuple[np.ndarray, np.ndarray, int]:
    """
    Follows the direction grid from the best start cell to the far edges.

    Positions skipped by one sequence before the start, inside gap runs, or after the other
    sequence has run out are paired with -1.

    Returns:
        The aligned position arrays for both sequences and the alignment score.

    Raises:
        TracebackError: If a visited cell holds a direction the walk cannot follow.
    """
    len1, len2 = matrix.shape
    if len1 == 0 or len2 == 0:
        return (np.full(len2, -1, dtype=np.int64) if len1 == 0 else np.arange(len1, dtype=np.int64),
                np.full(len1, -1, dtype=np.int64) if len2 == 0 else np.arange(len2, dtype=np.int64), 0)
    best_i, best_j = find_best_edge(matrix)
    pos1 = np.empty(len1 + len2, dtype=np.int64)
    pos2 = np.empty(len1 + len2, dtype=np.int64)
    n, i, j, ok = _traceback_kernel(matrix.direction, matrix.target, best_i, best_j, pos1, pos2)
    if not ok:
        raise TracebackError(f'Cannot follow pointer {matrix.pointer(i, j)} at cell ({i}, {j})')
    return pos1[:n], pos2[:n], int(matrix.score[best_i, best_j])


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _fill_kernel(pair, score, direction, target, gap_open, gap_extend, window):
    len1, len2 = score.shape
    # The far edges take the pair score with no gap term
    for j in range(len2): score[len1 - 1, j] = pair[len1 - 1, j]
    for i in range(len1): score[i, len2 - 1] = pair[i, len2 - 1]

    i = len1 - 1
    j = len2 - 1
    while i > 0 and j > 0:
        i -= 1
        j -= 1
        for i1 in range(i, -1, -1): _fill_cell(pair, score, direction, target, i1, j, gap_open, gap_extend, window)
        for j1 in range(j, -1, -1): _fill_cell(pair, score, direction, target, i, j1, gap_open, gap_extend, window)


@jit(nopython=True, cache=True, nogil=True)
def _fill_cell(pair, score, direction, target, i, j, gap_open, gap_extend, window):
    len1, len2 = score.shape
    dia = score[i + 1, j + 1]

    # Gap in seq2: seq1 jumps ahead to row k
    r_cell = i + 2
    if i + 2 >= len1:
        right = 0
    else:
        right = score[i + 2, j + 1] - gap_open
        for k in range(i + 3, min(len1, i + 3 + window)):
            this = score[k, j + 1] - (gap_open + (k - i - 2) * gap_extend)
            if this > right:
                right = this
                r_cell = k

    # Gap in seq1: seq2 jumps ahead to column l
    d_cell = j + 2
    if j + 2 >= len2:
        down = 0
    else:
        down = score[i + 1, j + 2] - gap_open
        for l in range(j + 3, min(len2, j + 3 + window)):
            this = score[i + 1, l] - (gap_open + (l - j - 2) * gap_extend)
            if this > down:
                down = this
                d_cell = l

    if dia >= max(right, down):
        best = dia
        direction[i, j] = _DIAGONAL
        target[i, j] = -1
    elif right > down:
        best = right
        direction[i, j] = _GAP_IN_SEQ2
        target[i, j] = r_cell
    else:
        best = down
        direction[i, j] = _GAP_IN_SEQ1
        target[i, j] = d_cell
    score[i, j] = best + pair[i, j]


@jit(nopython=True, cache=True, nogil=True)
def _best_edge_kernel(score):
    len1, len2 = score.shape
    best_i = 0
    for i in range(1, len1):
        if score[i, 0] > score[best_i, 0]: best_i = i
    best_j = 0
    for j in range(1, len2):
        if score[0, j] > score[0, best_j]: best_j = j
    if score[best_i, 0] > score[0, best_j]: best_j = 0
    else: best_i = 0
    return best_i, best_j


@jit(nopython=True, cache=True, nogil=True)
def _traceback_kernel(direction, target, best_i, best_j, pos1, pos2):
    len1, len2 = direction.shape
    n = 0
    # Leading insertions; at most one of these runs
    for k in range(best_i):
        pos1[n] = k
        pos2[n] = -1
        n += 1
    for k in range(best_j):
        pos1[n] = -1
        pos2[n] = k
        n += 1

    i = best_i
    j = best_j
    pos1[n] = i
    pos2[n] = j
    n += 1
    while i < len1 - 1 and j < len2 - 1:
        tag = direction[i, j]
        end = target[i, j]
        if tag == _DIAGONAL:
            i += 1
            j += 1
        elif tag == _GAP_IN_SEQ2:
            i += 1
            j += 1
            while i < end and i < len1 - 1:
                pos1[n] = i
                pos2[n] = -1
                n += 1
                i += 1
        elif tag == _GAP_IN_SEQ1:
            i += 1
            j += 1
            while j < end and j < len2 - 1:
                pos1[n] = -1
                pos2[n] = j
                n += 1
                j += 1
        else:
            return n, i, j, False
        pos1[n] = i
        pos2[n] = j
        n += 1

    # Trailing insertions if one sequence ran out first
    if i < len1 - 1:
        for k in range(i + 1, len1):
            pos1[n] = k
            pos2[n] = -1
            n += 1
    elif j < len2 - 1:
        for k in range(j + 1, len2):
            pos1[n] = -1
            pos2[n] = k
            n += 1
    return n, i, j, True
