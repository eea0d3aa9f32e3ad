"""
Pairwise global alignment of residue or numeric-token sequences.

Examples:
    >>> from nwalign.align.pairwise import align
    >>> seq1, seq2, length, score = align('ACTCLMCT', 'ACTCCT', gap_open=1, gap_extend=0)
    >>> print(seq1, seq2, sep='\\n')
    ACTCLMCT
    ACTC--CT
"""
from typing import Union, Sequence, Hashable, TextIO, Optional
from warnings import warn

import numpy as np

from nwalign import NWAlignWarning
from nwalign.core.matrix import ScoreModel
from nwalign.align.dp import fill_matrix, trace_back

AlignableSeq = Union[str, bytes, Sequence[int], np.ndarray]


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class AllocationWarning(NWAlignWarning):
    """Issued when the alignment grids cannot be allocated and an empty alignment is returned."""


# Classes --------------------------------------------------------------------------------------------------------------
class Alignment:
    """
    The result of a pairwise alignment.

    Character sequences use `-` as the gap and numeric token sequences use 0. The object unpacks
    as `(seq1, seq2, length, score)`.

    Attributes:
        seq1: Sequence 1 with gaps inserted.
        seq2: Sequence 2 with gaps inserted.
        length (int): Number of aligned columns.
        score (int): Alignment score.
    """
    __slots__ = ('seq1', 'seq2', 'length', 'score')

    def __init__(self, seq1: AlignableSeq, seq2: AlignableSeq, length: int, score: int):
        self.seq1 = seq1
        self.seq2 = seq2
        self.length = length
        self.score = score

    def __iter__(self): return iter((self.seq1, self.seq2, self.length, self.score))
    def __len__(self): return self.length
    def __repr__(self): return f"Alignment(length={self.length}, score={self.score})"

    def __eq__(self, other):
        if isinstance(other, self.__class__):
            return (self.length == other.length and self.score == other.score and
                    np.array_equal(np.asarray(list(self.seq1)), np.asarray(list(other.seq1))) and
                    np.array_equal(np.asarray(list(self.seq2)), np.asarray(list(other.seq2))))
        return False

    @classmethod
    def empty(cls, kind: type = str) -> 'Alignment':
        """Returns the zero alignment, with empty sequences of the given input type."""
        if kind is np.ndarray: return cls(np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64), 0, 0)
        return cls(kind(), kind(), 0, 0)

    @property
    def n_matches(self) -> int:
        """Number of columns where both sequences hold the same symbol."""
        return int(sum(a == b for a, b in zip(self.seq1, self.seq2)))

    def ungapped(self) -> tuple:
        """Returns both sequences with their gaps removed."""
        return _strip(self.seq1), _strip(self.seq2)

    def identity(self) -> float:
        return self.n_matches / self.length if self.length > 0 else 0.0

    def normalised_score(self) -> float:
        """Returns the score divided by the length of the shorter input sequence."""
        shorter = min(map(len, self.ungapped()))
        return self.score / shorter if shorter > 0 else 0.0


class Aligner:
    """
    Needleman & Wunsch global aligner with affine gap penalties.

    Opening a gap costs `gap_open` and each further residue in the gap costs `gap_extend`.
    Gaps before the start and after the end of either sequence are free. With no score model,
    equal symbols score 1 and anything else scores 0.

    Examples:
        >>> aligner = Aligner(ScoreModel.from_file('pet91.mat'), gap_open=10, gap_extend=1)
        >>> aln = aligner.align('ACTCLMCT', 'ACTCCT')
        >>> aligner = Aligner(gap_open=5, gap_extend=0)
        >>> aln = aligner.align([1, 3, 1, 3, 7, 9, 5, 6], [1, 3, 1, 3, 5, 6])
    """
    __slots__ = ('score_model', 'gap_open', 'gap_extend', 'window', 'case_sensitive', 'verbose', 'stream')

    def __init__(self, score_model: ScoreModel = None, gap_open: int = 10, gap_extend: int = 1, window: int = 0,
                 case_sensitive: bool = True, verbose: bool = False, stream: TextIO = None):
        """
        Initializes the Aligner.

        Args:
            score_model: Substitution scores. None scores identity only.
            gap_open: Penalty for opening a gap.
            gap_extend: Additional penalty for each residue a gap is extended by.
            window: How far past its opening a gap run is searched. 0 means unbounded.
            case_sensitive: If False, symbols are upper-cased before they are compared or scored.
            verbose: Dump the filled grids to `stream` after each alignment.
            stream: Text stream for the dump, defaults to stdout.

        Raises:
            ValueError: If a gap penalty is negative.
        """
        if gap_open < 0 or gap_extend < 0:
            raise ValueError(f'Gap penalties must not be negative (open={gap_open}, extend={gap_extend})')
        self.score_model = score_model
        self.gap_open = gap_open
        self.gap_extend = gap_extend
        self.window = window
        self.case_sensitive = case_sensitive
        self.verbose = verbose
        self.stream = stream

    def __repr__(self):
        return (f"Aligner(gap_open={self.gap_open}, gap_extend={self.gap_extend}, window={self.window}, "
                f"model={self.score_model!r})")

    def align(self, seq1: AlignableSeq, seq2: AlignableSeq) -> Alignment:
        """
        Aligns two sequences.

        Args:
            seq1: First sequence as a str, bytes or integer token sequence.
            seq2: Second sequence of the same kind.

        Returns:
            The Alignment. Aligned sequences have the type of their inputs (numeric tokens
            come back as int64 arrays).

        Raises:
            TypeError: If the sequences are of different kinds or tokens are not integers.
            ValueError: If a numeric token is not positive, since 0 is the gap.
            TracebackError: If the direction grid is inconsistent.
        """
        symbols1, kind1 = _prepare(seq1)
        symbols2, kind2 = _prepare(seq2)
        if (kind1 is np.ndarray) != (kind2 is np.ndarray):
            raise TypeError('Cannot align a character sequence against numeric tokens')
        try:
            matrix = fill_matrix(self.pair_scores(symbols1, symbols2), self.gap_open, self.gap_extend, self.window)
        except MemoryError:
            warn(f'Cannot allocate alignment grids for sequences of length {len(symbols1)} and {len(symbols2)}',
                 AllocationWarning, stacklevel=2)
            return Alignment.empty(kind1)
        pos1, pos2, score = trace_back(matrix)
        if self.verbose: matrix.dump(self.stream)
        return Alignment(_gather(symbols1, pos1, kind1), _gather(symbols2, pos2, kind2), len(pos1), score)

    def pair_scores(self, seq1: Sequence[Hashable], seq2: Sequence[Hashable]) -> np.ndarray:
        """Returns the substitution score of every pair of positions as a (len1, len2) array."""
        if not self.case_sensitive and isinstance(seq1, str): seq1, seq2 = seq1.upper(), seq2.upper()
        if self.score_model is None: return _identity_scores(seq1, seq2)
        return self.score_model.pair_scores(seq1, seq2)


# Functions ------------------------------------------------------------------------------------------------------------
def align(seq1: AlignableSeq, seq2: AlignableSeq, gap_open: int = 10, gap_extend: int = 1, window: int = 0,
          score_model: ScoreModel = None, case_sensitive: bool = True, verbose: bool = False,
          stream: Optional[TextIO] = None) -> Alignment:
    """
    Aligns two sequences with a one-off Aligner.

    See `Aligner` for the meaning of the arguments.
    """
    return Aligner(score_model, gap_open, gap_extend, window, case_sensitive, verbose, stream).align(seq1, seq2)


def _prepare(seq: AlignableSeq) -> tuple:
    """Normalises an input sequence, returning the symbols and the output type."""
    if isinstance(seq, str): return seq, str
    if isinstance(seq, (bytes, bytearray)): return bytes(seq).decode('latin-1'), bytes
    tokens = np.asarray(seq)
    if tokens.size == 0: tokens = tokens.astype(np.int64)
    if tokens.ndim != 1 or tokens.dtype.kind not in 'iu':
        raise TypeError(f'Numeric sequences must be one-dimensional integer tokens, got {tokens.dtype}')
    if (tokens <= 0).any():
        raise ValueError(f'Numeric tokens must be positive as 0 is the gap, got {tokens.min()}')
    return tokens.astype(np.int64), np.ndarray


def _identity_scores(seq1: Sequence[Hashable], seq2: Sequence[Hashable]) -> np.ndarray:
    codes = {}
    c1 = np.fromiter((codes.setdefault(s, len(codes)) for s in seq1), dtype=np.int64)
    c2 = np.fromiter((codes.setdefault(s, len(codes)) for s in seq2), dtype=np.int64)
    return (c1[:, None] == c2[None, :]).astype(np.int64)


def _gather(symbols: Union[str, np.ndarray], pos: np.ndarray, kind: type) -> AlignableSeq:
    """Picks the symbols at the aligned positions, filling -1 positions with the gap."""
    if kind is np.ndarray:
        out = np.zeros(len(pos), dtype=np.int64)
        mask = pos >= 0
        out[mask] = symbols[pos[mask]]
        return out
    out = ''.join(symbols[p] if p >= 0 else '-' for p in pos)
    return out.encode('latin-1') if kind is bytes else out


def _strip(seq: AlignableSeq) -> AlignableSeq:
    if isinstance(seq, np.ndarray): return seq[seq != 0]
    return seq.replace(b'-' if isinstance(seq, bytes) else '-', seq[:0])
