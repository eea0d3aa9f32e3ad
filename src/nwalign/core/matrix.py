"""
Module for substitution score models (mutation data matrices).
"""
from pathlib import Path
from typing import Union, Iterable, Sequence, Hashable, Final, Optional
from warnings import warn
import re

import numpy as np

from nwalign import NWAlignWarning
from nwalign.utils import xopen
from nwalign.utils.resources import RESOURCES


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ScoreMatrixError(Exception):
    """Raised when a score matrix description is malformed or a ScoreModel is inconsistent."""


class UnknownSymbolWarning(NWAlignWarning):
    """Issued when a symbol outside the model alphabet is scored."""


# Constants ------------------------------------------------------------------------------------------------------------
NULL: Final = '\0'
_COMMENTS: Final = ('!', '#')
_NUMERIC = re.compile(r'-?\d+', re.ASCII)


# Classes --------------------------------------------------------------------------------------------------------------
class ScoreModel:
    """
    A finite alphabet of symbols with a square table of substitution scores.

    Symbols are single-character strings for residue alphabets or integers for numeric tokens.
    Scoring a symbol that is not in the alphabet returns 0 and is reported through a bounded
    warning counter held on the model.

    Attributes:
        n_warnings (int): Number of missing-symbol lookups seen so far.

    Examples:
        >>> m = ScoreModel.from_file('pet91.mat')
        >>> m.score('A', 'W')
        -6
        >>> m.score(NULL, NULL)  # Silence further warnings
        0
    """
    _DTYPE = np.int32
    WARN_LIMIT: Final = 10
    __slots__ = ('_alphabet', '_lookup', '_data', 'n_warnings')

    def __init__(self, alphabet: Iterable[Hashable], table: Union[np.ndarray, Iterable]):
        """
        Initializes a ScoreModel.

        Args:
            alphabet: The ordered symbols; position gives the row/column in the table.
            table: Square score table with side equal to the alphabet size.

        Raises:
            ScoreMatrixError: If the table is not square, is empty, does not match the alphabet,
                or the alphabet contains duplicates.
        """
        self._alphabet = tuple(alphabet)
        self._data = np.array(table, dtype=self._DTYPE)
        if self._data.ndim != 2 or self._data.shape[0] != self._data.shape[1]:
            raise ScoreMatrixError(f'Score table must be square, got shape {self._data.shape}')
        if self._data.shape[0] == 0: raise ScoreMatrixError('Score table is empty')
        if len(self._alphabet) != self._data.shape[0]:
            raise ScoreMatrixError(f'Alphabet has {len(self._alphabet)} symbols but the table has side '
                                   f'{self._data.shape[0]}')
        self._lookup = {s: i for i, s in enumerate(self._alphabet)}
        if len(self._lookup) != len(self._alphabet): raise ScoreMatrixError('Alphabet contains duplicate symbols')
        self.n_warnings = 0

    def __len__(self): return len(self._alphabet)
    def __contains__(self, item): return item in self._lookup
    def __getitem__(self, item): return self._data[item]
    def __array__(self, dtype=None, copy=None): return self._data.astype(dtype, copy=False) if dtype else self._data
    def __repr__(self): return f"ScoreModel({''.join(map(str, self._alphabet))}, shape={self._data.shape})"

    @property
    def alphabet(self) -> tuple: return self._alphabet
    @property
    def size(self) -> int: return len(self._alphabet)
    @property
    def min_score(self) -> int: return int(self._data.min())
    @property
    def max_score(self) -> int: return int(self._data.max())

    @property
    def table(self) -> np.ndarray:
        """Returns a read-only view of the score table."""
        view = self._data.view()
        view.flags.writeable = False
        return view

    def index(self, symbol: Hashable) -> Optional[int]:
        """Returns the table index of a symbol, or None if it is not in the alphabet."""
        return self._lookup.get(symbol)

    def copy(self) -> 'ScoreModel':
        """Returns an independent copy with a fresh warning counter."""
        return ScoreModel(self._alphabet, self._data)

    # Scoring ----------------------------------------------------------------------------------------------------------
    def score(self, a: Hashable, b: Hashable, case_sensitive: bool = True) -> int:
        """
        Scores a pair of symbols.

        Calling with both symbols set to `NULL` (or None) scores nothing and silences
        all further missing-symbol warnings from this model.

        Args:
            a: First symbol.
            b: Second symbol.
            case_sensitive: If False, both symbols are upper-cased before lookup.

        Returns:
            The table score, or 0 if either symbol is not in the alphabet.
        """
        if _is_null(a) and _is_null(b):
            self.silence()
            return 0
        if not case_sensitive: a, b = _upper(a), _upper(b)
        i, j = self._lookup.get(a), self._lookup.get(b)
        if i is None or j is None:
            self._report_missing([s for s, k in ((a, i), (b, j)) if k is None])
            return 0
        return int(self._data[i, j])

    def encode(self, seq: Iterable[Hashable], case_sensitive: bool = True) -> np.ndarray:
        """Maps a sequence of symbols to table indices, with -1 for symbols not in the alphabet."""
        get = self._lookup.get
        if not case_sensitive: seq = [_upper(s) for s in seq]
        return np.fromiter((get(s, -1) for s in seq), dtype=np.int64)

    def pair_scores(self, seq1: Sequence[Hashable], seq2: Sequence[Hashable],
                    case_sensitive: bool = True) -> np.ndarray:
        """
        Builds the lookup of `score(seq1[i], seq2[j])` for every pair of positions.

        Cells involving missing symbols score 0 and are reported in row-major order through
        the warning counter, exactly as if each cell had been scored individually.

        Returns:
            An int64 array of shape (len(seq1), len(seq2)).
        """
        if not case_sensitive: seq1, seq2 = [_upper(s) for s in seq1], [_upper(s) for s in seq2]
        idx1, idx2 = self.encode(seq1), self.encode(seq2)
        pair = self._data[np.maximum(idx1, 0)[:, None], np.maximum(idx2, 0)[None, :]].astype(np.int64)
        missing = (idx1 < 0)[:, None] | (idx2 < 0)[None, :]
        if missing.any():
            pair[missing] = 0
            rows, cols = np.nonzero(missing)
            budget = max(0, self.WARN_LIMIT + 1 - self.n_warnings)
            for i, j in zip(rows[:budget], cols[:budget]):
                self._report_missing([s for s, k in ((seq1[i], idx1[i]), (seq2[j], idx2[j])) if k < 0])
            self.n_warnings += max(0, len(rows) - budget)
        return pair

    def silence(self):
        """Saturates the warning counter so no further missing-symbol warnings are issued."""
        self.n_warnings = max(self.n_warnings, self.WARN_LIMIT + 1)

    def reset_warnings(self): self.n_warnings = 0

    @property
    def numeric(self) -> bool:
        """True if the alphabet holds integer tokens rather than residue characters."""
        return isinstance(self._alphabet[0], (int, np.integer))

    def _report_missing(self, symbols: list):
        noun = 'Token' if self.numeric else 'Residue'
        if self.n_warnings < self.WARN_LIMIT:
            for symbol in symbols: warn(f'{noun} {symbol} not found in matrix', UnknownSymbolWarning, stacklevel=3)
        elif self.n_warnings == self.WARN_LIMIT:
            warn(f'More {noun.lower()}s not found in matrix...', UnknownSymbolWarning, stacklevel=3)
        self.n_warnings += 1

    # Modification -----------------------------------------------------------------------------------------------------
    def zero(self) -> int:
        """
        Shifts every score so that the minimum value in the table is 0.

        Returns:
            The maximum value of the shifted table.
        """
        self._data -= self._data.min()
        return int(self._data.max())

    def reweight(self, a: Hashable, b: Hashable, factor: float):
        """
        Multiplies the score of one substitution by a weight.

        Symbols are upper-cased before lookup. The transposed cell is weighted too, so an
        off-diagonal pair stays symmetric. Weighted scores are truncated towards zero.

        Args:
            a: First symbol.
            b: Second symbol.
            factor: The weight to apply.
        """
        a, b = _upper(a), _upper(b)
        i, j = self._lookup.get(a), self._lookup.get(b)
        if i is None or j is None:
            self._report_missing([s for s, k in ((a, i), (b, j)) if k is None])
            return
        self._data[i, j] = int(self._data[i, j] * factor)
        if i != j: self._data[j, i] = int(self._data[j, i] * factor)

    # Construction -----------------------------------------------------------------------------------------------------
    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> 'ScoreModel':
        """
        Parses a residue score matrix.

        Lines starting with `!` or `#` are comments. The alphabet line is the first line with
        no numeric fields and may come before or after the rows. Every other line is a row;
        non-numeric fields on a row (such as BLAST-style row labels) are skipped.

        Args:
            lines: The lines of the matrix description.

        Returns:
            A new ScoreModel.

        Raises:
            ScoreMatrixError: If there are no numeric rows, the row and column counts differ,
                or the alphabet line is missing or too short.
        """
        alphabet, rows, size = None, [], 0
        for tokens in _records(lines):
            values = [int(m.group()) for m in map(_NUMERIC.match, tokens) if m]
            if not values:
                if alphabet is None: alphabet = [t[0] for t in tokens]
                continue
            if not size: size = len(values)
            if len(values) < size:
                raise ScoreMatrixError(f'Row {len(rows) + 1} has {len(values)} values, expected {size}')
            rows.append(values[:size])
        if not rows: raise ScoreMatrixError('Score matrix contains no numeric rows')
        if len(rows) != size: raise ScoreMatrixError(f'Score matrix has {len(rows)} rows but {size} columns')
        if alphabet is None: raise ScoreMatrixError('Score matrix has no alphabet line')
        if len(alphabet) < size:
            raise ScoreMatrixError(f'Alphabet line has {len(alphabet)} symbols, expected {size}')
        return cls(alphabet[:size], rows)

    @classmethod
    def from_numeric_lines(cls, lines: Iterable[str]) -> 'ScoreModel':
        """
        Parses a score matrix for numeric tokens.

        There is no alphabet line: tokens are numbered from 1 and token 0 is reserved as the gap.
        The size is taken from the field count of the first line; rows are lines whose first
        field is an integer.

        Raises:
            ScoreMatrixError: If there are no numeric rows or the row and column counts differ.
        """
        rows, size = [], 0
        for tokens in _records(lines):
            if not size: size = len(tokens)
            if not _NUMERIC.match(tokens[0]): continue
            if len(tokens) < size or not all(map(_NUMERIC.fullmatch, tokens[:size])):
                raise ScoreMatrixError(f'Row {len(rows) + 1} does not have {size} integer values')
            rows.append([int(t) for t in tokens[:size]])
        if not rows: raise ScoreMatrixError('Score matrix contains no numeric rows')
        if len(rows) != size: raise ScoreMatrixError(f'Score matrix has {len(rows)} rows but {size} columns')
        return cls(range(1, size + 1), rows)

    @classmethod
    def from_file(cls, path: Union[str, Path], numeric: bool = False) -> 'ScoreModel':
        """
        Reads a score matrix file.

        If the path does not exist it is looked up in the data directory configured through
        the `NWALIGN_DATADIR` (or `DATADIR`) environment variable.

        Args:
            path: Matrix file name or path.
            numeric: Parse as a numeric-token matrix.

        Raises:
            FileNotFoundError: If the file cannot be found.
            ScoreMatrixError: If the file is malformed.
        """
        if (resolved := RESOURCES.find_data(path)) is None:
            raise FileNotFoundError(f'Score matrix file "{path}" not found')
        with xopen(resolved) as handle:
            return cls.from_numeric_lines(handle) if numeric else cls.from_lines(handle)

    @classmethod
    def build(cls, alphabet: Iterable[Hashable], match: int = 1, mismatch: int = 0) -> 'ScoreModel':
        """Builds a simple match/mismatch model."""
        alphabet = tuple(alphabet)
        table = np.full((len(alphabet), len(alphabet)), mismatch, dtype=cls._DTYPE)
        np.fill_diagonal(table, match)
        return cls(alphabet, table)

    @classmethod
    def blosum62(cls) -> 'ScoreModel':
        """Returns the BLOSUM62 matrix."""
        return cls('ACDEFGHIKLMNPQRSTVWY', np.reshape([
            4, 0, -2, -1, -2, 0, -2, -1, -1, -1, -1, -2, -1, -1, -1, 1, 0, 0, -3, -2,
            0, 9, -3, -4, -2, -3, -3, -1, -3, -1, -1, -3, -3, -3, -3, -1, -1, -1, -2, -2,
            -2, -3, 6, 2, -3, -1, -1, -3, -1, -4, -3, 1, -1, 0, -2, 0, -1, -3, -4, -3,
            -1, -4, 2, 5, -3, -2, 0, -3, 1, -3, -2, 0, -1, 2, 0, 0, -1, -2, -3, -2,
            -2, -2, -3, -3, 6, -3, -1, 0, -3, 0, 0, -3, -4, -3, -3, -2, -2, -1, 1, 3,
            0, -3, -1, -2, -3, 6, -2, -4, -2, -4, -3, 0, -2, -2, -2, 0, -2, -3, -2, -3,
            -2, -3, -1, 0, -1, -2, 8, -3, -1, -3, -2, 1, -2, 0, 0, -1, -2, -3, -2, 2,
            -1, -1, -3, -3, 0, -4, -3, 4, -3, 2, 1, -3, -3, -3, -3, -2, -1, 3, -3, -1,
            -1, -3, -1, 1, -3, -2, -1, -3, 5, -2, -3, 2, 0, -3, -3, 1, 0, -3, -1, 2,
            -1, -1, -4, -3, 0, -4, -3, 2, -2, 4, 2, -3, -3, -2, -2, -2, -1, 1, -2, -1,
            -1, -1, -3, -2, 0, -3, -2, 1, -3, 2, 5, -2, -2, 0, -1, -1, -1, 1, -1, -1,
            -2, -3, 1, 0, -3, 0, 1, -3, 2, -3, -2, 6, -2, -4, -4, -1, 0, -3, -1, -3,
            -1, -3, -1, -1, -4, -2, -2, -3, 0, -3, -2, -2, 7, -1, -2, -1, -1, -2, -4, -3,
            -1, -3, 0, 2, -3, -2, 0, -3, -3, -2, 0, -4, -1, 5, 1, 0, -1, -2, -2, -1,
            -1, -3, -2, 0, -3, -2, 0, -3, -3, -2, -1, -4, -2, 1, 5, -1, -1, -3, -3, -2,
            1, -1, 0, 0, -2, 0, -1, -2, 1, -2, -1, -1, -1, 0, -1, 4, 1, -2, -3, -2,
            0, -1, -1, -1, -2, -2, -2, -1, 0, -1, -1, 0, -1, -1, -1, 1, 5, 0, -2, -2,
            0, -1, -3, -2, -1, -3, -3, 3, -3, 1, 1, -3, -2, -2, -3, -2, 0, 4, -3, -1,
            -3, -2, -4, -3, 1, -2, -2, -3, -1, -2, -1, -1, -4, -2, -3, -3, -2, -3, 11, 2,
            -2, -2, -3, -2, 3, -3, 2, -1, 2, -1, -1, -3, -3, -1, -2, -2, -2, -1, 2, 7
        ], (20, 20)))


# Functions ------------------------------------------------------------------------------------------------------------
def _records(lines: Iterable[str]):
    """Yields the fields of every non-blank, non-comment line."""
    for line in lines:
        if (line := line.strip()) and not line.startswith(_COMMENTS): yield line.split()


def _is_null(symbol) -> bool: return symbol is None or (isinstance(symbol, str) and symbol == NULL)


def _upper(symbol):
    return symbol.upper() if isinstance(symbol, (str, bytes)) else symbol
