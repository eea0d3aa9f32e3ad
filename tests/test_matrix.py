import gzip
import warnings

import numpy as np
import pytest
from nwalign.core.matrix import ScoreModel, ScoreMatrixError, UnknownSymbolWarning, NULL

MDM = """! A small mutation data matrix
# with two kinds of comment
   A   C   G
   2  -1   0
  -1   3  -2
   0  -2   4
"""

BLAST = """#  Matrix made by matblas
   A  C  G  *
A  2 -1  0 -4
C -1  3 -2 -4
G  0 -2  4 -4
* -4 -4 -4  1
"""

NUMERIC = """! three token classes
1 0 -1
0 2 0
-1 0 3
"""


def _messages(record):
    return [str(w.message) for w in record if issubclass(w.category, UnknownSymbolWarning)]


class TestScoreModelInit:
    def test_valid_init(self):
        model = ScoreModel('ACG', [[2, -1, 0], [-1, 3, -2], [0, -2, 4]])
        assert len(model) == 3
        assert model.size == 3
        assert 'A' in model
        assert 'T' not in model
        assert model.index('G') == 2
        assert model.index('T') is None
        assert model.min_score == -2
        assert model.max_score == 4

    def test_init_not_square(self):
        with pytest.raises(ScoreMatrixError, match="square"):
            ScoreModel('AC', [[1, 0, 0], [0, 1, 0]])

    def test_init_alphabet_mismatch(self):
        with pytest.raises(ScoreMatrixError, match="Alphabet has"):
            ScoreModel('ACG', np.eye(2))

    def test_init_duplicates(self):
        with pytest.raises(ScoreMatrixError, match="duplicate"):
            ScoreModel('AA', np.eye(2))

    def test_init_empty(self):
        with pytest.raises(ScoreMatrixError, match="empty"):
            ScoreModel('', np.zeros((0, 0)))

    def test_table_is_read_only(self):
        model = ScoreModel.build('AC')
        with pytest.raises(ValueError):
            model.table[0, 0] = 5

    def test_copy_is_independent(self):
        model = ScoreModel.build('AC')
        other = model.copy()
        other.reweight('A', 'A', 3)
        assert model.score('A', 'A') == 1
        assert other.score('A', 'A') == 3


class TestScoring:
    def test_lookup(self):
        model = ScoreModel.from_lines(MDM.splitlines())
        assert model.score('A', 'A') == 2
        assert model.score('C', 'G') == -2
        assert model.score('G', 'A') == 0

    def test_case_folding(self):
        model = ScoreModel.from_lines(MDM.splitlines())
        with warnings.catch_warnings():
            warnings.simplefilter('error', UnknownSymbolWarning)
            assert model.score('c', 'c', case_sensitive=False) == 3
        with pytest.warns(UnknownSymbolWarning, match="Residue c not found"):
            assert model.score('c', 'c') == 0

    def test_blosum62(self):
        model = ScoreModel.blosum62()
        assert model.size == 20
        assert model.score('W', 'W') == 11
        assert model.score('A', 'W') == model.score('W', 'A') == -3
        assert model.min_score == -4
        np.testing.assert_array_equal(model.table, model.table.T)

    def test_pair_scores(self):
        model = ScoreModel.from_lines(MDM.splitlines())
        np.testing.assert_array_equal(model.pair_scores('AG', 'GCA'), [[0, -1, 2], [4, -2, 0]])

    def test_pair_scores_numeric(self):
        model = ScoreModel.from_numeric_lines(NUMERIC.splitlines())
        pair = model.pair_scores(np.array([3, 1]), np.array([1, 3]))
        assert pair.dtype == np.int64
        np.testing.assert_array_equal(pair, [[-1, 3], [1, -1]])


class TestWarnings:
    def test_bounded_warnings(self):
        model = ScoreModel.build('AC')
        with warnings.catch_warnings(record=True) as record:
            warnings.simplefilter('always')
            for _ in range(15):
                assert model.score('A', 'Z') == 0
        messages = _messages(record)
        assert messages[:10] == ['Residue Z not found in matrix'] * 10
        assert messages[10:] == ['More residues not found in matrix...']
        assert model.n_warnings == 15

    def test_one_warning_per_missing_symbol(self):
        model = ScoreModel.build('AC')
        with warnings.catch_warnings(record=True) as record:
            warnings.simplefilter('always')
            model.score('X', 'Y')
        assert _messages(record) == ['Residue X not found in matrix', 'Residue Y not found in matrix']
        assert model.n_warnings == 1

    def test_sentinel_silences(self):
        model = ScoreModel.build('AC')
        assert model.score(NULL, NULL) == 0
        assert model.score(None, None) == 0
        with warnings.catch_warnings(record=True) as record:
            warnings.simplefilter('always')
            assert model.score('A', 'Z') == 0
        assert _messages(record) == []

    def test_reset_warnings(self):
        model = ScoreModel.build('AC')
        model.silence()
        model.reset_warnings()
        with pytest.warns(UnknownSymbolWarning, match="Residue Z"):
            model.score('Z', 'A')

    def test_pair_scores_follow_counter(self):
        model = ScoreModel.build('A')
        with warnings.catch_warnings(record=True) as record:
            warnings.simplefilter('always')
            pair = model.pair_scores('ZZZZ', 'AAAA')
        assert not pair.any()
        messages = _messages(record)
        assert len(messages) == 11
        assert messages[-1] == 'More residues not found in matrix...'
        assert model.n_warnings == 16

    def test_numeric_models_report_tokens(self):
        model = ScoreModel.from_numeric_lines(NUMERIC.splitlines())
        assert model.numeric
        assert not ScoreModel.build('AC').numeric
        with warnings.catch_warnings(record=True) as record:
            warnings.simplefilter('always')
            model.pair_scores(np.array([7] * 4), np.array([1, 2, 3]))
        messages = _messages(record)
        assert messages[:10] == ['Token 7 not found in matrix'] * 10
        assert messages[10:] == ['More tokens not found in matrix...']

    def test_counters_are_per_model(self):
        first, second = ScoreModel.build('A'), ScoreModel.build('A')
        first.silence()
        with pytest.warns(UnknownSymbolWarning):
            second.score('A', 'Z')


class TestModification:
    def test_zero(self):
        model = ScoreModel.blosum62()
        before = np.array(model.table, dtype=np.int64)
        assert model.zero() == 15
        assert model.min_score == 0
        np.testing.assert_array_equal(np.asarray(model.table, dtype=np.int64) - before, 4)

    def test_reweight_symmetric(self):
        model = ScoreModel.blosum62()
        model.reweight('a', 'w', 2.0)
        assert model.score('A', 'W') == -6
        assert model.score('W', 'A') == -6

    def test_reweight_diagonal(self):
        model = ScoreModel.blosum62()
        model.reweight('C', 'C', 2)
        assert model.score('C', 'C') == 18

    def test_reweight_truncates(self):
        model = ScoreModel.from_lines(MDM.splitlines())
        model.reweight('C', 'C', 0.5)
        model.reweight('A', 'C', 0.5)
        assert model.score('C', 'C') == 1
        assert model.score('A', 'C') == model.score('C', 'A') == 0

    def test_reweight_missing_symbol(self):
        model = ScoreModel.build('AC')
        with pytest.warns(UnknownSymbolWarning, match="Residue Z"):
            model.reweight('A', 'Z', 2)
        np.testing.assert_array_equal(model.table, np.eye(2))


class TestParsing:
    def test_alphabet_before_rows(self):
        model = ScoreModel.from_lines(MDM.splitlines())
        assert model.alphabet == ('A', 'C', 'G')
        np.testing.assert_array_equal(model.table, [[2, -1, 0], [-1, 3, -2], [0, -2, 4]])

    def test_alphabet_after_rows(self):
        lines = MDM.splitlines()
        model = ScoreModel.from_lines(lines[:2] + lines[3:] + [lines[2]])
        assert model.alphabet == ('A', 'C', 'G')
        assert model.score('C', 'C') == 3

    def test_blast_labels(self):
        model = ScoreModel.from_lines(BLAST.splitlines())
        assert model.alphabet == ('A', 'C', 'G', '*')
        assert model.score('*', '*') == 1
        assert model.score('G', '*') == -4

    def test_first_alphabet_line_wins(self):
        model = ScoreModel.from_lines(MDM.splitlines() + ['X Y Z'])
        assert model.alphabet == ('A', 'C', 'G')

    def test_no_rows(self):
        with pytest.raises(ScoreMatrixError, match="no numeric rows"):
            ScoreModel.from_lines(['! nothing here', 'A C G'])

    def test_too_few_rows(self):
        with pytest.raises(ScoreMatrixError, match="2 rows but 3 columns"):
            ScoreModel.from_lines(MDM.splitlines()[:-1])

    def test_short_row(self):
        with pytest.raises(ScoreMatrixError, match="Row 2"):
            ScoreModel.from_lines(['A C G', '1 0 0', '0 1', '0 0 1'])

    def test_no_alphabet(self):
        with pytest.raises(ScoreMatrixError, match="no alphabet"):
            ScoreModel.from_lines(['1 0', '0 1'])

    def test_short_alphabet(self):
        with pytest.raises(ScoreMatrixError, match="Alphabet line"):
            ScoreModel.from_lines(['A C', '1 0 0', '0 1 0', '0 0 1'])

    def test_numeric(self):
        model = ScoreModel.from_numeric_lines(NUMERIC.splitlines())
        assert model.alphabet == (1, 2, 3)
        assert model.score(3, 3) == 3
        assert model.score(1, 3) == -1
        assert 0 not in model
        with pytest.warns(UnknownSymbolWarning, match="Token 0 not found"):
            assert model.score(0, 1) == 0

    def test_numeric_bad_row(self):
        with pytest.raises(ScoreMatrixError, match="Row 2"):
            ScoreModel.from_numeric_lines(['1 0', '0 x'])

    def test_numeric_too_many_rows(self):
        with pytest.raises(ScoreMatrixError, match="3 rows but 2 columns"):
            ScoreModel.from_numeric_lines(['1 0', '0 1', '1 1'])


class TestFromFile:
    def test_path(self, tmp_path):
        path = tmp_path / 'small.mat'
        path.write_text(MDM)
        assert ScoreModel.from_file(path).score('G', 'G') == 4

    def test_gzip(self, tmp_path):
        path = tmp_path / 'small.mat.gz'
        with gzip.open(path, 'wt') as handle:
            handle.write(BLAST)
        assert ScoreModel.from_file(path).score('*', '*') == 1

    def test_numeric_file(self, tmp_path):
        path = tmp_path / 'tokens.mat'
        path.write_text(NUMERIC)
        assert ScoreModel.from_file(path, numeric=True).score(2, 2) == 2

    def test_data_dir(self, tmp_path, monkeypatch):
        (tmp_path / 'small.mat').write_text(MDM)
        monkeypatch.chdir(tmp_path.parent)
        monkeypatch.delenv('NWALIGN_DATADIR', raising=False)
        monkeypatch.setenv('DATADIR', str(tmp_path))
        assert ScoreModel.from_file('small.mat').alphabet == ('A', 'C', 'G')

    def test_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv('NWALIGN_DATADIR', raising=False)
        monkeypatch.delenv('DATADIR', raising=False)
        with pytest.raises(FileNotFoundError, match="nothing.mat"):
            ScoreModel.from_file('nothing.mat')
