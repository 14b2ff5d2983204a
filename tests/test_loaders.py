"""
Tests for matrix and observation file loading.

These tests verify:
1. Headerless matrix CSV reading, padding of short rows
2. Matrix save/load
3. Observation CSV import with either column naming
4. Missing files and columns
"""

import numpy as np
import pytest

from calibration.data_loading import load_matrix, save_matrix, load_observations_csv


class TestMatrixFiles:
    """Test matrix CSV files."""

    def test_load(self, tmp_path):
        path = tmp_path / "matrix.csv"
        path.write_text("0,1.5,2\n3,0,4\n", encoding="utf-8")
        matrix = load_matrix(str(path))
        assert matrix.shape == (2, 3)
        assert matrix[0, 1] == 1.5
        assert matrix.dtype == np.float64

    def test_empty_cells_read_as_zero(self, tmp_path):
        path = tmp_path / "matrix.csv"
        path.write_text("1,,3\n4,5,6\n", encoding="utf-8")
        matrix = load_matrix(str(path))
        assert matrix[0, 1] == 0

    def test_semicolon_delimiter(self, tmp_path):
        path = tmp_path / "matrix.csv"
        path.write_text("1;2\n3;4\n", encoding="utf-8")
        assert load_matrix(str(path), delimiter=";").tolist() == [[1, 2], [3, 4]]

    def test_save_and_load(self, tmp_path):
        matrix = np.array([[0.0, 12.5], [7.25, 0.0]])
        path = tmp_path / "out" / "matrix.csv"
        save_matrix(matrix, str(path))
        assert np.array_equal(load_matrix(str(path)), matrix)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_matrix(str(tmp_path / "missing.csv"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "matrix.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ValueError):
            load_matrix(str(path))


class TestObservationImport:
    """Test observation CSV import."""

    def test_snake_case_columns(self, tmp_path):
        path = tmp_path / "obs.csv"
        path.write_text(
            "child_id,f,ff,fm,m,mf,mm,s3,s2,noble,correct_symbol\n"
            "0,1,2,3,4,5,6,1,2,,○\n"
            "1,2,3,4,5,6,0,0,0,30,◎\n",
            encoding="utf-8"
        )
        observations = load_observations_csv(str(path))

        assert len(observations) == 2
        assert observations[0].identities == (0, 1, 2, 3, 4, 5, 6)
        assert observations[0].s3 == 1 and observations[0].s2 == 2
        assert observations[0].noble is None
        assert observations[1].noble == 30.0
        assert observations[1].correct_symbol == "◎"

    def test_camel_case_columns(self, tmp_path):
        path = tmp_path / "obs.csv"
        path.write_text(
            "childId,f,ff,fm,m,mf,mm,s3,s2,correctSymbol\n"
            "0,1,2,3,4,5,6,0,0,👑\n",
            encoding="utf-8"
        )
        observations = load_observations_csv(str(path))
        assert observations[0].child_id == 0
        assert observations[0].correct_symbol == "👑"

    def test_empty_identity_is_unknown(self, tmp_path):
        path = tmp_path / "obs.csv"
        path.write_text(
            "child_id,f,ff,fm,m,mf,mm,s3,s2,correct_symbol\n"
            "0,,2,3,4,5,6,0,0,×\n"
            "1,2,3,4,5,6,0,0,0,△\n",
            encoding="utf-8"
        )
        observations = load_observations_csv(str(path))
        assert observations[0].f is None
        assert not observations[0].is_complete()
        assert observations[1].f == 2
        assert isinstance(observations[1].f, int)

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "obs.csv"
        path.write_text("child_id,f\n0,1\n", encoding="utf-8")
        with pytest.raises(ValueError, match="missing columns"):
            load_observations_csv(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_observations_csv(str(tmp_path / "missing.csv"))
