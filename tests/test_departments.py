import pandas as pd
import pytest

from copd_prevalence.data.departments import (
    CANONICAL_DEPARTMENTS,
    standardize_department_column,
    standardize_department_name,
)


@pytest.mark.parametrize("raw, expected", [
    ("Bogotá, D.C.", "Bogota"),
    ("Bogotá D.C.", "Bogota"),
    ("Bogota", "Bogota"),
    ("Quindio", "Quindío"),
    ("Archipiélago de San Andrés", "San Andrés y Providencia"),
    ("Norte De Santander", "Norte de Santander"),
    ("Guainia", "Guainía"),
    ("  Vaupes ", "Vaupés"),
    ("Nariño", "Nariño"),
])
def test_known_spellings(raw, expected):
    assert standardize_department_name(raw) == expected


def test_fuzzy_typo():
    assert standardize_department_name("Cundinamrca") == "Cundinamarca"


def test_unmatched_name_is_returned_stripped():
    assert standardize_department_name("  Atlantis ") == "Atlantis"


def test_missing_name_passes_through():
    assert pd.isna(standardize_department_name(None))


def test_column_standardisation(capsys):
    df = pd.DataFrame({"DPNOM": ["Bogotá, D.C.", "Quindio", "Atlantis"]})
    out = standardize_department_column(df)
    assert list(out["DPNOM_std"]) == ["Bogota", "Quindío", "Atlantis"]
    assert "DPNOM_std" not in df.columns
    assert "Atlantis" in capsys.readouterr().out


def test_canonical_list_is_complete():
    assert len(CANONICAL_DEPARTMENTS) == 33
    assert len(set(CANONICAL_DEPARTMENTS)) == 33
