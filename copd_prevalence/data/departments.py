"""
Department name standardisation.

Raw extracts, estimate tables and boundary files spell Colombian departments
differently (accents, "D.C." suffixes, the long San Andrés name). Names are
mapped to one canonical spelling through explicit aliases first, then fuzzy
matching against the canonical list.
"""
import unicodedata
from typing import Dict, Iterable, List, Optional

import pandas as pd
from rapidfuzz import fuzz, process


CANONICAL_DEPARTMENTS: List[str] = [
    "Amazonas", "Antioquia", "Arauca", "Atlántico", "Bogota", "Bolívar",
    "Boyacá", "Caldas", "Caquetá", "Casanare", "Cauca", "Cesar", "Chocó",
    "Córdoba", "Cundinamarca", "Guainía", "Guaviare", "Huila", "La Guajira",
    "Magdalena", "Meta", "Nariño", "Norte de Santander", "Putumayo",
    "Quindío", "Risaralda", "San Andrés y Providencia", "Santander", "Sucre",
    "Tolima", "Valle del Cauca", "Vaupés", "Vichada",
]

# Spellings that fuzzy matching gets wrong or scores too low
ALIASES: Dict[str, str] = {
    "bogota, d.c.": "Bogota",
    "bogota d.c.": "Bogota",
    "bogota dc": "Bogota",
    "santafe de bogota": "Bogota",
    "archipielago de san andres": "San Andrés y Providencia",
    "archipielago de san andres, providencia y santa catalina": "San Andrés y Providencia",
    "san andres": "San Andrés y Providencia",
    "valle": "Valle del Cauca",
    "guajira": "La Guajira",
}


def _fold(name: str) -> str:
    """Lower-case, strip accents and collapse whitespace."""
    text = unicodedata.normalize("NFKD", str(name))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return " ".join(text.lower().split())


def standardize_department_name(
    name: str,
    score_threshold: int = 85,
    choices: Optional[Iterable[str]] = None
) -> str:
    """
    Map a department name to its canonical spelling.

    Args:
        name: Raw department name
        score_threshold: Minimum rapidfuzz ratio to accept a fuzzy match
        choices: Canonical names (defaults to CANONICAL_DEPARTMENTS)

    Returns:
        Canonical name, or the stripped input when nothing matches
    """
    if pd.isna(name):
        return name

    stripped = str(name).strip()
    folded = _fold(stripped)

    if folded in ALIASES:
        return ALIASES[folded]

    choices = list(choices) if choices is not None else CANONICAL_DEPARTMENTS
    folded_choices = {_fold(c): c for c in choices}
    if folded in folded_choices:
        return folded_choices[folded]

    match = process.extractOne(folded, list(folded_choices), scorer=fuzz.ratio)
    if match and match[1] >= score_threshold:
        return folded_choices[match[0]]

    return stripped


def standardize_department_column(
    df: pd.DataFrame,
    source_col: str = 'DPNOM',
    target_col: str = 'DPNOM_std',
    score_threshold: int = 85
) -> pd.DataFrame:
    """
    Add a canonical department-name column.

    Args:
        df: Table with a department name column
        source_col: Column holding raw names
        target_col: Column to create
        score_threshold: Minimum fuzzy score (config-driven)

    Returns:
        Copy of df with `target_col`
    """
    df = df.copy()
    mapping = {
        raw: standardize_department_name(raw, score_threshold=score_threshold)
        for raw in df[source_col].dropna().unique()
    }
    df[target_col] = df[source_col].map(mapping)

    unmatched = sorted(
        raw for raw, std in mapping.items()
        if std not in CANONICAL_DEPARTMENTS
    )
    if unmatched:
        print(f"  ⚠ {len(unmatched)} department names not matched: {unmatched}")

    return df
