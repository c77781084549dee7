"""Shared categorical recoding used by both survey harmonizers.

Age groups and relationship allow-lists are defined once in
:mod:`homeownership.config` and applied through the helpers below, so the
CPS and the SCF are guaranteed to bin identically.  Scalar functions
(:func:`assign_age_group`, :func:`relationship_matches`) define the rules;
the ``*_series`` variants apply the same rules column-wise.
"""

from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd

from .config import AGE_BIN_LABELS, AGE_BIN_UPPER, RELATE_ALLOW, AgeScheme, RelateVariant


def ensure_columns(df: pd.DataFrame, required) -> None:
    """Raise an error if the DataFrame lacks any of the required columns."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")


def require_numeric(df: pd.DataFrame, columns: List[str], *, label: str) -> pd.DataFrame:
    """Coerce ``columns`` to numeric, failing on any missing or non-numeric value."""
    out = df.copy()
    for col in columns:
        coerced = pd.to_numeric(out[col], errors="coerce")
        bad = coerced.isna()
        if bad.any():
            sample = out.loc[bad, col].head(5).tolist()
            raise ValueError(
                f"{label}: {int(bad.sum())} missing or non-numeric values in "
                f"column '{col}' (e.g. {sample})"
            )
        out[col] = coerced
    return out


def require_codes(series: pd.Series, allowed, *, label: str) -> None:
    """Raise if ``series`` contains codes outside ``allowed``."""
    unknown = sorted(set(series.unique()) - set(allowed))
    if unknown:
        raise ValueError(f"Unrecognized {label} codes: {unknown}")


# ---------------------------------------------------------------------------
# Age groups
# ---------------------------------------------------------------------------


def assign_age_group(age: int, scheme: AgeScheme = AgeScheme.PRIMARY) -> int:
    """Return the 1-based bin id containing ``age``.

    Ages must be whole numbers between 0 and the top-code (80); anything
    else raises ``ValueError`` since no fallback bin exists.
    """
    upper = AGE_BIN_UPPER[scheme]
    if age != int(age) or age < 0 or age > upper[-1]:
        raise ValueError(f"Age {age!r} outside the {scheme.name.lower()} age partition")
    return next(bin_id for bin_id, bound in enumerate(upper, start=1) if age <= bound)


def age_group_series(ages: pd.Series, scheme: AgeScheme = AgeScheme.PRIMARY) -> pd.Series:
    """Vectorized :func:`assign_age_group`."""
    upper = np.asarray(AGE_BIN_UPPER[scheme])
    values = pd.to_numeric(ages, errors="coerce")
    bad = values.isna() | (values < 0) | (values > upper[-1]) | (values % 1 != 0)
    if bad.any():
        sample = ages[bad].head(5).tolist()
        raise ValueError(
            f"{int(bad.sum())} ages outside the {scheme.name.lower()} age partition "
            f"(e.g. {sample})"
        )
    bins = np.searchsorted(upper, values.to_numpy(), side="left") + 1
    return pd.Series(bins, index=ages.index, dtype="int64", name=scheme.column)


def age_group_label(bin_id: int, scheme: AgeScheme = AgeScheme.PRIMARY) -> str:
    return AGE_BIN_LABELS[scheme][bin_id - 1]


def add_age_groups(df: pd.DataFrame, age_col: str) -> pd.DataFrame:
    """Append one column per age scheme computed from ``age_col``."""
    out = df.copy()
    for scheme in AgeScheme:
        out[scheme.column] = age_group_series(out[age_col], scheme)
    return out


# ---------------------------------------------------------------------------
# Relationship allow-lists
# ---------------------------------------------------------------------------


def relationship_matches(code: int, variant: RelateVariant) -> bool:
    return int(code) in RELATE_ALLOW[variant]


def relationship_series(codes: pd.Series, variant: RelateVariant) -> pd.Series:
    """Boolean mask of ``codes`` falling in the variant's allow-list."""
    return codes.isin(RELATE_ALLOW[variant])
