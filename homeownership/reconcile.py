"""
Cross-survey reconciliation: join CPS and SCF aggregates cell by cell and
compute homeownership ratios between them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import pandas as pd

from .aggregate import safe_ratio
from .recode import ensure_columns

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatioSpec:
    name: str
    numerator: str
    denominator: str


RATIOS: Tuple[RatioSpec, ...] = (
    # Survey measurement gap: SCF households vs CPS households
    RatioSpec("ratio_scf_cps", "ownhh_scf", "ownhh_cps"),
    # Definition gap within the CPS: persons vs households
    RatioSpec("ratio_p1_hh", "ownp1", "ownhh_cps"),
    # CPS person measures against the SCF household rate
    RatioSpec("ratio_p1_scf", "ownp1", "ownhh_scf"),
    RatioSpec("ratio_p2_scf", "ownp2", "ownhh_scf"),
    RatioSpec("ratio_p3_scf", "ownp3", "ownhh_scf"),
)


def check_unique_keys(df: pd.DataFrame, keys: Sequence[str], *, label: str) -> None:
    """Raise ``ValueError`` if ``keys`` do not identify rows of ``df`` uniquely."""
    ensure_columns(df, keys)
    dupes = df.duplicated(subset=list(keys), keep=False)
    if dupes.any():
        sample = df.loc[dupes, list(keys)].drop_duplicates().head(5).to_dict("records")
        raise ValueError(f"Duplicate {label} keys on {list(keys)}: {sample}")


def add_ratios(df: pd.DataFrame, ratios: Sequence[RatioSpec] = RATIOS) -> pd.DataFrame:
    out = df.copy()
    for ratio in ratios:
        ensure_columns(out, [ratio.numerator, ratio.denominator])
        out[ratio.name] = safe_ratio(out[ratio.numerator], out[ratio.denominator])
    return out


def reconcile(
    cps: pd.DataFrame,
    scf: pd.DataFrame,
    keys: Sequence[str],
    ratios: Sequence[RatioSpec] = RATIOS,
) -> pd.DataFrame:
    """Outer-join aggregated CPS and SCF tables on ``keys`` and add ratios.

    Parameters
    ----------
    cps, scf : pd.DataFrame
        Aggregated tables with one row per ``keys`` combination.
    keys : Sequence[str]
        Join columns shared by both tables, e.g. ``["agegroup", "year"]``.
    ratios : Sequence[RatioSpec], optional
        Ratios to compute on the joined rows.

    Returns
    -------
    pd.DataFrame
        One row per key present on either side.  Statistics from a missing
        side are NaN, and so is any ratio depending on them.

    Raises
    ------
    ValueError
        On duplicate keys in either table or overlapping statistic columns.
    """
    keys = list(keys)
    check_unique_keys(cps, keys, label="CPS")
    check_unique_keys(scf, keys, label="SCF")

    overlap = (set(cps.columns) & set(scf.columns)) - set(keys)
    if overlap:
        raise ValueError(f"CPS and SCF aggregates share non-key columns: {sorted(overlap)}")

    merged = cps.merge(scf, on=keys, how="outer", validate="one_to_one", indicator=True)
    counts = merged["_merge"].value_counts()
    logger.info(
        "Reconciled %s cells on %s (both=%s, cps_only=%s, scf_only=%s)",
        len(merged),
        keys,
        counts.get("both", 0),
        counts.get("left_only", 0),
        counts.get("right_only", 0),
    )
    merged = merged.drop(columns=["_merge"])
    merged = add_ratios(merged, ratios)
    return merged.sort_values(keys, ignore_index=True)
