"""Survey-weighted aggregation over age-group and year cells.

The core operation is :func:`weighted_group_reduce`, a grouped weighted
mean/sum.  For the SCF it runs in two passes: statistics are first weighted
within each implicate (``implicate`` as an extra grouping key) and then
averaged without weights across the implicates.  The CPS has no implicate
dimension and is reduced in a single pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Literal, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import CHILD_AGE_GROUPS, CPS_HOUSEHOLD_WEIGHT, CPS_PERSON_WEIGHT, AgeScheme
from .recode import ensure_columns

logger = logging.getLogger(__name__)

IMPLICATE_KEYS: Tuple[str, ...] = ("implicate",)


@dataclass(frozen=True)
class WeightedStat:
    """One output statistic: ``name`` computed from ``source`` weighted by ``weight``."""

    name: str
    source: str
    weight: str
    kind: Literal["mean", "sum"] = "mean"


CPS_STATS: Tuple[WeightedStat, ...] = (
    WeightedStat("ownhh_cps", "ownhh", CPS_HOUSEHOLD_WEIGHT),
    WeightedStat("ownp1", "ownp1", CPS_PERSON_WEIGHT),
    WeightedStat("ownp2", "ownp2", CPS_PERSON_WEIGHT),
    WeightedStat("ownp3", "ownp3", CPS_PERSON_WEIGHT),
    WeightedStat("headship1", "headship1", CPS_PERSON_WEIGHT),
    WeightedStat("headship2", "headship2", CPS_PERSON_WEIGHT),
    WeightedStat("headship3", "headship3", CPS_PERSON_WEIGHT),
)

SCF_STATS: Tuple[WeightedStat, ...] = (
    WeightedStat("ownhh_scf", "ownhh", "weight"),
)

HOUSESHARE_STATS: Tuple[WeightedStat, ...] = (
    WeightedStat("nethouse", "nethouse", "weight", "sum"),
    WeightedStat("networth", "networth", "weight", "sum"),
)


def safe_ratio(numerator: pd.Series, denominator: pd.Series) -> pd.Series:
    """Elementwise quotient; zero or missing denominators give NaN."""
    denom = denominator.astype("float64").replace(0, np.nan)
    return numerator.astype("float64") / denom


def weighted_group_reduce(
    df: pd.DataFrame,
    keys: Sequence[str],
    stats: Sequence[WeightedStat],
    *,
    implicate_keys: Sequence[str] = (),
) -> pd.DataFrame:
    """Collapse ``df`` to one row per ``keys`` combination.

    Parameters
    ----------
    df : pd.DataFrame
        Harmonized records.
    keys : Sequence[str]
        Output grouping columns, e.g. ``["agegroup", "year"]``.
    stats : Sequence[WeightedStat]
        Statistics to compute.  A weighted mean is Σ(v·w)/Σ(w) and a
        weighted sum is Σ(v·w), both restricted to rows where the value and
        the weight are present.  A statistic with no such rows in a cell is
        NaN rather than zero.
    implicate_keys : Sequence[str], optional
        Extra grouping columns for the first pass.  When given, the
        per-implicate statistics are averaged (unweighted) over these keys
        in a second pass.

    Returns
    -------
    pd.DataFrame
        Columns ``keys`` followed by one column per statistic, sorted by
        ``keys``.  Key combinations absent from ``df`` are absent here.
    """
    keys = list(keys)
    if not keys:
        raise ValueError("At least one grouping key is required.")
    names = [stat.name for stat in stats]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate statistic names: {names}")

    group_cols = keys + list(implicate_keys)
    ensure_columns(
        df, group_cols + [s.source for s in stats] + [s.weight for s in stats]
    )

    tmp = df[group_cols].copy()
    # Dictionary to collect aggregation instructions for groupby
    agg_map: Dict[str, str] = {}
    for stat in stats:
        value = pd.to_numeric(df[stat.source], errors="coerce")
        weight = pd.to_numeric(df[stat.weight], errors="coerce")
        # Only weight rows where both value and weight are non-null
        mask = value.notna() & weight.notna()
        tmp[f"{stat.name}_wx"] = value.where(mask, 0) * weight.where(mask, 0)
        tmp[f"{stat.name}_w"] = weight.where(mask, 0)
        tmp[f"{stat.name}_n"] = mask.astype("int64")
        agg_map[f"{stat.name}_wx"] = "sum"
        agg_map[f"{stat.name}_w"] = "sum"
        agg_map[f"{stat.name}_n"] = "sum"

    grouped = tmp.groupby(group_cols, as_index=False).agg(agg_map)
    for stat in stats:
        wx_col, w_col, n_col = (f"{stat.name}_{s}" for s in ("wx", "w", "n"))
        if stat.kind == "mean":
            result = safe_ratio(grouped[wx_col], grouped[w_col])
        elif stat.kind == "sum":
            result = grouped[wx_col].astype("float64")
        else:
            raise ValueError(f"Unknown aggregation kind {stat.kind!r} for '{stat.name}'")
        grouped[stat.name] = result.where(grouped[n_col] > 0)
    grouped = grouped[group_cols + names]

    if implicate_keys:
        grouped = grouped.groupby(keys, as_index=False)[names].mean()

    return grouped.sort_values(keys, ignore_index=True)


def aggregate_cps(
    cps: pd.DataFrame, keys: Sequence[str], stats: Sequence[WeightedStat] = CPS_STATS
) -> pd.DataFrame:
    """Single-pass weighted statistics over harmonized CPS persons."""
    out = weighted_group_reduce(cps, keys, stats)
    logger.info("CPS: aggregated %s cells by %s", len(out), list(keys))
    return out


def aggregate_scf(
    scf: pd.DataFrame, keys: Sequence[str], stats: Sequence[WeightedStat] = SCF_STATS
) -> pd.DataFrame:
    """Weight within each implicate, then average across implicates."""
    out = weighted_group_reduce(scf, keys, stats, implicate_keys=IMPLICATE_KEYS)
    logger.info("SCF: aggregated %s cells by %s", len(out), list(keys))
    return out


def net_housing_share(scf: pd.DataFrame, keys: Sequence[str]) -> pd.DataFrame:
    """Share of net worth held as home equity, as a ratio of weighted sums.

    Sums of ``houses - mrthel`` and ``networth`` are collapsed across
    implicates first; ``houseshare`` is their quotient.  When grouped by an
    age-group column, the child bins (1-4) are dropped.
    """
    out = aggregate_scf(scf, keys, HOUSESHARE_STATS)
    out["houseshare"] = safe_ratio(out["nethouse"], out["networth"])

    age_keys: List[str] = [s.column for s in AgeScheme if s.column in keys]
    for col in age_keys:
        out = out.loc[~out[col].isin(CHILD_AGE_GROUPS)]
    return out.reset_index(drop=True)
