"""Core pipeline logic: harmonize CPS and SCF records and reconcile them.

This module orchestrates the loading, recoding and aggregation of two
survey datasets:

* CPS ASEC person records (IPUMS extracts), one file per sample year.
* SCF summary-extract household files, one per triennial wave, each with
  five implicate rows per household.

The primary entry point is :func:`run_pipeline`, which returns a dictionary
of result tables.  :func:`harmonize_inputs` and :func:`build_tables` are the
two halves of it; :mod:`homeownership.data_manager` caches the output of the
first half on disk.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd

from .aggregate import aggregate_cps, aggregate_scf, net_housing_share
from .config import AgeScheme, PipelineConfig
from .cps import harmonize_cps
from .reconcile import reconcile
from .recode import age_group_label, ensure_columns
from .scf import append_scf_waves, harmonize_scf, validate_implicates

# Module‑level logger
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data loaders
# ---------------------------------------------------------------------------


def read_table(path: Path) -> pd.DataFrame:
    """Read a CSV or Stata file and lower-case its column names.

    Raises ``FileNotFoundError`` for missing files and ``ValueError`` for
    unsupported extensions.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input table not found: {path}")
    suffixes = [s.lower() for s in path.suffixes]
    if suffixes[-1:] == [".dta"]:
        df = pd.read_stata(path, convert_categoricals=False)
    elif ".csv" in suffixes:
        df = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported input format: {path.name}")
    df.columns = [str(col).strip().lower() for col in df.columns]
    logger.info("Loaded %s rows from %s", f"{len(df):,}", path)
    return df


def load_cps_raw(config: PipelineConfig) -> pd.DataFrame:
    """Load raw CPS person records for the configured years.

    With a ``{year}`` placeholder in ``config.cps_pattern`` one file per year
    is read; otherwise the pattern names a single multi-year extract that is
    filtered to the configured years.
    """
    if "{year}" not in config.cps_pattern:
        df = read_table(config.cps_dir / config.cps_pattern)
        ensure_columns(df, ["year"])
        missing = sorted(set(config.years) - set(df["year"].dropna().astype(int)))
        if missing:
            raise ValueError(f"CPS extract {config.cps_pattern} has no records for years {missing}")
        return df.loc[df["year"].isin(config.years)].reset_index(drop=True)

    frames: List[pd.DataFrame] = []
    for year in config.years:
        part = read_table(config.cps_dir / config.cps_pattern.format(year=year))
        if "year" not in part.columns:
            part["year"] = year
        frames.append(part)
    return pd.concat(frames, ignore_index=True, sort=False)


def load_scf_raw(config: PipelineConfig) -> pd.DataFrame:
    """Load and append the SCF summary extract for each configured wave."""
    waves: Dict[int, pd.DataFrame] = {}
    for year in config.years:
        waves[year] = read_table(config.scf_dir / config.scf_pattern.format(year=year))
    return append_scf_waves(waves)


def harmonize_inputs(config: PipelineConfig) -> Dict[str, pd.DataFrame]:
    """Load and recode both surveys; returns ``{"cps": ..., "scf": ...}``."""
    cps = harmonize_cps(load_cps_raw(config))
    scf = harmonize_scf(load_scf_raw(config))
    validate_implicates(scf)
    return {"cps": cps, "scf": scf}


# ---------------------------------------------------------------------------
# Result tables
# ---------------------------------------------------------------------------


def add_age_labels(df: pd.DataFrame, scheme: AgeScheme) -> pd.DataFrame:
    """Insert a readable ``agegroup_label`` column after the age-group key."""
    out = df.copy()
    labels = out[scheme.column].map(lambda bin_id: age_group_label(int(bin_id), scheme))
    out.insert(out.columns.get_loc(scheme.column) + 1, "agegroup_label", labels)
    return out


def build_view(
    cps: pd.DataFrame,
    scf: pd.DataFrame,
    keys: Sequence[str],
    config: PipelineConfig,
) -> Dict[str, pd.DataFrame]:
    """Reconciled ratios and housing wealth share for one set of keys."""
    cps_agg = aggregate_cps(cps, keys, config.cps_stats)
    scf_agg = aggregate_scf(scf, keys, config.scf_stats)
    return {
        "reconciled": reconcile(cps_agg, scf_agg, keys, config.ratios),
        "houseshare": net_housing_share(scf, keys),
    }


def build_tables(
    cps: pd.DataFrame, scf: pd.DataFrame, config: PipelineConfig
) -> Dict[str, pd.DataFrame]:
    """Build every result table from harmonized CPS and SCF records.

    Returns
    -------
    Dict[str, pd.DataFrame]
        ``reconciled_<col>`` and ``houseshare_<col>`` for each configured
        age scheme (``col`` being ``agegroup`` or ``agegroup_alt``), plus
        ``reconciled_year`` and ``houseshare_year`` when
        ``config.include_year_totals`` is set.
    """
    cps = cps.loc[cps["year"].isin(config.years)]
    scf = scf.loc[scf["year"].isin(config.years)]

    tables: Dict[str, pd.DataFrame] = {}
    for scheme in config.age_schemes:
        view = build_view(cps, scf, [scheme.column, "year"], config)
        for name, table in view.items():
            tables[f"{name}_{scheme.column}"] = add_age_labels(table, scheme)

    if config.include_year_totals:
        view = build_view(cps, scf, ["year"], config)
        for name, table in view.items():
            tables[f"{name}_year"] = table

    logger.info("Built %s result tables: %s", len(tables), sorted(tables))
    return tables


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def run_pipeline(config: PipelineConfig) -> Dict[str, pd.DataFrame]:
    """Run the full pipeline without touching the on-disk cache."""
    harmonized = harmonize_inputs(config)
    return build_tables(harmonized["cps"], harmonized["scf"], config)
