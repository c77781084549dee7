"""SCF harmonizer for the summary-extract household files.

Each wave holds five rows per sampled household, one per implicate.  The
household-implicate identifier ``y1`` carries the implicate number in its
last digit.  The distributed weight ``wgt`` is pre-divided by the number of
implicates; :func:`harmonize_scf` multiplies it back so that statistics can
be weighted within an implicate and then averaged across implicates (see
:func:`homeownership.aggregate.aggregate_scf`).
"""

from __future__ import annotations

import logging
from typing import Mapping

import pandas as pd

from .config import AGE_TOPCODE, SCF_IMPLICATES, SCF_LEGACY_WEIGHT, SCF_REQUIRED, SCF_WEIGHT
from .recode import add_age_groups, ensure_columns, require_codes, require_numeric

logger = logging.getLogger(__name__)

NUMERIC_COLUMNS = ["year", "y1", "age", "houses", "mrthel", "networth", "hhouses"]


def normalize_wave(df: pd.DataFrame, year: int) -> pd.DataFrame:
    """Rename the legacy weight column used by early waves."""
    legacy = SCF_LEGACY_WEIGHT.get(year)
    if legacy is not None and legacy in df.columns and SCF_WEIGHT not in df.columns:
        logger.info("SCF %s: renaming legacy weight column '%s' to '%s'", year, legacy, SCF_WEIGHT)
        return df.rename(columns={legacy: SCF_WEIGHT})
    return df


def append_scf_waves(waves: Mapping[int, pd.DataFrame]) -> pd.DataFrame:
    """Stack the yearly summary extracts into one table tagged with ``year``."""
    if not waves:
        raise ValueError("No SCF waves to append.")
    frames = []
    for year, wave in sorted(waves.items()):
        part = normalize_wave(wave, year).copy()
        part["year"] = int(year)
        frames.append(part)
    return pd.concat(frames, ignore_index=True, sort=False)


def split_household_id(y1: pd.Series) -> pd.DataFrame:
    """Split ``y1`` into the household number and the implicate (last digit)."""
    ids = y1.astype("int64")
    return pd.DataFrame({"hh": ids // 10, "implicate": ids % 10}, index=y1.index)


def harmonize_scf(raw: pd.DataFrame) -> pd.DataFrame:
    """Recode appended SCF household-implicate records.

    Adds ``hh``, ``implicate``, ``agehh`` (top-coded reference-person age),
    ``agegroup``, ``agegroup_alt``, ``ownhh``, ``nethouse`` and the
    implicate-corrected ``weight``.  Raises ``KeyError`` on missing columns
    and ``ValueError`` on invalid implicates or ownership codes.
    """
    ensure_columns(raw, SCF_REQUIRED)
    df = require_numeric(raw, NUMERIC_COLUMNS, label="SCF")
    df["year"] = df["year"].astype("int64")
    df[SCF_WEIGHT] = pd.to_numeric(df[SCF_WEIGHT], errors="coerce")

    df = df.join(split_household_id(df["y1"]))
    require_codes(df["implicate"], range(1, SCF_IMPLICATES + 1), label="SCF implicate")

    df = df.rename(columns={"age": "agehh"})
    df["agehh"] = df["agehh"].clip(upper=AGE_TOPCODE)
    df = add_age_groups(df, "agehh")

    require_codes(df["hhouses"], (0, 1), label="SCF HHOUSES")
    df["ownhh"] = df["hhouses"].astype("int64")

    df["weight"] = df[SCF_WEIGHT] * SCF_IMPLICATES
    df["nethouse"] = df["houses"] - df["mrthel"]

    logger.info(
        "SCF: harmonized %s household-implicate records across %s waves",
        f"{len(df):,}",
        df["year"].nunique(),
    )
    return df.reset_index(drop=True)


def validate_implicates(df: pd.DataFrame) -> None:
    """Raise unless every (year, hh) has implicates 1..5 exactly once."""
    ensure_columns(df, ["year", "hh", "implicate"])
    expected = tuple(range(1, SCF_IMPLICATES + 1))
    observed = df.groupby(["year", "hh"])["implicate"].agg(lambda s: tuple(sorted(s)))
    bad = observed[observed.map(lambda t: t != expected)]
    if not bad.empty:
        sample = bad.head(5).to_dict()
        raise ValueError(
            f"{len(bad)} SCF households without exactly {SCF_IMPLICATES} implicates "
            f"(e.g. {sample})"
        )
