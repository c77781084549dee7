"""
CPS harmonizer: adult household residents with standardized age groups,
homeownership and headship indicators.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from .config import (
    ADULT_AGE,
    AGE_TOPCODE,
    CPS_HOUSEHOLD_WEIGHT,
    CPS_PERSON_WEIGHT,
    CPS_REQUIRED,
    GQ_HOUSEHOLD,
    OWNERSHP_CODES,
    OWNERSHP_OWNED,
    OWNERSHP_RENTED,
    RELATE_CODES,
    RELATE_HEAD,
    RelateVariant,
)
from .recode import (
    add_age_groups,
    ensure_columns,
    relationship_series,
    require_codes,
    require_numeric,
)

logger = logging.getLogger(__name__)

CODE_COLUMNS = ["year", "age", "relate", "ownershp", "gq"]


def household_ownership(relate: pd.Series, ownershp: pd.Series) -> pd.Series:
    """Reference-person tenure: 1 owned, 0 rented, NaN otherwise."""
    owned = ownershp == OWNERSHP_OWNED
    rented = ownershp.isin(OWNERSHP_RENTED)
    values = np.where(owned, 1.0, np.where(rented, 0.0, np.nan))
    values = np.where(relate == RELATE_HEAD, values, np.nan)
    return pd.Series(values, index=relate.index, name="ownhh")


def harmonize_cps(raw: pd.DataFrame) -> pd.DataFrame:
    """Recode raw CPS person records.

    Parameters
    ----------
    raw : pd.DataFrame
        Person-level records with the columns listed in
        ``config.CPS_REQUIRED`` (lower-case IPUMS names).

    Returns
    -------
    pd.DataFrame
        One row per retained person (age 18+, household residents) with
        ``age`` top-coded at 80 and the derived columns ``agegroup``,
        ``agegroup_alt``, ``ownhh``, ``ownp1``–``ownp3`` and
        ``headship1``–``headship3`` appended.

    Raises
    ------
    KeyError
        If a required column is missing.
    ValueError
        On missing/non-numeric codes or RELATE/OWNERSHP codes outside the
        known code lists.
    """
    ensure_columns(raw, CPS_REQUIRED)
    df = require_numeric(raw, CODE_COLUMNS, label="CPS")
    for col in CODE_COLUMNS:
        df[col] = df[col].astype("int64")
    for col in (CPS_PERSON_WEIGHT, CPS_HOUSEHOLD_WEIGHT):
        df[col] = pd.to_numeric(df[col], errors="coerce")

    n_raw = len(df)
    df = df.loc[(df["age"] >= ADULT_AGE) & (df["gq"] == GQ_HOUSEHOLD)].copy()
    logger.info(
        "CPS: kept %s of %s records (age >= %s, household residents)",
        f"{len(df):,}",
        f"{n_raw:,}",
        ADULT_AGE,
    )

    require_codes(df["relate"], RELATE_CODES, label="CPS RELATE")
    require_codes(df["ownershp"], OWNERSHP_CODES, label="CPS OWNERSHP")

    df["age"] = df["age"].clip(upper=AGE_TOPCODE)
    df = add_age_groups(df, "age")

    df["ownhh"] = household_ownership(df["relate"], df["ownershp"])
    owned = df["ownershp"] == OWNERSHP_OWNED
    for variant in RelateVariant:
        matches = relationship_series(df["relate"], variant)
        df[f"ownp{variant.value}"] = (matches & owned).astype("int64")
        df[f"headship{variant.value}"] = matches.astype("int64")

    return df.reset_index(drop=True)
