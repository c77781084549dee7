"""
Configuration constants and run configuration for the CPS/SCF pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, FrozenSet, Optional, Tuple

if TYPE_CHECKING:
    from .aggregate import WeightedStat
    from .reconcile import RatioSpec

# ======================================================
#  SURVEY WAVES
# ======================================================
SURVEY_YEARS: Tuple[int, ...] = (
    1989, 1992, 1995, 1998, 2001, 2004, 2007, 2010, 2013, 2016, 2019, 2022,
)

AGE_TOPCODE: int = 80
ADULT_AGE: int = 18

# ======================================================
#  AGE-GROUP PARTITIONS
# ======================================================


class AgeScheme(Enum):
    """Age partition variants; the value is the harmonized column name."""

    PRIMARY = "agegroup"
    ALTERNATIVE = "agegroup_alt"

    @property
    def column(self) -> str:
        return self.value


# Inclusive upper bound of each bin, bin ids start at 1.
AGE_BIN_UPPER: Dict[AgeScheme, Tuple[int, ...]] = {
    AgeScheme.PRIMARY: (3, 6, 12, 17, 24, 34, 44, 54, 64, AGE_TOPCODE),
    AgeScheme.ALTERNATIVE: (3, 6, 12, 17, 24, 39, 54, 64, AGE_TOPCODE),
}

AGE_BIN_LABELS: Dict[AgeScheme, Tuple[str, ...]] = {
    AgeScheme.PRIMARY: (
        "0-3", "4-6", "7-12", "13-17", "18-24",
        "25-34", "35-44", "45-54", "55-64", "65+",
    ),
    AgeScheme.ALTERNATIVE: (
        "0-3", "4-6", "7-12", "13-17", "18-24",
        "25-39", "40-54", "55-64", "65+",
    ),
}

# Bins 1-4 cover children; dropped from the housing wealth share output.
CHILD_AGE_GROUPS: FrozenSet[int] = frozenset({1, 2, 3, 4})

# ======================================================
#  CPS (IPUMS) CODES AND COLUMNS
# ======================================================
CPS_PERSON_WEIGHT: str = "asecwt"
CPS_HOUSEHOLD_WEIGHT: str = "asecwth"
CPS_REQUIRED: Tuple[str, ...] = (
    "year", "age", "relate", "ownershp", "gq", CPS_PERSON_WEIGHT, CPS_HOUSEHOLD_WEIGHT,
)

GQ_HOUSEHOLD: int = 1

OWNERSHP_OWNED: int = 10
OWNERSHP_RENTED: FrozenSet[int] = frozenset({21, 22})
OWNERSHP_CODES: FrozenSet[int] = frozenset({0, OWNERSHP_OWNED, *OWNERSHP_RENTED})

RELATE_HEAD: int = 101
RELATE_SPOUSES: FrozenSet[int] = frozenset({201, 202, 203})
RELATE_PARTNERS: FrozenSet[int] = frozenset({1114, 1116, 1117})
# Partner/roommate, only coded in the 1989 and 1992 samples.
RELATE_LEGACY_PARTNER: int = 1113
RELATE_CODES: FrozenSet[int] = frozenset(
    {
        RELATE_HEAD, *RELATE_SPOUSES, 301, 303, 501, 701, 901, 1001,
        RELATE_LEGACY_PARTNER, *RELATE_PARTNERS, 1115, 1241, 1242, 1260,
        9100, 9200, 9900, 9999,
    }
)


class RelateVariant(Enum):
    """Relationship allow-lists used by person ownership and headship."""

    PARTNERS = 1
    LEGACY_PARTNERS = 2
    SPOUSE_ONLY = 3


RELATE_ALLOW: Dict[RelateVariant, FrozenSet[int]] = {
    RelateVariant.PARTNERS: frozenset({RELATE_HEAD, *RELATE_SPOUSES, *RELATE_PARTNERS}),
    RelateVariant.LEGACY_PARTNERS: frozenset(
        {RELATE_HEAD, *RELATE_SPOUSES, *RELATE_PARTNERS, RELATE_LEGACY_PARTNER}
    ),
    RelateVariant.SPOUSE_ONLY: frozenset({RELATE_HEAD, *RELATE_SPOUSES}),
}

# ======================================================
#  SCF SUMMARY EXTRACT
# ======================================================
SCF_IMPLICATES: int = 5
SCF_WEIGHT: str = "wgt"
SCF_LEGACY_WEIGHT: Dict[int, str] = {1989: "x42001"}
SCF_REQUIRED: Tuple[str, ...] = (
    "year", "y1", "age", "houses", "mrthel", "networth", "hhouses", SCF_WEIGHT,
)

# ======================================================
#  INPUT FILES
# ======================================================
DEFAULT_CPS_PATTERN: str = "cps_{year}.csv"
DEFAULT_SCF_PATTERN: str = "rscfp{year}.dta"


def _default_cps_stats() -> Tuple[WeightedStat, ...]:
    from .aggregate import CPS_STATS

    return CPS_STATS


def _default_scf_stats() -> Tuple[WeightedStat, ...]:
    from .aggregate import SCF_STATS

    return SCF_STATS


def _default_ratios() -> Tuple[RatioSpec, ...]:
    from .reconcile import RATIOS

    return RATIOS


@dataclass(frozen=True)
class PipelineConfig:
    """Everything a single analytic run depends on.

    Passed explicitly into the loaders, the cache and the driver.  The
    instance is hashable so the harmonized tables can be memoized per
    configuration.
    """

    cps_dir: Path = Path("data/raw/cps")
    scf_dir: Path = Path("data/raw/scf")
    output_dir: Path = Path("data/output")
    cache_dir: Optional[Path] = None
    years: Tuple[int, ...] = SURVEY_YEARS
    cps_pattern: str = DEFAULT_CPS_PATTERN
    scf_pattern: str = DEFAULT_SCF_PATTERN
    age_schemes: Tuple[AgeScheme, ...] = (AgeScheme.PRIMARY, AgeScheme.ALTERNATIVE)
    include_year_totals: bool = True
    cps_stats: Tuple[WeightedStat, ...] = field(default_factory=_default_cps_stats)
    scf_stats: Tuple[WeightedStat, ...] = field(default_factory=_default_scf_stats)
    ratios: Tuple[RatioSpec, ...] = field(default_factory=_default_ratios)

    def __post_init__(self) -> None:
        if not self.years:
            raise ValueError("At least one survey year is required.")
        if not self.age_schemes:
            raise ValueError("At least one age-group scheme is required.")
