"""
Pytest fixtures for the homeownership pipeline tests.
"""

import pytest
import pandas as pd
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from homeownership.config import PipelineConfig


TEST_YEARS = (1989, 2022)


def make_cps_year(year: int) -> pd.DataFrame:
    """Six persons: an owner couple plus partner, a renting head, and two filtered rows."""
    return pd.DataFrame(
        {
            "YEAR": [year] * 6,
            "AGE": [30, 32, 28, 70, 10, 40],
            "RELATE": [101, 201, 1114, 101, 301, 9200],
            "OWNERSHP": [10, 10, 10, 22, 10, 0],
            "GQ": [1, 1, 1, 1, 1, 2],
            "ASECWT": [100.0, 100.0, 100.0, 50.0, 100.0, 80.0],
            "ASECWTH": [100.0, 100.0, 100.0, 50.0, 100.0, 80.0],
        }
    )


def make_scf_wave(year: int, weight_col: str = "wgt") -> pd.DataFrame:
    """Two households with five implicates each: a young owner and an older renter."""
    rows = []
    for implicate in range(1, 6):
        rows.append(
            {
                "y1": 10 + implicate,
                "age": 30,
                "houses": 200_000.0,
                "mrthel": 50_000.0,
                "networth": 300_000.0,
                "hhouses": 1,
                weight_col: 100.0,
            }
        )
        rows.append(
            {
                "y1": 20 + implicate,
                "age": 70,
                "houses": 0.0,
                "mrthel": 0.0,
                "networth": 50_000.0,
                "hhouses": 0,
                weight_col: 40.0,
            }
        )
    return pd.DataFrame(rows)


# =============================================================================
# DATA FIXTURES
# =============================================================================

@pytest.fixture
def cps_raw():
    """Raw CPS records for the test years, lower-cased as the loader does."""
    df = pd.concat([make_cps_year(y) for y in TEST_YEARS], ignore_index=True)
    df.columns = [c.lower() for c in df.columns]
    return df


@pytest.fixture
def scf_waves():
    """SCF waves keyed by year; 1989 uses the legacy weight column."""
    return {
        1989: make_scf_wave(1989, weight_col="x42001"),
        2022: make_scf_wave(2022),
    }


@pytest.fixture
def input_config(tmp_path):
    """A PipelineConfig pointing at CSV inputs written under ``tmp_path``."""
    cps_dir = tmp_path / "cps"
    scf_dir = tmp_path / "scf"
    cps_dir.mkdir()
    scf_dir.mkdir()
    for year in TEST_YEARS:
        make_cps_year(year).to_csv(cps_dir / f"cps_{year}.csv", index=False)
        weight_col = "x42001" if year == 1989 else "wgt"
        make_scf_wave(year, weight_col).to_csv(scf_dir / f"rscfp{year}.csv", index=False)

    return PipelineConfig(
        cps_dir=cps_dir,
        scf_dir=scf_dir,
        output_dir=tmp_path / "output",
        cache_dir=tmp_path / "cache",
        years=TEST_YEARS,
        scf_pattern="rscfp{year}.csv",
    )
