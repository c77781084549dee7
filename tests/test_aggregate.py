"""
Tests for weighted aggregation.

Tests cover:
- Weighted means and sums
- Missing-value handling
- The implicate two-pass collapse
- Net housing wealth share
"""

import math

import pytest
import pandas as pd

from homeownership.aggregate import (
    WeightedStat,
    aggregate_scf,
    net_housing_share,
    safe_ratio,
    weighted_group_reduce,
)
from homeownership.scf import harmonize_scf

MEAN = WeightedStat("share", "v", "w")
TOTAL = WeightedStat("total", "v", "w", "sum")


def frame(**cols):
    base = {"agegroup": 5, "year": 1989}
    n = len(next(iter(cols.values())))
    data = {k: [v] * n for k, v in base.items()}
    data.update(cols)
    return pd.DataFrame(data)


class TestWeightedGroupReduce:
    """Test the single-pass reduction."""

    def test_weighted_mean_and_sum(self):
        df = frame(agegroup=[5, 5, 6], v=[1.0, 0.0, 1.0], w=[3.0, 1.0, 2.0])
        out = weighted_group_reduce(df, ["agegroup", "year"], [MEAN, TOTAL])

        assert out["agegroup"].tolist() == [5, 6]
        assert out["share"].tolist() == pytest.approx([0.75, 1.0])
        assert out["total"].tolist() == pytest.approx([3.0, 2.0])

    def test_missing_values_excluded_from_mean(self):
        df = frame(v=[1.0, None], w=[1.0, 100.0])
        out = weighted_group_reduce(df, ["agegroup", "year"], [MEAN])
        assert out["share"].iloc[0] == pytest.approx(1.0)

    def test_all_missing_is_nan_not_zero(self):
        df = frame(v=[None, None], w=[1.0, 2.0])
        out = weighted_group_reduce(df, ["agegroup", "year"], [MEAN, TOTAL])
        assert math.isnan(out["share"].iloc[0])
        assert math.isnan(out["total"].iloc[0])

    def test_absent_cells_not_synthesized(self):
        df = frame(agegroup=[5, 10], year=[1989, 2022], v=[1.0, 0.0], w=[1.0, 1.0])
        out = weighted_group_reduce(df, ["agegroup", "year"], [MEAN])
        assert list(zip(out["agegroup"], out["year"])) == [(5, 1989), (10, 2022)]

    def test_year_only_keys(self):
        df = frame(agegroup=[5, 6], v=[1.0, 0.0], w=[1.0, 3.0])
        out = weighted_group_reduce(df, ["year"], [MEAN])
        assert len(out) == 1
        assert out["share"].iloc[0] == pytest.approx(0.25)

    def test_requires_keys(self):
        with pytest.raises(ValueError):
            weighted_group_reduce(frame(v=[1.0], w=[1.0]), [], [MEAN])

    def test_missing_source_column(self):
        with pytest.raises(KeyError):
            weighted_group_reduce(frame(w=[1.0]), ["year"], [MEAN])


class TestImplicateCollapse:
    """Test the two-pass SCF reduction."""

    def test_unweighted_mean_across_implicates(self):
        df = frame(
            implicate=[1, 2, 3, 4, 5],
            v=[1.0, 0.0, 0.0, 0.0, 0.0],
            w=[10.0, 20.0, 30.0, 40.0, 50.0],
        )
        out = weighted_group_reduce(
            df, ["agegroup", "year"], [MEAN], implicate_keys=["implicate"]
        )
        assert len(out) == 1
        assert out["share"].iloc[0] == pytest.approx(0.2)

    def test_weight_rescaling_round_trip(self):
        """Stored 5w weights, collapsed over implicates, match direct weighting by w."""
        full_weights = {1: 1000.0, 2: 500.0}
        owns = {1: 1, 2: 0}
        rows = []
        for hh, w in full_weights.items():
            for implicate in range(1, 6):
                rows.append(
                    {
                        "year": 2007,
                        "y1": hh * 10 + implicate,
                        "age": 50,
                        "houses": 0.0,
                        "mrthel": 0.0,
                        "networth": 1.0,
                        "hhouses": owns[hh],
                        "wgt": w / 5,
                    }
                )
        scf = harmonize_scf(pd.DataFrame(rows))
        out = aggregate_scf(scf, ["agegroup", "year"])

        direct = sum(full_weights[h] * owns[h] for h in owns) / sum(full_weights.values())
        assert out["ownhh_scf"].iloc[0] == pytest.approx(direct)


class TestHousingShare:
    """Test net housing wealth share."""

    def test_single_household(self):
        scf = harmonize_scf(
            pd.DataFrame(
                [
                    {
                        "year": 2007,
                        "y1": 11,
                        "age": 40,
                        "houses": 300_000.0,
                        "mrthel": 100_000.0,
                        "networth": 500_000.0,
                        "hhouses": 1,
                        "wgt": 1000.0,
                    }
                ]
            )
        )
        out = net_housing_share(scf, ["agegroup", "year"])
        assert out["agegroup"].tolist() == [7]
        assert out["houseshare"].iloc[0] == pytest.approx(0.4)

    def test_ratio_of_sums(self):
        df = frame(
            agegroup=[7, 7],
            implicate=[1, 1],
            nethouse=[100.0, 0.0],
            networth=[100.0, 300.0],
            weight=[1.0, 1.0],
        )
        out = net_housing_share(df, ["agegroup", "year"])
        # Ratio of sums (100/400), not the mean of ratios (0.5)
        assert out["houseshare"].iloc[0] == pytest.approx(0.25)

    def test_child_age_groups_dropped(self):
        df = frame(
            agegroup=[3, 4, 5],
            implicate=[1, 1, 1],
            nethouse=[1.0, 1.0, 1.0],
            networth=[2.0, 2.0, 2.0],
            weight=[1.0, 1.0, 1.0],
        )
        out = net_housing_share(df, ["agegroup", "year"])
        assert out["agegroup"].tolist() == [5]

    def test_zero_net_worth_is_nan(self):
        df = frame(implicate=[1], nethouse=[10.0], networth=[0.0], weight=[1.0])
        out = net_housing_share(df, ["year"])
        assert math.isnan(out["houseshare"].iloc[0])


def test_safe_ratio():
    out = safe_ratio(pd.Series([1.0, 1.0, 2.0]), pd.Series([0.0, None, 4.0]))
    assert math.isnan(out.iloc[0])
    assert math.isnan(out.iloc[1])
    assert out.iloc[2] == pytest.approx(0.5)
