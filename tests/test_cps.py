"""
Tests for the CPS harmonizer.

Tests cover:
- Sample restrictions and top-coding
- Household and person homeownership
- Headship variants
- Fatal input errors
"""

import math

import pytest
import pandas as pd

from homeownership.cps import harmonize_cps


def person(**overrides):
    record = {
        "year": 2007,
        "age": 45,
        "relate": 101,
        "ownershp": 10,
        "gq": 1,
        "asecwt": 1000.0,
        "asecwth": 1000.0,
    }
    record.update(overrides)
    return record


def harmonize(*records):
    return harmonize_cps(pd.DataFrame(list(records)))


class TestSampleRestrictions:
    """Test filtering and top-coding."""

    def test_drops_minors_and_group_quarters(self, cps_raw):
        result = harmonize_cps(cps_raw)
        assert len(result) == 8  # four kept persons in each of two years
        assert result["age"].min() >= 18
        assert (result["gq"] == 1).all()

    def test_top_codes_age(self):
        result = harmonize(person(age=85), person(age=80), person(age=79))
        assert result["age"].tolist() == [80, 80, 79]

    def test_age_groups_assigned(self):
        result = harmonize(person(age=18), person(age=25), person(age=40))
        assert result["agegroup"].tolist() == [5, 6, 7]
        assert result["agegroup_alt"].tolist() == [5, 6, 7]


class TestOwnership:
    """Test homeownership and headship indicators."""

    def test_owner_reference_person(self):
        """Age 82 owner householder."""
        row = harmonize(person(age=82, relate=101, ownershp=10, gq=1)).iloc[0]

        assert row["age"] == 80
        assert row["agegroup"] == 10
        assert row["ownhh"] == 1
        assert row["ownp1"] == 1
        assert row["ownp3"] == 1
        assert row["headship1"] == 1

    def test_renter_reference_person(self):
        row = harmonize(person(ownershp=22)).iloc[0]
        assert row["ownhh"] == 0
        assert row["ownp1"] == 0
        assert row["headship1"] == 1

    def test_unknown_tenure_is_missing(self):
        row = harmonize(person(ownershp=0)).iloc[0]
        assert math.isnan(row["ownhh"])

    def test_household_ownership_missing_for_non_reference(self):
        row = harmonize(person(relate=201)).iloc[0]
        assert math.isnan(row["ownhh"])
        assert row["ownp1"] == 1
        assert row["ownp3"] == 1
        assert row["headship3"] == 1

    def test_unmarried_partner(self):
        row = harmonize(person(relate=1114)).iloc[0]
        assert (row["ownp1"], row["ownp2"], row["ownp3"]) == (1, 1, 0)
        assert (row["headship1"], row["headship2"], row["headship3"]) == (1, 1, 0)

    def test_legacy_partner_roommate(self):
        row = harmonize(person(year=1989, relate=1113)).iloc[0]
        assert (row["ownp1"], row["ownp2"], row["ownp3"]) == (0, 1, 0)
        assert (row["headship1"], row["headship2"], row["headship3"]) == (0, 1, 0)

    def test_child_is_neither_owner_nor_head(self):
        row = harmonize(person(age=22, relate=301)).iloc[0]
        for col in ("ownp1", "ownp2", "ownp3", "headship1", "headship2", "headship3"):
            assert row[col] == 0


class TestErrors:
    """Test fatal input conditions."""

    def test_missing_column(self):
        df = pd.DataFrame([person()]).drop(columns=["gq"])
        with pytest.raises(KeyError, match="gq"):
            harmonize_cps(df)

    def test_unknown_relationship_code(self):
        with pytest.raises(ValueError, match="RELATE"):
            harmonize(person(relate=4242))

    def test_unknown_tenure_code(self):
        with pytest.raises(ValueError, match="OWNERSHP"):
            harmonize(person(ownershp=99))

    def test_missing_age(self):
        with pytest.raises(ValueError, match="age"):
            harmonize(person(age=None))

    def test_codes_checked_after_filtering(self):
        """Group-quarters rows are excluded before code validation."""
        result = harmonize(person(), person(gq=2, relate=4242))
        assert len(result) == 1
