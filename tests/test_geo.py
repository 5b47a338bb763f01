"""Tests for postal/state/category code resolution.

Covers:
- Postal ranges, normalisation and the Coimbatore default
- State-name override of the region code
- Category codes: brand-specific before generic, camera default
"""

from __future__ import annotations

import pytest

from app.features.order_id.geo import (
    DEFAULT_CATEGORY_CODE,
    DEFAULT_REGION_CODE,
    DEFAULT_SUB_REGION_CODE,
    POSTAL_RANGES,
    normalize_postal_code,
    resolve_category_code,
    resolve_region,
    resolve_region_code,
    state_code,
)


class TestPostalCodes:
    def test_chennai(self):
        assert resolve_region("600005") == ("TN", "01")

    def test_unmapped_falls_back_to_default(self):
        assert resolve_region("999999") == (DEFAULT_REGION_CODE, DEFAULT_SUB_REGION_CODE)

    @pytest.mark.parametrize(
        ("postal_code", "expected"),
        [
            ("600001", ("TN", "01")),
            ("600100", ("TN", "01")),
            ("600101", ("TN", "37")),
            ("641601", ("TN", "38")),
            ("625010", ("TN", "45")),
        ],
    )
    def test_range_bounds_are_inclusive(self, postal_code, expected):
        assert resolve_region(postal_code) == expected

    def test_normalisation(self):
        assert normalize_postal_code(" 600 005 ") == 600005
        assert normalize_postal_code("6000051234") == 600005
        assert normalize_postal_code("") == 0

    def test_garbage_uses_default(self):
        assert resolve_region("not-a-pin") == ("TN", "37")

    def test_deterministic(self):
        assert {resolve_region("620010") for _ in range(10)} == {("TN", "39")}

    def test_ranges_sorted_and_disjoint(self):
        for prev, cur in zip(POSTAL_RANGES, POSTAL_RANGES[1:]):
            assert prev.start <= prev.end < cur.start <= cur.end


class TestStateOverride:
    def test_known_state_overrides_region_only(self):
        assert resolve_region_code("600005", "Karnataka") == ("KA", "01")

    def test_state_name_is_normalised(self):
        assert state_code("  Andhra   PRADESH ") == "AP"

    def test_unknown_state_keeps_postal_region(self):
        assert resolve_region_code("600005", "Atlantis") == ("TN", "01")

    def test_blank_state(self):
        assert state_code("") is None
        assert resolve_region_code("999999", None) == ("TN", "37")


class TestCategoryCodes:
    @pytest.mark.parametrize(
        ("category", "brand", "expected"),
        [
            ("phones", "Samsung", "SMSG"),
            ("phones", "Unknown", "PHNE"),
            ("phones", "Apple", "IPNE"),
            ("Phones", "iPhone", "IPNE"),
            ("laptops", "Apple", "MCBK"),
            ("laptops", "Dell", "LPTP"),
            ("tablets", "Apple", "IPAD"),
            ("tablets", "Lenovo", "TBLT"),
            ("cameras", "Canon", "DSLR"),
            ("cameras", "Samsung", "DSLR"),
        ],
    )
    def test_codes(self, category, brand, expected):
        assert resolve_category_code(category, brand) == expected

    def test_unknown_category_defaults(self):
        assert resolve_category_code("drones", "DJI") == DEFAULT_CATEGORY_CODE
        assert resolve_category_code("", None) == DEFAULT_CATEGORY_CODE
