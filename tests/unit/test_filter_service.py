"""
Unit tests for attribute filtering.

Run: pytest tests/unit/test_filter_service.py -v
"""

from services.filter_service import filter_strict, select_any, prices_match


RECORDS = [
    {"vendor": "Acme", "color": "Red", "price": "19.999"},
    {"vendor": "Acme", "color": "Blue", "price": "19.97"},
    {"vendor": "Globex", "color": "Red", "price": "5"},
]


class TestFilterStrict:
    """Tests for filter_strict()"""

    def test_empty_filter_is_identity(self):
        """Should return every record unchanged for {}."""
        assert filter_strict(RECORDS, {}) == RECORDS

    def test_price_tolerance(self):
        """Should match prices within ±0.01."""
        # Act
        kept = filter_strict(RECORDS, {"price": {"19.99"}})

        # Assert
        assert kept == [RECORDS[0]]

    def test_and_across_attributes(self):
        """Should require every filtered attribute to match."""
        kept = filter_strict(RECORDS, {"vendor": {"Acme"}, "color": {"Red"}})

        assert kept == [RECORDS[0]]

    def test_exact_string_membership(self):
        """Should compare case-sensitively in strict mode."""
        assert filter_strict(RECORDS, {"vendor": {"acme"}}) == []

    def test_keys_without_values_are_ignored(self):
        """Should skip attributes with an empty selection."""
        assert filter_strict(RECORDS, {"vendor": set(), "color": {"Blue"}}) == [RECORDS[1]]

    def test_missing_attribute_does_not_match(self):
        assert filter_strict(RECORDS, {"size": {"L"}}) == []

    def test_key_function(self):
        """Should filter on the view returned by `key`."""
        pairs = [(r, {"title": r["vendor"]}) for r in RECORDS]

        kept = filter_strict(pairs, {"title": {"Globex"}}, key=lambda pair: {**pair[0], **pair[1]})

        assert kept == [pairs[2]]


class TestSelectAny:
    """Tests for select_any()"""

    def test_no_tokens_keeps_all(self):
        assert select_any(RECORDS, []) == RECORDS

    def test_any_token_matches(self):
        """Should keep records matching at least one token."""
        kept = select_any(RECORDS, [("vendor", "Globex"), ("color", "Blue")])

        assert kept == [RECORDS[1], RECORDS[2]]

    def test_case_insensitive_trimmed(self):
        """Should compare values trimmed and case-insensitive."""
        assert select_any(RECORDS, [("vendor", " ACME ")]) == [RECORDS[0], RECORDS[1]]

    def test_price_tolerance(self):
        assert select_any(RECORDS, [("price", "19.99")]) == [RECORDS[0]]


class TestPricesMatch:
    """Tests for prices_match()"""

    def test_boundary_is_inclusive(self):
        assert prices_match("20.00", "19.99")

    def test_non_numeric(self):
        assert not prices_match("n/a", "19.99")
