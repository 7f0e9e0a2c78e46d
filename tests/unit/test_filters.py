"""
Unit tests for PostgREST filter builders.

Run: pytest tests/unit/test_filters.py -v
"""

from utils.filters import ilike_any, quote_filter_value


class TestQuoteFilterValue:

    def test_reserved_characters_are_quoted(self):
        assert quote_filter_value("Oak (West), Inc.") == '"Oak (West), Inc."'

    def test_quotes_and_backslashes_escaped(self):
        assert quote_filter_value('say "hi" \\o/') == '"say \\"hi\\" \\\\o/"'


class TestIlikeAny:

    def test_one_clause_per_column(self):
        assert ilike_any(["client_name", "email"], "oak") == (
            'client_name.ilike."%oak%",email.ilike."%oak%"'
        )

    def test_parentheses_stay_inside_the_value(self):
        clause = ilike_any(["client_name"], " Maple (East) ")

        assert clause == 'client_name.ilike."%Maple (East)%"'
