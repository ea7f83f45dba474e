"""Tests for the :visited declaration filter."""

import unittest

from justcss import PropBit, PropertySchema, collect_errors, filter_history_sensitive


class TestFilterHistorySensitive(unittest.TestCase):
    def test_keeps_link_safe_properties(self):
        tokens = ["color", ":", "green", ";"]
        assert filter_history_sensitive(tokens) == "color:green;"

    def test_blanks_other_properties(self):
        tokens = ["background-color", ":", "blue", ";", "color", ":", "green", ";"]
        assert filter_history_sensitive(tokens) == "color:green;"

    def test_unknown_property_is_blanked(self):
        tokens = ["bogus", ":", "x", ";", "cursor", ":", "pointer", ";"]
        assert filter_history_sensitive(tokens) == "cursor:pointer;"

    def test_important_is_kept(self):
        tokens = ["color", ":", "red", "!important", ";"]
        assert filter_history_sensitive(tokens) == "color:red !important;"

    def test_missing_final_semicolon(self):
        assert filter_history_sensitive(["color", ":", "red"]) == "color:red;"

    def test_spaces_are_ignored(self):
        tokens = ["color", " ", ":", " ", "rgb(1, 2, 3)", ";"]
        assert filter_history_sensitive(tokens) == "color:rgb(1, 2, 3);"

    def test_nothing_allowed(self):
        assert filter_history_sensitive(["width", ":", "1px", ";"]) == ""
        assert filter_history_sensitive([]) == ""

    def test_custom_schema(self):
        schema = PropertySchema.from_table({"outline-color": {"bits": PropBit.HASH_VALUE | PropBit.ALLOWED_IN_LINK}})
        tokens = ["outline-color", ":", "#fff", ";", "color", ":", "red", ";"]
        assert filter_history_sensitive(tokens, schema=schema) == "outline-color:#fff;"

    def test_reported(self):
        with collect_errors() as errors:
            filter_history_sensitive(["width", ":", "1px", ";"])
        assert [e.code for e in errors] == ["history-sensitive-property"]


if __name__ == "__main__":
    unittest.main()
