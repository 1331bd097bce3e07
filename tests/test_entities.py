import unittest

from scrubhtml.entities import decode_entities, decode_numeric


class TestDecodeEntities(unittest.TestCase):
    def test_text_without_ampersand_is_returned_unchanged(self):
        text = "already <decoded> text"
        assert decode_entities(text) is text

    def test_named_references(self):
        assert decode_entities("a &amp; b") == "a & b"
        assert decode_entities("&lt;script&gt;") == "<script>"
        assert decode_entities("&quot;x&quot;") == '"x"'

    def test_numeric_references(self):
        assert decode_entities("&#106;&#x61;&#X76;") == "jav"
        assert decode_entities("&#0000106;") == "j"
        assert decode_entities("&#x09;") == "\t"

    def test_decoding_happens_once(self):
        assert decode_entities("&amp;lt;") == "&lt;"

    def test_legacy_reference_without_semicolon(self):
        assert decode_entities("&copy 2024") == "© 2024"
        assert decode_entities("&notit;") == "¬it;"

    def test_unknown_reference_is_left_alone(self):
        assert decode_entities("&bogus; & &") == "&bogus; & &"

    def test_attribute_rules_for_legacy_references(self):
        assert decode_entities("?a=1&amp=2", in_attribute=True) == "?a=1&amp=2"
        assert decode_entities("?a=1&ampx", in_attribute=True) == "?a=1&ampx"
        assert decode_entities("x&amp y", in_attribute=True) == "x& y"
        assert decode_entities("x&amp;y", in_attribute=True) == "x&y"

    def test_numeric_replacements_and_invalid_codepoints(self):
        assert decode_numeric("0") == "\ufffd"
        assert decode_numeric("80", is_hex=True) == "€"
        assert decode_numeric("D800", is_hex=True) == "\ufffd"
        assert decode_numeric("110000", is_hex=True) == "\ufffd"
        assert decode_numeric("9" * 5000) == "\ufffd"


if __name__ == "__main__":
    unittest.main()
