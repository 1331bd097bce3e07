import json
import tempfile
import unittest
from pathlib import Path

from scrubhtml.errors import ErrorRecord, Severity, error, warning
from scrubhtml.messages import DEFAULT_BUNDLE, MessageBundle


class TestMessageBundle(unittest.TestCase):
    def test_every_code_has_an_english_template(self):
        for code in (
            "unexpected-null-character",
            "duplicate-attribute",
            "unclosed-tag",
            "unexpected-end-tag",
            "non-void-self-closing",
            "eof-in-tag",
            "processing-instruction-removed",
            "tag-not-allowed",
            "tag-removed",
            "tag-encoded",
            "attribute-not-allowed",
            "attribute-invalid",
            "attribute-replaced",
            "attribute-invalid-tag-removed",
            "attribute-required",
            "url-invalid",
            "param-invalid",
            "comment-removed",
            "css-property-not-allowed",
            "css-value-invalid",
            "css-url-invalid",
            "css-at-rule-removed",
            "css-selector-invalid",
            "css-parse-error",
        ):
            assert DEFAULT_BUNDLE.template(code) is not None, code

    def test_format(self):
        text = DEFAULT_BUNDLE.format("url-invalid", ("a", "href"))
        assert text == 'The "href" attribute of the <a> tag contained a disallowed URL and was removed.'

    def test_missing_arguments_leave_the_template(self):
        assert DEFAULT_BUNDLE.format("tag-removed") == "The <{0}> tag is not allowed and was removed together with its contents."

    def test_unknown_code(self):
        assert DEFAULT_BUNDLE.format("no-such-code") == "no-such-code"
        assert DEFAULT_BUNDLE.format("no-such-code", ("a", "b")) == "no-such-code: a, b"

    def test_fallback_bundle(self):
        german = MessageBundle("de_DE", {"tag-removed": "Das Tag <{0}> wurde entfernt."}, fallback=DEFAULT_BUNDLE)
        assert german.format("tag-removed", ("script",)) == "Das Tag <script> wurde entfernt."
        assert german.format("comment-removed") == "A comment was removed."

    def test_templates_are_read_only(self):
        with self.assertRaises(TypeError):
            DEFAULT_BUNDLE.templates["tag-removed"] = "x"

    def test_from_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "fr_FR.json"
            path.write_text(json.dumps({"comment-removed": "Un commentaire a été supprimé."}), encoding="utf-8")
            bundle = MessageBundle.from_file(path, fallback=DEFAULT_BUNDLE)
        assert bundle.locale == "fr_FR"
        assert bundle.format("comment-removed") == "Un commentaire a été supprimé."
        assert bundle.format("eof-in-tag") == "The input ended inside a tag, which was discarded."

    def test_from_file_requires_an_object(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "broken.json"
            path.write_text("[]", encoding="utf-8")
            with self.assertRaises(TypeError):
                MessageBundle.from_file(path)


class TestErrorRecord(unittest.TestCase):
    def test_render_and_dict(self):
        record = error("attribute-not-allowed", "p", "onclick", line=3, column=7)
        assert record.severity is Severity.ERROR
        assert record.render(DEFAULT_BUNDLE) == 'The "onclick" attribute of the <p> tag is not allowed and was removed.'
        assert record.as_dict() == {
            "code": "attribute-not-allowed",
            "args": ["p", "onclick"],
            "severity": "error",
            "line": 3,
            "column": 7,
        }
        assert record.as_dict(DEFAULT_BUNDLE)["message"] == record.render(DEFAULT_BUNDLE)
        assert str(record) == "(3,7): attribute-not-allowed(p, onclick)"

    def test_warning_without_position(self):
        record = warning("unexpected-null-character", 2)
        assert record.args == ("2",)
        assert record.severity is Severity.WARNING
        assert str(record) == "unexpected-null-character(2)"
        assert "line" not in record.as_dict()

    def test_records_are_frozen(self):
        record = ErrorRecord("comment-removed")
        with self.assertRaises(AttributeError):
            record.code = "x"


if __name__ == "__main__":
    unittest.main()
