import unittest

from scrubhtml.node import NodeArena
from scrubhtml.parser import parse
from scrubhtml.policy import DEFAULT_POLICY
from scrubhtml.serialize import SerializeOptions, serialize, serialize_end_tag, serialize_start_tag


def render(html, **options):
    return serialize(parse(html, 10_000), SerializeOptions(**options))


class TestEscaping(unittest.TestCase):
    def test_text_and_attribute_values(self):
        html = render('<p title="a&quot;b<c>">x &lt; y &amp; z</p>')
        assert html == '<p title="a&quot;b&lt;c&gt;">x &lt; y &amp; z</p>'

    def test_comment_data(self):
        assert render("<!--a>b-->") == "<!--a&gt;b-->"

    def test_raw_text_cannot_close_its_element(self):
        arena = NodeArena()
        script = arena.append(NodeArena.ROOT, arena.create_element("script"))
        arena.append_text(script, "a</SCRIPT>b<!--c")
        style = arena.append(NodeArena.ROOT, arena.create_element("style"))
        arena.append_text(style, "p{}</style ")
        assert serialize(arena) == "<script>a<\\/SCRIPT>b<\\!--c</script><style>p{}<\\/style </style>"

    def test_raw_text_cannot_close_any_raw_text_element(self):
        arena = NodeArena()
        xmp = arena.append(NodeArena.ROOT, arena.create_element("xmp"))
        arena.append_text(xmp, "</noscript><img src=x onerror=alert(1)></IFRAME>")
        plaintext = arena.append(NodeArena.ROOT, arena.create_element("plaintext"))
        arena.append_text(plaintext, "</noembed>x")
        html = serialize(arena)
        assert html == "<xmp><\\/noscript><img src=x onerror=alert(1)><\\/IFRAME></xmp><plaintext><\\/noembed>x"

    def test_deep_nesting(self):
        html = "<span>" * 3000 + "x"
        assert serialize(parse(html, 100_000)) == html + "</span>" * 3000

    def test_raw_text_is_not_escaped(self):
        assert render("<style>a > b { }</style>") == "<style>a > b { }</style>"

    def test_plaintext_ends_the_output(self):
        assert render("<p>x</p><plaintext>a<b>") == "<p>x</p><plaintext>a<b>"

    def test_invalid_attribute_names_are_skipped(self):
        assert render('<div a"b=1 ok=2></div>') == '<div ok="2"></div>'

    def test_tag_helpers(self):
        assert serialize_start_tag("a", [["href", "x&y"], ["title", None]]) == '<a href="x&amp;y" title="">'
        assert serialize_end_tag("a") == "</a>"

    def test_void_elements(self):
        assert render("<br><hr>") == "<br><hr>"


class TestOptions(unittest.TestCase):
    def test_declarations(self):
        html = render("<b>x</b>", omit_xml_declaration=False, omit_doctype=False)
        assert html == '<?xml version="1.0" encoding="UTF-8"?>\n<!DOCTYPE html>\n<b>x</b>'

    def test_collapse_whitespace_outside_pre(self):
        html = render("<p>a  \n b</p><pre>a  \n b</pre>", preserve_space=False)
        assert html == "<p>a b</p><pre>a  \n b</pre>"

    def test_format_output_indents_blocks(self):
        assert render("<div><p>a</p><p>b</p></div>", format_output=True) == "<div>\n  <p>a</p>\n  <p>b</p>\n</div>"
        assert render("<p>a</p><p>b</p>", format_output=True) == "<p>a</p>\n<p>b</p>"
        assert render("<div>\n<p>a</p>\n</div>", format_output=True) == "<div>\n  <p>a</p>\n</div>"

    def test_format_output_leaves_inline_content_alone(self):
        html = "<p><b>a</b> <i>b</i></p>"
        assert render(html, format_output=True) == html

    def test_format_output_wraps_long_text(self):
        words = " ".join(["word"] * 15)
        html = render("<p>" + "word " * 30 + "</p>", format_output=True)
        assert html == "<p>" + words + "\n  " + words + " </p>"

    def test_format_output_keeps_preformatted_text(self):
        text = "word " * 30
        assert render("<pre>" + text + "</pre>", format_output=True) == "<pre>" + text + "</pre>"

    def test_options_from_policy(self):
        options = SerializeOptions.from_policy(DEFAULT_POLICY.with_directives(format_output=True, omit_doctype=False))
        assert options.format_output
        assert not options.omit_doctype
        assert options.omit_xml_declaration
        assert options.preserve_space


if __name__ == "__main__":
    unittest.main()
