import unittest

from scrubhtml.errors import Severity, error
from scrubhtml.parser import parse
from scrubhtml.policy import DEFAULT_POLICY, AttributeRule, Policy, TagAction, TagRule
from scrubhtml.sanitizer import DecisionKind, TreeSanitizer
from scrubhtml.serialize import serialize


def clean(html, policy=DEFAULT_POLICY):
    errors = []
    arena = parse(html, policy.max_input_length, errors=errors)
    TreeSanitizer(policy).sanitize(arena, errors)
    return serialize(arena), [e for e in errors if e.severity is Severity.ERROR]


def codes(errors):
    return [e.code for e in errors]


class TestTagActions(unittest.TestCase):
    def test_filter_keeps_children_and_visits_them(self):
        html, errors = clean("<p>a<blink>b<i>c</i><u onclick=x>d</u></blink>e</p>")
        assert html == "<p>ab<i>c</i><u>d</u>e</p>"
        assert errors[0] == error("tag-not-allowed", "blink", line=1, column=5)
        assert codes(errors) == ["tag-not-allowed", "attribute-not-allowed"]

    def test_remove_drops_the_subtree(self):
        html, errors = clean("<div>x<script>alert(1)</script>y</div>")
        assert html == "<div>xy</div>"
        assert codes(errors) == ["tag-removed"]

    def test_unknown_drop_content_tag_is_removed(self):
        policy = Policy(tags={"p": TagRule()}, drop_content_tags={"xmp"})
        html, errors = clean("<p><xmp><b>x</b></xmp></p>", policy)
        assert html == "<p></p>"
        assert codes(errors) == ["tag-removed"]

    def test_encode_shows_tags_as_text(self):
        policy = Policy(tags={"p": TagRule(), "b": TagRule(TagAction.ENCODE), "br": TagRule(TagAction.ENCODE)})
        html, errors = clean('<p><b class="x">hi</b>a<br>b</p>', policy)
        assert html == '<p>&lt;b class="x"&gt;hi&lt;/b&gt;a&lt;br&gt;b</p>'
        assert codes(errors) == ["tag-encoded", "tag-encoded"]

    def test_encoded_start_tag_reads_like_the_markup(self):
        policy = Policy(tags={"p": TagRule(), "b": TagRule(TagAction.ENCODE)})
        html, _ = clean("<p><b title='a\"b&amp;c'>x</b></p>", policy)
        assert html == '<p>&lt;b title="a&amp;quot;b&amp;amp;c"&gt;x&lt;/b&gt;</p>'

    def test_deep_nesting(self):
        policy = Policy(tags={"b": TagRule()}, max_nesting_depth=5000)
        html, errors = clean("<b>" * 2000 + "<i>x</i>", policy)
        assert html == "<b>" * 2000 + "x" + "</b>" * 2000
        assert codes(errors) == ["tag-not-allowed"]

    def test_source_case_is_reported(self):
        _, errors = clean("<BLINK>x</BLINK>")
        assert errors[0].args == ("BLINK",)


class TestAttributes(unittest.TestCase):
    def test_attributes_without_rule_are_stripped(self):
        html, errors = clean('<p onclick="x()" title="t" class="a b">z</p>')
        assert html == '<p title="t" class="a b">z</p>'
        assert errors == [error("attribute-not-allowed", "p", "onclick", line=1, column=1)]

    def test_invalid_value_is_stripped(self):
        html, errors = clean('<p dir="sideways">x</p>')
        assert html == "<p>x</p>"
        assert codes(errors) == ["attribute-invalid"]

    def test_url_attributes(self):
        for value in ("javascript:alert(1)", "jav&#x09;ascript:alert(1)", "JAVASCRIPT:x", "data:text/html,x"):
            html, errors = clean(f'<a href="{value}">x</a>')
            assert html == "<a>x</a>", value
            assert errors == [error("url-invalid", "a", "href", line=1, column=1)], value
        html, errors = clean('<a href="https://example.com/?a=1&amp;b=2">x</a>')
        assert html == '<a href="https://example.com/?a=1&amp;b=2">x</a>'
        assert errors == []

    def test_style_attribute_is_rewritten(self):
        html, errors = clean('<span style="color:red;behavior:url(x)">a</span>')
        assert html == '<span style="color:red;">a</span>'
        assert errors == [error("css-property-not-allowed", "span", "behavior", line=1, column=1)]

        html, errors = clean('<span style="behavior:x">a</span>')
        assert html == "<span>a</span>"
        assert codes(errors) == ["css-property-not-allowed"]

    def test_required_attribute(self):
        html, errors = clean('<p><img alt="x"></p>')
        assert html == "<p></p>"
        assert codes(errors) == ["attribute-required"]

        html, errors = clean('<img src="javascript:x">')
        assert html == ""
        assert codes(errors) == ["url-invalid", "attribute-required"]

        html, errors = clean('<img src="/a.png" alt="">')
        assert html == '<img src="/a.png" alt="">'
        assert errors == []

    def test_strip_tag_on_invalid(self):
        policy = Policy(
            tags={"p": TagRule(), "a": TagRule(attributes={"href": AttributeRule(on_invalid="strip-tag")})}
        )
        html, errors = clean('<p><a href="javascript:x">t</a></p>', policy)
        assert html == "<p>t</p>"
        assert codes(errors) == ["attribute-invalid-tag-removed"]

    def test_replace_with_default(self):
        rule = AttributeRule(values=["_self"], on_invalid="replace-with-default", default="_self")
        policy = Policy(tags={"a": TagRule(attributes={"target": rule})})
        html, errors = clean('<a target="_top">x</a>', policy)
        assert html == '<a target="_self">x</a>'
        assert errors[0].args == ("a", "target", "_self")

    def test_decide_attribute(self):
        sanitizer = TreeSanitizer(DEFAULT_POLICY)
        assert sanitizer.decide_attribute("a", "href", "https://x.example").kind is DecisionKind.KEEP
        decision = sanitizer.decide_attribute("a", "onclick", "x")
        assert decision.kind is DecisionKind.STRIP
        assert codes(decision.errors) == ["attribute-not-allowed"]
        decision = sanitizer.decide_attribute("p", "style", "color: red")
        assert decision.kind is DecisionKind.REWRITE
        assert decision.value == "color:red;"


class TestAnchors(unittest.TestCase):
    def test_nofollow_is_added(self):
        policy = DEFAULT_POLICY.with_directives(nofollow_anchors=True)
        html, _ = clean('<a href="/x">a</a>', policy)
        assert html == '<a href="/x" rel="nofollow">a</a>'

    def test_existing_rel_tokens_are_merged(self):
        policy = DEFAULT_POLICY.with_directives(nofollow_anchors=True)
        html, errors = clean('<a href="/x" rel="external">a</a>', policy)
        assert html == '<a href="/x" rel="external nofollow">a</a>'
        assert errors == []
        html, errors = clean('<a rel="NOFOLLOW">a</a>', policy)
        assert html == '<a rel="nofollow">a</a>'
        assert errors == []

    def test_target_blank_gets_noopener(self):
        html, _ = clean('<a href="/x" target="_blank">a</a>')
        assert html == '<a href="/x" target="_blank" rel="noopener noreferrer">a</a>'

    def test_noopener_directive(self):
        policy = DEFAULT_POLICY.with_directives(noopener_noreferrer_anchors=True, nofollow_anchors=True)
        html, _ = clean("<a>a</a>", policy)
        assert html == '<a rel="nofollow noopener noreferrer">a</a>'

    def test_injected_rel_is_exempt_from_the_allow_list(self):
        policy = Policy(tags={"a": TagRule(attributes={"href": AttributeRule()})}, nofollow_anchors=True)
        html, errors = clean('<a href="/x" rel="nofollow">a</a>', policy)
        assert html == '<a href="/x" rel="nofollow">a</a>'
        assert errors == []

        html, errors = clean('<a href="/x" rel="nofollow me">a</a>', policy)
        assert html == '<a href="/x" rel="nofollow">a</a>'
        assert codes(errors) == ["attribute-not-allowed"]

    def test_rel_is_reported_when_nothing_is_injected(self):
        policy = Policy(tags={"a": TagRule(attributes={"href": AttributeRule()})})
        html, errors = clean('<a href="/x" rel="nofollow">a</a>', policy)
        assert html == '<a href="/x">a</a>'
        assert codes(errors) == ["attribute-not-allowed"]


class TestOtherContent(unittest.TestCase):
    def test_comments_are_dropped_by_default(self):
        html, errors = clean("a<!-- x -->b")
        assert html == "ab"
        assert errors == []

    def test_preserved_comments(self):
        policy = DEFAULT_POLICY.with_directives(preserve_comments=True)
        html, errors = clean("a<!-- x -->b<!--[if IE]>c<![endif]-->", policy)
        assert html == "a<!-- x -->b"
        assert codes(errors) == ["comment-removed"]

    def test_param_validated_as_embed(self):
        policy = Policy(
            tags={
                "param": TagRule(attributes={"name": AttributeRule(), "value": AttributeRule()}),
                "embed": TagRule(attributes={"src": AttributeRule(), "width": AttributeRule(pattern=r"\d+")}),
            },
            validate_param_as_embed=True,
        )
        html, errors = clean(
            '<param name="width" value="100"><param name="width" value="wide"><param name="src" value="javascript:x">',
            policy,
        )
        assert html == '<param name="width" value="100">'
        assert [(e.code, e.args) for e in errors] == [("param-invalid", ("width",)), ("param-invalid", ("src",))]

    def test_style_element_is_validated_as_a_stylesheet(self):
        policy = Policy(tags={"style": TagRule()}, css_properties=DEFAULT_POLICY.css_properties)
        html, errors = clean("<style>p{color:red;behavior:x}</style>", policy)
        assert html == "<style>p{color:red;}</style>"
        assert errors == [error("css-property-not-allowed", "style", "behavior", line=1, column=1)]

    def test_sanitize_returns_the_arena(self):
        arena = parse("<b>x</b>", 100)
        assert TreeSanitizer(DEFAULT_POLICY).sanitize(arena, []) is arena


if __name__ == "__main__":
    unittest.main()
