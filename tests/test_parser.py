import unittest

from scrubhtml.errors import InputTooLargeError, NestingTooDeepError, Severity, warning
from scrubhtml.node import NodeArena, NodeKind
from scrubhtml.parser import parse
from scrubhtml.serialize import serialize


def roundtrip(html, **kwargs):
    errors = []
    arena = parse(html, 10_000, errors=errors, **kwargs)
    return serialize(arena), errors


class TestTreeBuilding(unittest.TestCase):
    def test_paragraph_closed_by_next_paragraph(self):
        html, errors = roundtrip("<p>a<p>b")
        assert html == "<p>a</p><p>b</p>"
        assert errors == []

    def test_block_closes_open_paragraph(self):
        html, errors = roundtrip("<p>a<div>b</div>")
        assert html == "<p>a</p><div>b</div>"
        assert errors == []

    def test_end_tag_closes_intermediate_elements(self):
        html, errors = roundtrip("<div><b>x</div>y")
        assert html == "<div><b>x</b></div>y"
        assert errors == [warning("unclosed-tag", "b", line=1, column=6)]
        assert errors[0].severity is Severity.WARNING

    def test_stray_end_tag_is_ignored(self):
        html, errors = roundtrip("a</b>c")
        assert html == "ac"
        assert errors == [warning("unexpected-end-tag", "b", line=1, column=2)]

    def test_open_elements_are_closed_at_eof(self):
        html, errors = roundtrip("<b>x")
        assert html == "<b>x</b>"
        assert [e.code for e in errors] == ["unclosed-tag"]

        html, errors = roundtrip("<ul><li>x")
        assert html == "<ul><li>x</li></ul>"
        assert [e.code for e in errors] == ["unclosed-tag"]
        assert errors[0].args == ("ul",)

    def test_list_items_close_their_peers(self):
        html, errors = roundtrip("<ul><li>a<li>b</ul>")
        assert html == "<ul><li>a</li><li>b</li></ul>"
        assert errors == []

    def test_nested_list_does_not_close_outer_item(self):
        html, _ = roundtrip("<ul><li>a<ul><li>b</ul></ul>")
        assert html == "<ul><li>a<ul><li>b</li></ul></li></ul>"

    def test_table_cells_and_end_tag_inside_cell(self):
        html, errors = roundtrip("<table><tr><td>a<td>b</table>")
        assert html == "<table><tr><td>a</td><td>b</td></tr></table>"
        assert errors == []

    def test_headings_do_not_nest(self):
        html, errors = roundtrip("<h1>a<h2>b</h2>")
        assert html == "<h1>a</h1><h2>b</h2>"
        assert [e.code for e in errors] == ["unclosed-tag"]

    def test_void_elements_have_no_children(self):
        html, errors = roundtrip("<br>x<img src=a>y</br>")
        assert html == '<br>x<img src="a">y'
        assert [e.code for e in errors] == ["unexpected-end-tag"]

    def test_self_closing_non_void_is_ignored(self):
        html, errors = roundtrip("<div/>x")
        assert html == "<div>x</div>"
        assert [e.code for e in errors] == ["non-void-self-closing", "unclosed-tag"]

    def test_processing_instructions(self):
        html, errors = roundtrip("<?php x?>a<?xml version='1.0'?>")
        assert html == "a"
        assert [e.code for e in errors] == ["processing-instruction-removed"]

    def test_doctype_is_dropped(self):
        html, errors = roundtrip("<!DOCTYPE html>x")
        assert html == "x"
        assert errors == []

    def test_comments_become_nodes(self):
        arena = parse("a<!--c-->b", 100)
        kinds = [arena.kind(node) for node in arena.children[NodeArena.ROOT]]
        assert kinds == [NodeKind.TEXT, NodeKind.COMMENT, NodeKind.TEXT]

    def test_source_case_and_position_are_kept(self):
        arena = parse("x\n<SPAN id=a>y</span>", 100)
        span = next(arena.iter_elements())
        assert arena.name(span) == "span"
        assert arena.raw_names[span] == "SPAN"
        assert (arena.lines[span], arena.columns[span]) == (2, 1)
        assert arena.get_attr(span, "id") == "a"


class TestLimits(unittest.TestCase):
    def test_input_too_large(self):
        parse("x" * 10, 10)
        with self.assertRaises(InputTooLargeError) as ctx:
            parse("x" * 11, 10)
        assert ctx.exception.code == "input-too-large"
        assert ctx.exception.size == 11

    def test_nesting_too_deep(self):
        arena = parse("<b>" * 3, 100, max_depth=3)
        assert arena.depth() == 3
        with self.assertRaises(NestingTooDeepError) as ctx:
            parse("<b>" * 4, 100, max_depth=3)
        assert ctx.exception.limit == 3

    def test_empty_input(self):
        arena = parse("", 10)
        assert len(arena) == 1
        assert arena.children[NodeArena.ROOT] == []


class TestNodeArena(unittest.TestCase):
    def test_unwrap_promotes_children_in_place(self):
        arena = parse("<p>a<b>x<i>y</i></b>c</p>", 100)
        p = arena.children[NodeArena.ROOT][0]
        assert arena.unwrap(p, 1) == 2
        assert serialize(arena) == "<p>ax<i>y</i>c</p>"

    def test_remove_and_replace(self):
        arena = parse("<p>a<b>x</b>c</p>", 100)
        p = arena.children[NodeArena.ROOT][0]
        arena.remove(p, 1)
        assert serialize(arena) == "<p>ac</p>"
        arena.replace(p, 0, [arena.create_text("z")])
        assert serialize(arena) == "<p>zc</p>"

    def test_text_content_and_attributes(self):
        arena = parse('<a href="x">1<b>2</b></a>', 100)
        a = arena.children[NodeArena.ROOT][0]
        assert arena.text_content(a) == "12"
        assert arena.has_attr(a, "href")
        arena.set_attr(a, "rel", "nofollow")
        arena.set_attr(a, "href", "y")
        assert arena.attrs[a] == [["href", "y"], ["rel", "nofollow"]]


if __name__ == "__main__":
    unittest.main()
