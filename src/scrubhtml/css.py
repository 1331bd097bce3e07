"""CSS validation for ``style`` attributes and embedded ``<style>`` sheets.

Parsing is done with tinycss2, which handles strings, comments, nesting and
escapes the way browsers do. Values are checked in their re-serialized form:
escapes that matter are decoded there, and anything that still needs an
escape shows up as a backslash and is rejected.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator

import tinycss2
from tinycss2 import ast as css_ast

from .errors import ErrorRecord, error
from .policy import Policy
from .urls import UrlValidator

_UNSAFE_VALUE_PATTERN = re.compile(r"[;{}<>\\\x00-\x1f\x7f]")
_URL_FUNCTIONS = frozenset({"url", "src"})
# Image functions take bare strings as URLs; declarations using them are dropped.
_IMAGE_FUNCTIONS = frozenset({"image", "image-set", "-webkit-image-set", "cross-fade", "-webkit-cross-fade"})

_BLOCKS = (css_ast.ParenthesesBlock, css_ast.SquareBracketsBlock, css_ast.CurlyBracketsBlock)

# Values and selectors nested deeper than this are rejected before serializing.
_MAX_NESTING = 32


def _iter_urls(tokens: Iterable[css_ast.Node]) -> Iterator[str]:
    for token in tokens:
        if isinstance(token, css_ast.URLToken):
            yield token.value
        elif isinstance(token, css_ast.FunctionBlock):
            if token.lower_name in _URL_FUNCTIONS:
                yield "".join(arg.value for arg in token.arguments if arg.type == "string")
            else:
                yield from _iter_urls(token.arguments)
        elif isinstance(token, _BLOCKS):
            yield from _iter_urls(token.content)


def _nesting_exceeds(tokens: Iterable[css_ast.Node], limit: int = _MAX_NESTING) -> bool:
    stack = [(tokens, 0)]
    while stack:
        nodes, depth = stack.pop()
        if depth > limit:
            return True
        for token in nodes:
            if isinstance(token, css_ast.FunctionBlock):
                stack.append((token.arguments, depth + 1))
            elif isinstance(token, _BLOCKS):
                stack.append((token.content, depth + 1))
    return False


def _has_image_function(tokens: Iterable[css_ast.Node]) -> bool:
    for token in tokens:
        if isinstance(token, css_ast.FunctionBlock):
            if token.lower_name in _IMAGE_FUNCTIONS or _has_image_function(token.arguments):
                return True
        elif isinstance(token, _BLOCKS) and _has_image_function(token.content):
            return True
    return False


def _has_parse_error(tokens: Iterable[css_ast.Node]) -> bool:
    for token in tokens:
        if token.type == "error":
            return True
        if isinstance(token, css_ast.FunctionBlock) and _has_parse_error(token.arguments):
            return True
        if isinstance(token, _BLOCKS) and _has_parse_error(token.content):
            return True
    return False


class CssValidator:
    __slots__ = ("policy", "url_validator")

    def __init__(self, policy: Policy, url_validator: UrlValidator | None = None) -> None:
        self.policy = policy
        self.url_validator = url_validator or UrlValidator()

    def validate_declarations(self, block: str, tag: str | None = None) -> tuple[str, list[ErrorRecord]]:
        """Filter a declaration block such as a ``style`` attribute value.

        Returns the surviving declarations as ``prop:value;`` in their
        original order, and one error per dropped declaration.
        """
        return self._validate_block(block, tag or "*")

    def validate_stylesheet(self, text: str, tag: str = "style") -> tuple[str, list[ErrorRecord]]:
        """Filter an embedded stylesheet rule by rule.

        At-rules are dropped, selectors must match the policy's selector
        pattern, and rule sets left without declarations are dropped.
        """
        errors: list[ErrorRecord] = []
        kept: list[str] = []
        for rule in tinycss2.parse_stylesheet(text, skip_comments=True, skip_whitespace=True):
            if isinstance(rule, css_ast.QualifiedRule):
                if _nesting_exceeds(rule.prelude):
                    errors.append(error("css-parse-error", tag))
                    continue
                selector = " ".join(tinycss2.serialize(rule.prelude).split())
                if not self.policy.allows_selector(selector):
                    errors.append(error("css-selector-invalid", tag, selector))
                    continue
                body, body_errors = self._validate_block(rule.content, tag)
                errors.extend(body_errors)
                if body:
                    kept.append(f"{selector}{{{body}}}")
            elif isinstance(rule, css_ast.AtRule):
                errors.append(error("css-at-rule-removed", tag, rule.lower_at_keyword))
            else:
                errors.append(error("css-parse-error", tag))
        return "\n".join(kept), errors

    def _validate_block(self, block, tag: str) -> tuple[str, list[ErrorRecord]]:
        errors: list[ErrorRecord] = []
        kept: list[str] = []
        for node in tinycss2.parse_blocks_contents(block, skip_comments=True, skip_whitespace=True):
            if isinstance(node, css_ast.Declaration):
                text, record = self._check_declaration(node, tag)
                if record is not None:
                    errors.append(record)
                else:
                    kept.append(text)
            elif isinstance(node, css_ast.AtRule):
                errors.append(error("css-at-rule-removed", tag, node.lower_at_keyword))
            else:
                # Parse errors and nested rules.
                errors.append(error("css-parse-error", tag))
        return "".join(kept), errors

    def _check_declaration(self, declaration: css_ast.Declaration, tag: str) -> tuple[str, ErrorRecord | None]:
        name = declaration.lower_name
        rule = self.policy.css_rule(name)
        if rule is None:
            return "", error("css-property-not-allowed", tag, name)

        if _nesting_exceeds(declaration.value):
            return "", error("css-value-invalid", tag, name)

        value = tinycss2.serialize(declaration.value).strip()
        if not value or _has_parse_error(declaration.value) or _UNSAFE_VALUE_PATTERN.search(value):
            return "", error("css-value-invalid", tag, name)

        if _has_image_function(declaration.value):
            return "", error("css-url-invalid", tag, name)

        url_rule = self.policy.url_rule_for(tag, "style")
        for url in _iter_urls(declaration.value):
            if not self.url_validator.validate(url, url_rule):
                return "", error("css-url-invalid", tag, name)

        if not rule.accepts(value):
            return "", error("css-value-invalid", tag, name)

        important = "!important" if declaration.important else ""
        return f"{name}:{value}{important};", None
