"""Policy enforcement over a parsed fragment.

:class:`TreeSanitizer` walks a :class:`~scrubhtml.node.NodeArena` depth-first
in document order and edits it in place: disallowed elements are unwrapped,
removed or encoded as text, attributes are kept, rewritten or stripped, and
anchors get their ``rel`` tokens. Every removal is reported as an
:class:`~scrubhtml.errors.ErrorRecord`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .constants import URL_PARAM_NAMES, VOID_ELEMENTS
from .css import CssValidator
from .errors import ErrorRecord, _StrEnum, error
from .node import NodeArena, NodeKind
from .policy import AttributeRule, OnInvalid, Policy, TagAction, TagRule
from .serialize import serialize_end_tag, serialize_start_tag
from .urls import UrlValidator

_NOFOLLOW = ("nofollow",)
_NOOPENER = ("noopener", "noreferrer")


class DecisionKind(_StrEnum):
    KEEP = "keep"
    REWRITE = "rewrite"
    STRIP = "strip"


@dataclass(frozen=True, slots=True)
class AttributeDecision:
    """What happens to one attribute of a retained element."""

    kind: DecisionKind
    value: str | None = None
    errors: tuple[ErrorRecord, ...] = ()

    # The attribute was invalid under an on_invalid=strip-tag rule.
    strip_element: bool = False

    @classmethod
    def keep(cls, errors: Sequence[ErrorRecord] = ()) -> AttributeDecision:
        return cls(DecisionKind.KEEP, errors=tuple(errors))

    @classmethod
    def rewrite(cls, value: str, errors: Sequence[ErrorRecord] = ()) -> AttributeDecision:
        return cls(DecisionKind.REWRITE, value, tuple(errors))

    @classmethod
    def strip(cls, errors: Sequence[ErrorRecord] = (), *, strip_element: bool = False) -> AttributeDecision:
        return cls(DecisionKind.STRIP, errors=tuple(errors), strip_element=strip_element)


class ScanHooks:
    """Variant-specific steps around sanitization.

    A scanner calls every hook object it was given, in order, with the parsed
    arena and the scan's error list. The base class does nothing; override
    either method.
    """

    def before_sanitize(self, arena: NodeArena, errors: list[ErrorRecord]) -> None:
        pass

    def after_sanitize(self, arena: NodeArena, errors: list[ErrorRecord]) -> None:
        pass


def _is_conditional_comment(data: str) -> bool:
    text = data.strip().lower()
    return text.startswith("[if") or text.startswith("[endif") or "<![endif]" in text


def _rel_tokens(value: str | None) -> list[str]:
    return value.split() if value else []


class TreeSanitizer:
    __slots__ = ("css_validator", "policy", "url_validator")

    def __init__(
        self,
        policy: Policy,
        *,
        url_validator: UrlValidator | None = None,
        css_validator: CssValidator | None = None,
    ) -> None:
        self.policy = policy
        self.url_validator = url_validator or UrlValidator()
        self.css_validator = css_validator or CssValidator(policy, self.url_validator)

    def sanitize(self, arena: NodeArena, errors: list[ErrorRecord]) -> NodeArena:
        """Sanitize ``arena`` in place, appending to ``errors``."""
        # One [parent, next position] frame per open level; edits splice the
        # parent's children list in place, so positions stay valid.
        stack = [[NodeArena.ROOT, 0]]
        while stack:
            frame = stack[-1]
            parent, position = frame
            children = arena.children[parent]
            if position >= len(children):
                stack.pop()
                continue
            node = children[position]
            kind = arena.kinds[node]
            if kind == NodeKind.TEXT:
                frame[1] = position + 1
            elif kind == NodeKind.COMMENT:
                if self._keep_comment(arena, node, errors):
                    frame[1] = position + 1
                else:
                    arena.remove(parent, position)
            else:
                frame[1], descend = self._sanitize_element(arena, parent, position, errors)
                if descend is not None:
                    stack.append([descend, 0])
        return arena

    # -----------
    # Traversal
    # -----------

    def _sanitize_element(
        self, arena: NodeArena, parent: int, position: int, errors: list[ErrorRecord]
    ) -> tuple[int, int | None]:
        """Apply the tag rule to one element.

        Returns the next position to visit in ``parent`` and the element whose
        children are to be visited first, if any.
        """
        node = arena.children[parent][position]
        name = arena.names[node]
        rule = self.policy.tag_rule(name)
        action = rule.action
        line, column = arena.lines[node], arena.columns[node]

        if action is TagAction.FILTER:
            errors.append(error("tag-not-allowed", arena.raw_names[node], line=line, column=column))
            arena.unwrap(parent, position)
            # The promoted children now start at `position`.
            return position, None
        if action is TagAction.REMOVE:
            errors.append(error("tag-removed", arena.raw_names[node], line=line, column=column))
            arena.remove(parent, position)
            return position, None
        if action is TagAction.ENCODE:
            errors.append(error("tag-encoded", arena.raw_names[node], line=line, column=column))
            self._encode(arena, parent, position)
            # Skip the start tag text; the children follow it.
            return position + 1, None

        if name == "param" and self.policy.validate_param_as_embed:
            record = self._check_param(arena, node)
            if record is not None:
                errors.append(record)
                arena.remove(parent, position)
                return position, None

        if not self._sanitize_attributes(arena, node, rule, errors):
            return self._strip(arena, parent, position), None

        if name == "a":
            self._rewrite_anchor(arena, node)
        elif name == "style":
            self._sanitize_stylesheet(arena, node, errors)

        return position + 1, node

    def _strip(self, arena: NodeArena, parent: int, position: int) -> int:
        # An allowed element that fails its attribute checks is handled like
        # a disallowed tag of the same name.
        name = arena.names[arena.children[parent][position]]
        if name in self.policy.drop_content_tags:
            arena.remove(parent, position)
        else:
            arena.unwrap(parent, position)
        return position

    def _encode(self, arena: NodeArena, parent: int, position: int) -> None:
        node = arena.children[parent][position]
        raw_name = arena.raw_names[node]
        # Shown as the markup would read, values escaped.
        nodes = [arena.create_text(serialize_start_tag(raw_name, arena.attrs[node]))]
        nodes.extend(arena.children[node])
        if arena.names[node] not in VOID_ELEMENTS:
            nodes.append(arena.create_text(serialize_end_tag(raw_name)))
        arena.children[node] = []
        arena.replace(parent, position, nodes)

    def _keep_comment(self, arena: NodeArena, node: int, errors: list[ErrorRecord]) -> bool:
        if not self.policy.preserve_comments:
            return False
        if _is_conditional_comment(arena.data[node]):
            errors.append(error("comment-removed", line=arena.lines[node], column=arena.columns[node]))
            return False
        return True

    def _sanitize_stylesheet(self, arena: NodeArena, node: int, errors: list[ErrorRecord]) -> None:
        line, column = arena.lines[node], arena.columns[node]
        for child in arena.children[node]:
            if arena.kinds[child] != NodeKind.TEXT:
                continue
            cleaned, css_errors = self.css_validator.validate_stylesheet(arena.data[child], arena.names[node])
            errors.extend(_positioned(css_errors, line, column))
            arena.data[child] = cleaned

    # -----------
    # Attributes
    # -----------

    def decide_attribute(self, tag: str, attr: str, value: str) -> AttributeDecision:
        """Decide the fate of one attribute value on an allowed ``tag``."""
        rule = self.policy.attribute_rule(tag, attr)
        if rule is None:
            return AttributeDecision.strip([error("attribute-not-allowed", tag, attr)])

        if not rule.accepts(value):
            return self._invalid(rule, tag, attr, "attribute-invalid")

        if self.policy.is_url_attribute(attr):
            if not self.url_validator.validate(value, self.policy.url_rule_for(tag, attr)):
                return self._invalid(rule, tag, attr, "url-invalid")

        if attr == "style":
            cleaned, css_errors = self.css_validator.validate_declarations(value, tag)
            if not cleaned:
                return AttributeDecision.strip(css_errors)
            if cleaned == value:
                return AttributeDecision.keep(css_errors)
            return AttributeDecision.rewrite(cleaned, css_errors)

        return AttributeDecision.keep()

    def _invalid(self, rule: AttributeRule, tag: str, attr: str, code: str) -> AttributeDecision:
        if rule.on_invalid is OnInvalid.STRIP_TAG:
            return AttributeDecision.strip([error("attribute-invalid-tag-removed", tag, attr)], strip_element=True)
        if rule.on_invalid is OnInvalid.REPLACE_WITH_DEFAULT:
            default = rule.default
            safe_default = not self.policy.is_url_attribute(attr) or self.url_validator.validate(
                default, self.policy.url_rule_for(tag, attr)
            )
            if safe_default:
                return AttributeDecision.rewrite(default, [error("attribute-replaced", tag, attr, default)])
        return AttributeDecision.strip([error(code, tag, attr)])

    def _sanitize_attributes(self, arena: NodeArena, node: int, rule: TagRule, errors: list[ErrorRecord]) -> bool:
        """Filter the attributes of an allowed element.

        Returns False when the element itself has to be stripped.
        """
        tag = arena.names[node]
        line, column = arena.lines[node], arena.columns[node]
        kept = []
        rejected_rel = None
        for attr, value in arena.attrs[node]:
            decision = self.decide_attribute(tag, attr, value)
            if decision.strip_element:
                errors.extend(_positioned(decision.errors, line, column))
                return False
            if tag == "a" and attr == "rel" and decision.kind is DecisionKind.STRIP:
                # Reported after anchor rewriting, which may re-add exactly
                # these tokens.
                rejected_rel = (value, decision.errors)
                continue
            errors.extend(_positioned(decision.errors, line, column))
            if decision.kind is DecisionKind.KEEP:
                kept.append([attr, value])
            elif decision.kind is DecisionKind.REWRITE:
                kept.append([attr, decision.value])
        arena.attrs[node] = kept

        if rejected_rel is not None:
            value, rel_errors = rejected_rel
            injected = set(self._injected_rel_tokens(arena, node))
            if not injected or not {token.lower() for token in _rel_tokens(value)} <= injected:
                errors.extend(_positioned(rel_errors, line, column))

        for required in rule.required_attributes:
            if not arena.has_attr(node, required):
                errors.append(error("attribute-required", tag, required, line=line, column=column))
                return False
        return True

    def _check_param(self, arena: NodeArena, node: int) -> ErrorRecord | None:
        """Validate ``<param name=... value=...>`` as the matching ``<embed>``
        attribute."""
        name = (arena.get_attr(node, "name") or "").strip().lower()
        value = arena.get_attr(node, "value") or ""
        valid = bool(name) and self.decide_attribute("embed", name, value).kind is DecisionKind.KEEP
        if valid and name in URL_PARAM_NAMES:
            valid = self.url_validator.validate(value, self.policy.url_rule_for("embed", "src"))
        if valid:
            return None
        return error("param-invalid", name, line=arena.lines[node], column=arena.columns[node])

    # --------
    # Anchors
    # --------

    def _injected_rel_tokens(self, arena: NodeArena, node: int) -> tuple[str, ...]:
        tokens = ()
        if self.policy.nofollow_anchors:
            tokens += _NOFOLLOW
        target = arena.get_attr(node, "target")
        blank = target is not None and target.strip().lower() == "_blank"
        if self.policy.noopener_noreferrer_anchors or blank:
            tokens += _NOOPENER
        return tokens

    def _rewrite_anchor(self, arena: NodeArena, node: int) -> None:
        injected = self._injected_rel_tokens(arena, node)
        if not injected:
            return
        tokens = _rel_tokens(arena.get_attr(node, "rel"))
        seen = {token.lower() for token in tokens}
        missing = [token for token in injected if token not in seen]
        if missing or not arena.has_attr(node, "rel"):
            arena.set_attr(node, "rel", " ".join(tokens + missing))


def _positioned(records: Sequence[ErrorRecord], line: int | None, column: int | None) -> list[ErrorRecord]:
    if line is None:
        return list(records)
    return [
        ErrorRecord(record.code, record.args, record.severity, line, column) if record.line is None else record
        for record in records
    ]
