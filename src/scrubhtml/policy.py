"""Allow-list sanitization policy.

A :class:`Policy` is built once (in code, or from a JSON document via
:func:`load_policy`) and then shared read-only by any number of scans. Every
type here is a frozen dataclass whose collections are normalized to
``frozenset`` / read-only mappings on construction, so nothing reachable from
a policy can be mutated after it is published.

Anything not explicitly permitted is removed:

- Tags without a :class:`TagRule` are stripped. By default their content is
  kept; tags in ``drop_content_tags`` lose their content too.
- Attributes without an :class:`AttributeRule` on the tag (or in
  ``global_attributes``) are stripped.
- CSS properties without a :class:`CssPropertyRule` are stripped.
- URL-valued attributes must satisfy the :class:`UrlRule` for that attribute.

Tag, attribute and CSS property names are matched ASCII case-insensitively.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .constants import URL_ATTRIBUTES
from .errors import PolicyError, _StrEnum

logger = logging.getLogger(__name__)


class TagAction(_StrEnum):
    VALIDATE = "validate"  # keep the element, check its attributes
    FILTER = "filter"  # drop the element, keep its children in place
    REMOVE = "remove"  # drop the element and everything inside it
    ENCODE = "encode"  # show the tags as text, keep the children


class OnInvalid(_StrEnum):
    STRIP_ATTRIBUTE = "strip-attribute"
    STRIP_TAG = "strip-tag"
    REPLACE_WITH_DEFAULT = "replace-with-default"


def _coerce_enum(enum_cls: type[_StrEnum], value: Any, what: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise PolicyError(f"Unknown {what} {value!r} (expected one of: {choices})") from None


def _compile(pattern: str | None, what: str) -> re.Pattern[str] | None:
    if pattern is None:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise PolicyError(f"Invalid regular expression for {what}: {pattern!r} ({exc})") from None


def _lower_set(values: Collection[str] | None) -> frozenset[str] | None:
    if values is None:
        return None
    if isinstance(values, str):
        values = [values]
    return frozenset(str(v).lower() for v in values)


def _frozen_mapping(mapping: Mapping[str, Any], value_type: type, what: str) -> Mapping[str, Any]:
    normalized = {}
    for key, value in mapping.items():
        if not isinstance(value, value_type):
            raise PolicyError(f"{what} {key!r} must be a {value_type.__name__}, got {type(value).__name__}")
        normalized[str(key).lower()] = value
    return MappingProxyType(normalized)


@dataclass(frozen=True, slots=True)
class AttributeRule:
    """Rule for one attribute value.

    A value is accepted when it fully matches ``pattern`` or equals one of
    ``values`` (ASCII case-insensitive). A rule with neither accepts any
    value; URL and CSS checks still apply on top.
    """

    pattern: str | None = None
    values: Collection[str] | None = None
    on_invalid: OnInvalid = OnInvalid.STRIP_ATTRIBUTE
    default: str | None = None

    # Structurally mandatory: an element without a valid value for this
    # attribute is stripped as if its tag were not allowed.
    required: bool = False

    _regex: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", _compile(self.pattern, "attribute"))
        object.__setattr__(self, "values", _lower_set(self.values))
        object.__setattr__(self, "on_invalid", _coerce_enum(OnInvalid, self.on_invalid, "on_invalid action"))
        if self.on_invalid is OnInvalid.REPLACE_WITH_DEFAULT:
            if self.default is None:
                raise PolicyError("replace-with-default requires a default value")
            if not self.accepts(self.default):
                raise PolicyError(f"Default value {self.default!r} does not satisfy its own rule")

    def accepts(self, value: str) -> bool:
        if self._regex is None and self.values is None:
            return True
        if self.values is not None and value.lower() in self.values:
            return True
        return self._regex is not None and self._regex.fullmatch(value) is not None


# A value token: a function call, a quoted string, or a run without
# whitespace/commas.
_CSS_VALUE_TOKEN = re.compile(r"""[A-Za-z-]+\([^)]*\)|"[^"]*"|'[^']*'|[^\s,]+""")


@dataclass(frozen=True, slots=True)
class CssPropertyRule:
    """Rule for one CSS property value.

    The whole value may match, or (for shorthands such as
    ``border: 1px solid red``) every token of it may match individually.
    """

    pattern: str | None = None
    values: Collection[str] | None = None

    _regex: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", _compile(self.pattern, "CSS property"))
        object.__setattr__(self, "values", _lower_set(self.values))

    def _accepts_token(self, token: str) -> bool:
        if self.values is not None and token.lower() in self.values:
            return True
        return self._regex is not None and self._regex.fullmatch(token) is not None

    def accepts(self, value: str) -> bool:
        if self._regex is None and self.values is None:
            return True
        if self._accepts_token(value):
            return True
        tokens = _CSS_VALUE_TOKEN.findall(value)
        return bool(tokens) and all(self._accepts_token(token) for token in tokens)


@dataclass(frozen=True, slots=True)
class UrlRule:
    """Rule for URL-valued attributes and CSS ``url(...)`` references."""

    # Absolute URLs are allowed only with these schemes (lowercase). An empty
    # set disallows every absolute URL.
    allowed_schemes: Collection[str] = field(default_factory=frozenset)

    # URLs without a scheme (path, ?query, #fragment).
    allow_relative: bool = True

    # //example.com/path. Off by default: these are network URLs in disguise.
    allow_protocol_relative: bool = False

    # If provided, URLs with an authority must name one of these hosts.
    allowed_hosts: Collection[str] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_schemes", _lower_set(self.allowed_schemes))
        object.__setattr__(self, "allowed_hosts", _lower_set(self.allowed_hosts))


@dataclass(frozen=True, slots=True)
class TagRule:
    action: TagAction = TagAction.VALIDATE
    attributes: Mapping[str, AttributeRule] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", _coerce_enum(TagAction, self.action, "tag action"))
        object.__setattr__(self, "attributes", _frozen_mapping(self.attributes, AttributeRule, "Attribute rule"))

    @property
    def allowed(self) -> bool:
        return self.action is TagAction.VALIDATE

    @property
    def required_attributes(self) -> tuple[str, ...]:
        return tuple(name for name, rule in self.attributes.items() if rule.required)


_FILTER_RULE = TagRule(TagAction.FILTER)
_REMOVE_RULE = TagRule(TagAction.REMOVE)

DEFAULT_SELECTOR_PATTERN = r"""[A-Za-z0-9_\-.#\s,:>+~*\[\]="'()|^$]+"""


@dataclass(frozen=True, slots=True)
class Policy:
    """An immutable, fully resolved allow-list policy."""

    tags: Mapping[str, TagRule] = field(default_factory=dict)
    global_attributes: Mapping[str, AttributeRule] = field(default_factory=dict)
    css_properties: Mapping[str, CssPropertyRule] = field(default_factory=dict)

    url_rule: UrlRule = field(default_factory=lambda: UrlRule(allowed_schemes={"http", "https", "mailto"}))
    # Per (tag, attribute) overrides of `url_rule`.
    url_rules: Mapping[tuple[str, str], UrlRule] = field(default_factory=dict)
    url_attributes: Collection[str] = URL_ATTRIBUTES

    # Tags not mentioned in `tags` lose their content too when listed here.
    drop_content_tags: Collection[str] = field(default_factory=lambda: {"script", "style"})

    # Selectors allowed in embedded <style> sheets.
    css_selector_pattern: str = DEFAULT_SELECTOR_PATTERN

    max_input_length: int = 100_000
    max_nesting_depth: int = 256
    max_scan_time_ms: float | None = None

    preserve_comments: bool = False
    preserve_space: bool = True
    format_output: bool = False
    omit_xml_declaration: bool = True
    omit_doctype: bool = True

    nofollow_anchors: bool = False
    noopener_noreferrer_anchors: bool = False
    validate_param_as_embed: bool = False

    _selector_regex: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _frozen_mapping(self.tags, TagRule, "Tag rule"))
        object.__setattr__(
            self, "global_attributes", _frozen_mapping(self.global_attributes, AttributeRule, "Attribute rule")
        )
        object.__setattr__(
            self, "css_properties", _frozen_mapping(self.css_properties, CssPropertyRule, "CSS property rule")
        )
        if not isinstance(self.url_rule, UrlRule):
            raise PolicyError("url_rule must be a UrlRule")

        url_rules = {}
        for key, rule in self.url_rules.items():
            if not isinstance(rule, UrlRule) or not isinstance(key, tuple) or len(key) != 2:
                raise PolicyError(f"url_rules entry {key!r} must map (tag, attribute) to a UrlRule")
            url_rules[(str(key[0]).lower(), str(key[1]).lower())] = rule
        object.__setattr__(self, "url_rules", MappingProxyType(url_rules))

        object.__setattr__(self, "url_attributes", _lower_set(self.url_attributes))
        object.__setattr__(self, "drop_content_tags", _lower_set(self.drop_content_tags))
        object.__setattr__(self, "_selector_regex", _compile(self.css_selector_pattern, "CSS selectors"))

        if self.max_input_length <= 0:
            raise PolicyError("max_input_length must be positive")
        if self.max_nesting_depth <= 0:
            raise PolicyError("max_nesting_depth must be positive")
        if self.max_scan_time_ms is not None and self.max_scan_time_ms <= 0:
            raise PolicyError("max_scan_time_ms must be positive when set")

    # -------
    # Lookups
    # -------

    def tag_rule(self, name: str) -> TagRule:
        name = name.lower()
        rule = self.tags.get(name)
        if rule is not None:
            return rule
        return _REMOVE_RULE if name in self.drop_content_tags else _FILTER_RULE

    def attribute_rule(self, tag: str, attr: str) -> AttributeRule | None:
        tag_rule = self.tags.get(tag.lower())
        attr = attr.lower()
        if tag_rule is not None:
            rule = tag_rule.attributes.get(attr)
            if rule is not None:
                return rule
        return self.global_attributes.get(attr)

    def css_rule(self, prop: str) -> CssPropertyRule | None:
        return self.css_properties.get(prop.lower())

    def url_rule_for(self, tag: str, attr: str) -> UrlRule:
        return self.url_rules.get((tag.lower(), attr.lower()), self.url_rule)

    def is_url_attribute(self, attr: str) -> bool:
        return attr.lower() in self.url_attributes

    def allows_selector(self, selector: str) -> bool:
        return self._selector_regex is not None and self._selector_regex.fullmatch(selector) is not None

    def with_directives(self, **changes: Any) -> Policy:
        """Return a copy with some fields replaced (e.g. ``format_output=True``)."""
        return dataclasses.replace(self, **changes)

    # -------
    # Loading
    # -------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Policy:
        """Build a policy from a JSON-style document.

        Shape::

            {
              "directives": {"max_input_length": 50000, "nofollow_anchors": true},
              "tags": {"b": {}, "script": "remove",
                       "a": {"attributes": {"href": {}, "target": {"values": ["_blank"]}}}},
              "global_attributes": {"title": {"pattern": "[^<>]*"}},
              "css_properties": {"color": {"pattern": "#[0-9a-f]{3,6}|[a-z]+"}},
              "url_rule": {"allowed_schemes": ["http", "https"]},
              "url_rules": [{"tag": "img", "attr": "src", "allowed_schemes": ["https"]}],
              "drop_content_tags": ["script", "style"]
            }
        """
        if not isinstance(data, Mapping):
            raise PolicyError("Policy document must be an object")
        known = {"directives", "tags", "global_attributes", "css_properties", "url_rule", "url_rules"}
        known |= {"url_attributes", "drop_content_tags", "css_selector_pattern"}
        unknown = set(data) - known
        if unknown:
            raise PolicyError(f"Unknown policy sections: {', '.join(sorted(unknown))}")

        kwargs: dict[str, Any] = {}
        directive_names = {f.name for f in dataclasses.fields(cls) if f.init} - known - {"tags", "url_rule"}
        for key, value in (data.get("directives") or {}).items():
            if key not in directive_names:
                raise PolicyError(f"Unknown policy directive {key!r}")
            kwargs[key] = value

        kwargs["tags"] = {name: _tag_rule_from(name, spec) for name, spec in (data.get("tags") or {}).items()}
        kwargs["global_attributes"] = _attribute_rules_from(data.get("global_attributes") or {})
        kwargs["css_properties"] = {
            name: _build(CssPropertyRule, spec, f"CSS property {name!r}")
            for name, spec in (data.get("css_properties") or {}).items()
        }
        if "url_rule" in data:
            kwargs["url_rule"] = _build(UrlRule, data["url_rule"], "url_rule")
        url_rules = {}
        for spec in data.get("url_rules") or []:
            if not isinstance(spec, Mapping) or "tag" not in spec or "attr" not in spec:
                raise PolicyError("url_rules entries must be objects with 'tag' and 'attr'")
            rest = {k: v for k, v in spec.items() if k not in {"tag", "attr"}}
            url_rules[(spec["tag"], spec["attr"])] = _build(UrlRule, rest, "url_rules entry")
        kwargs["url_rules"] = url_rules
        for key in ("url_attributes", "drop_content_tags", "css_selector_pattern"):
            if key in data:
                kwargs[key] = data[key]
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise PolicyError(str(exc)) from None


def _build(rule_cls: type, spec: Any, what: str) -> Any:
    if spec is None:
        spec = {}
    if not isinstance(spec, Mapping):
        raise PolicyError(f"{what} must be an object")
    try:
        return rule_cls(**spec)
    except TypeError as exc:
        raise PolicyError(f"{what}: {exc}") from None


def _attribute_rules_from(specs: Mapping[str, Any]) -> dict[str, AttributeRule]:
    return {name: _build(AttributeRule, spec, f"attribute {name!r}") for name, spec in specs.items()}


def _tag_rule_from(name: str, spec: Any) -> TagRule:
    if isinstance(spec, str):
        return TagRule(action=_coerce_enum(TagAction, spec, "tag action"))
    if spec is None:
        return TagRule()
    if not isinstance(spec, Mapping):
        raise PolicyError(f"Tag {name!r} must be an action string or an object")
    unknown = set(spec) - {"action", "attributes"}
    if unknown:
        raise PolicyError(f"Tag {name!r} has unknown keys: {', '.join(sorted(unknown))}")
    return TagRule(
        action=spec.get("action", TagAction.VALIDATE),
        attributes=_attribute_rules_from(spec.get("attributes") or {}),
    )


def load_policy(path: str | Path) -> Policy:
    """Load and validate a policy from a JSON file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise PolicyError(f"{path} is not valid JSON: {exc}") from None
    policy = Policy.from_dict(data)
    logger.debug("Loaded policy from %s (%d tag rules)", path, len(policy.tags))
    return policy


# -------------
# Default policy
# -------------

_LENGTH = r"-?\d{1,4}(\.\d{1,4})?(px|em|rem|ex|pt|%)?"
_COLOR = r"#[0-9a-fA-F]{3,8}|[a-zA-Z]{1,20}|rgba?\(\s*\d{1,3}%?\s*(,\s*\d{1,3}%?\s*){2}(,\s*(0|1|0?\.\d{1,3})\s*)?\)"
_SIZE = AttributeRule(pattern=r"\d{1,4}%?")
_ALIGN = AttributeRule(values=["left", "right", "center", "justify"])
_CELL_ATTRS = {
    "colspan": AttributeRule(pattern=r"\d{1,3}"),
    "rowspan": AttributeRule(pattern=r"\d{1,3}"),
    "align": _ALIGN,
    "valign": AttributeRule(values=["top", "middle", "bottom", "baseline"]),
    "width": _SIZE,
}

_SIMPLE_TAGS = (
    "p div span br hr h1 h2 h3 h4 h5 h6 ul ol li dl dt dd b strong i em u s strike sub sup small big mark "
    "blockquote q cite code pre kbd samp var abbr thead tbody tfoot tr caption"
).split()

_REMOVED_TAGS = (
    "script style iframe frame frameset object embed applet noscript noembed noframes form input button "
    "select textarea title meta link base head svg math template"
).split()

DEFAULT_POLICY: Policy = Policy(
    tags={
        **{name: TagRule() for name in _SIMPLE_TAGS},
        **{name: TagRule(TagAction.REMOVE) for name in _REMOVED_TAGS},
        "a": TagRule(
            attributes={
                "href": AttributeRule(),
                "rel": AttributeRule(pattern=r"(nofollow|noopener|noreferrer|ugc|sponsored|external)(\s+(nofollow|noopener|noreferrer|ugc|sponsored|external))*"),
                "target": AttributeRule(values=["_blank", "_self"]),
            }
        ),
        "img": TagRule(
            attributes={
                "src": AttributeRule(required=True),
                "alt": AttributeRule(),
                "width": _SIZE,
                "height": _SIZE,
            }
        ),
        "table": TagRule(
            attributes={
                "border": AttributeRule(pattern=r"\d{1,2}"),
                "cellpadding": AttributeRule(pattern=r"\d{1,2}"),
                "cellspacing": AttributeRule(pattern=r"\d{1,2}"),
                "width": _SIZE,
            }
        ),
        "td": TagRule(attributes=_CELL_ATTRS),
        "th": TagRule(attributes=_CELL_ATTRS),
        "col": TagRule(attributes={"span": AttributeRule(pattern=r"\d{1,3}"), "width": _SIZE}),
        "colgroup": TagRule(attributes={"span": AttributeRule(pattern=r"\d{1,3}")}),
        "ol": TagRule(attributes={"start": AttributeRule(pattern=r"-?\d{1,6}"), "type": AttributeRule(values=["1", "a", "i"])}),
    },
    global_attributes={
        "title": AttributeRule(),
        "class": AttributeRule(pattern=r"[A-Za-z0-9_\-\s]*"),
        "dir": AttributeRule(values=["ltr", "rtl", "auto"]),
        "lang": AttributeRule(pattern=r"[A-Za-z]{1,8}(-[A-Za-z0-9]{1,8})*"),
        "style": AttributeRule(),
    },
    css_properties={
        "color": CssPropertyRule(pattern=_COLOR),
        "background-color": CssPropertyRule(pattern=_COLOR),
        "background-image": CssPropertyRule(pattern=r"""url\((\s*"[^"]*"\s*|\s*'[^']*'\s*|[^"'()\s]*)\)""", values=["none"]),
        "font-weight": CssPropertyRule(pattern=r"[1-9]00", values=["normal", "bold", "bolder", "lighter"]),
        "font-style": CssPropertyRule(values=["normal", "italic", "oblique"]),
        "font-size": CssPropertyRule(pattern=_LENGTH, values=["small", "medium", "large", "x-large", "smaller", "larger"]),
        "font-family": CssPropertyRule(pattern=r"[A-Za-z0-9 \-\"']{1,64}"),
        "text-align": CssPropertyRule(values=["left", "right", "center", "justify", "start", "end"]),
        "text-decoration": CssPropertyRule(values=["none", "underline", "overline", "line-through"]),
        "vertical-align": CssPropertyRule(pattern=_LENGTH, values=["baseline", "sub", "super", "top", "middle", "bottom"]),
        "list-style-type": CssPropertyRule(values=["none", "disc", "circle", "square", "decimal", "lower-alpha", "upper-alpha", "lower-roman", "upper-roman"]),
        "margin": CssPropertyRule(pattern=_LENGTH, values=["auto"]),
        "padding": CssPropertyRule(pattern=_LENGTH),
        "width": CssPropertyRule(pattern=_LENGTH, values=["auto"]),
        "height": CssPropertyRule(pattern=_LENGTH, values=["auto"]),
        "border": CssPropertyRule(pattern=_LENGTH + "|" + _COLOR, values=["none", "solid", "dashed", "dotted", "double"]),
    },
    url_rule=UrlRule(allowed_schemes={"http", "https", "mailto"}),
    url_rules={("img", "src"): UrlRule(allowed_schemes={"http", "https"})},
)
