"""Localized text for error codes.

The sanitizer only produces ``(code, args)`` pairs. A :class:`MessageBundle`
is created once by the application (for instance at startup, per locale) and
passed explicitly wherever messages are rendered.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from types import MappingProxyType

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en_US"

_EN_US_TEMPLATES = {
    "unexpected-null-character": "The input contained {0} null character(s), which were replaced.",
    "duplicate-attribute": "The <{0}> tag repeated the \"{1}\" attribute; only the first value was kept.",
    "unclosed-tag": "The <{0}> tag was not closed and has been closed automatically.",
    "unexpected-end-tag": "The </{0}> end tag did not match an open tag and was ignored.",
    "non-void-self-closing": "The <{0}/> tag cannot be self-closing; the slash was ignored.",
    "eof-in-tag": "The input ended inside a tag, which was discarded.",
    "processing-instruction-removed": "A processing instruction was removed.",
    "tag-not-allowed": "The <{0}> tag is not allowed and was removed; its contents were kept.",
    "tag-removed": "The <{0}> tag is not allowed and was removed together with its contents.",
    "tag-encoded": "The <{0}> tag is not allowed and was shown as text.",
    "attribute-not-allowed": "The \"{1}\" attribute of the <{0}> tag is not allowed and was removed.",
    "attribute-invalid": "The \"{1}\" attribute of the <{0}> tag had an invalid value and was removed.",
    "attribute-replaced": "The \"{1}\" attribute of the <{0}> tag had an invalid value and was reset to \"{2}\".",
    "attribute-invalid-tag-removed": "The <{0}> tag was removed because its \"{1}\" attribute was invalid.",
    "attribute-required": "The <{0}> tag was removed because it lacks a valid \"{1}\" attribute.",
    "url-invalid": "The \"{1}\" attribute of the <{0}> tag contained a disallowed URL and was removed.",
    "param-invalid": "A <param> named \"{0}\" had an invalid value and was removed.",
    "comment-removed": "A comment was removed.",
    "css-property-not-allowed": "The CSS property \"{1}\" is not allowed and was removed from <{0}>.",
    "css-value-invalid": "The CSS property \"{1}\" on <{0}> had an invalid value and was removed.",
    "css-url-invalid": "The CSS property \"{1}\" on <{0}> referenced a disallowed URL and was removed.",
    "css-at-rule-removed": "The CSS at-rule \"@{1}\" in <{0}> is not allowed and was removed.",
    "css-selector-invalid": "The CSS selector \"{1}\" in <{0}> is not allowed and its rule was removed.",
    "css-parse-error": "Malformed CSS in <{0}> was removed.",
}


class MessageBundle:
    """Message templates for one locale, with an optional fallback bundle.

    Templates use ``str.format`` positional fields (``{0}``, ``{1}``, ...).
    """

    __slots__ = ("fallback", "locale", "templates")

    def __init__(self, locale: str, templates: Mapping[str, str], fallback: MessageBundle | None = None) -> None:
        self.locale = locale
        self.templates = MappingProxyType(dict(templates))
        self.fallback = fallback

    @classmethod
    def from_file(cls, path: str | Path, *, locale: str | None = None, fallback: MessageBundle | None = None) -> MessageBundle:
        """Load templates from a JSON object mapping codes to templates."""
        path = Path(path)
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise TypeError(f"{path} must contain a JSON object")
        logger.debug("Loaded %d message templates from %s", len(data), path)
        return cls(locale or path.stem, {str(k): str(v) for k, v in data.items()}, fallback=fallback)

    def template(self, code: str) -> str | None:
        bundle: MessageBundle | None = self
        while bundle is not None:
            text = bundle.templates.get(code)
            if text is not None:
                return text
            bundle = bundle.fallback
        return None

    def format(self, code: str, args: Sequence[str] = ()) -> str:
        text = self.template(code)
        if text is None:
            return f"{code}: {', '.join(args)}" if args else code
        try:
            return text.format(*args)
        except (IndexError, KeyError):
            # Template expects more arguments than the record carries.
            return text

    def __repr__(self) -> str:
        return f"MessageBundle({self.locale!r}, {len(self.templates)} templates)"


DEFAULT_BUNDLE = MessageBundle(DEFAULT_LOCALE, _EN_US_TEMPLATES)
