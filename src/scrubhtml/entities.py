"""HTML5 character reference decoding.

Named references (``&amp;``, ``&nbsp``) and numeric references (``&#60;``,
``&#x3C;``) are decoded following the WHATWG tokenizer rules closely enough
for sanitization: validators must see the characters a browser would see, not
the obfuscated spelling.

Decoding is applied exactly once per text run or attribute value. A string
without ``&`` is returned unchanged, so already-decoded content can never be
decoded a second time by accident.
"""

import html.entities
import re

# Python ships the complete HTML5 table. Keys carry their trailing semicolon,
# except for the legacy names that browsers also accept without one.
_HTML5_ENTITIES = html.entities.html5

LEGACY_ENTITIES = frozenset(name for name in _HTML5_ENTITIES if not name.endswith(";"))
_LONGEST_LEGACY = max(len(name) for name in LEGACY_ENTITIES)

# Numeric references in the C1 range map to windows-1252 characters.
NUMERIC_REPLACEMENTS = {
    0x00: "\ufffd",
    0x80: "€",
    0x82: "‚",
    0x83: "ƒ",
    0x84: "„",
    0x85: "…",
    0x86: "†",
    0x87: "‡",
    0x88: "ˆ",
    0x89: "‰",
    0x8A: "Š",
    0x8B: "‹",
    0x8C: "Œ",
    0x8E: "Ž",
    0x91: "‘",
    0x92: "’",
    0x93: "“",
    0x94: "”",
    0x95: "•",
    0x96: "–",
    0x97: "—",
    0x98: "˜",
    0x99: "™",
    0x9A: "š",
    0x9B: "›",
    0x9C: "œ",
    0x9E: "ž",
    0x9F: "Ÿ",
}

_REFERENCE_PATTERN = re.compile(
    r"&(?:#[xX](?P<hex>[0-9a-fA-F]+);?|#(?P<dec>[0-9]+);?|(?P<name>[A-Za-z][A-Za-z0-9]*)(?P<semi>;?))"
)


def decode_numeric(digits, is_hex=False):
    """Return the character for a numeric reference body like ``60`` or ``3C``."""
    digits = digits.lstrip("0") or "0"
    if len(digits) > 8:
        return "\ufffd"
    codepoint = int(digits, 16 if is_hex else 10)
    if codepoint in NUMERIC_REPLACEMENTS:
        return NUMERIC_REPLACEMENTS[codepoint]
    if codepoint > 0x10FFFF or 0xD800 <= codepoint <= 0xDFFF:
        return "\ufffd"
    return chr(codepoint)


def _decode_named(match, in_attribute):
    name = match.group("name")
    semi = match.group("semi")
    if semi and name + ";" in _HTML5_ENTITIES:
        return _HTML5_ENTITIES[name + ";"]

    # Fall back to the longest legacy name that prefixes the run, e.g.
    # "&notit;" decodes "&not" and leaves "it;" alone.
    for length in range(min(len(name), _LONGEST_LEGACY), 0, -1):
        prefix = name[:length]
        if prefix not in LEGACY_ENTITIES:
            continue
        rest = name[length:] + semi
        if in_attribute:
            # Historical attribute rule: "&amp=" and "&ampx" stay literal.
            following = rest[:1] or match.string[match.end() : match.end() + 1]
            if following.isalnum() or following == "=":
                return match.group(0)
        return _HTML5_ENTITIES[prefix] + rest
    return match.group(0)


def decode_entities(text, *, in_attribute=False):
    """Decode every character reference in ``text`` once.

    ``in_attribute`` applies the stricter rules browsers use for legacy
    references without a trailing semicolon inside attribute values.
    """
    if "&" not in text:
        return text

    def replace(match):
        hex_digits = match.group("hex")
        if hex_digits is not None:
            return decode_numeric(hex_digits, is_hex=True)
        dec_digits = match.group("dec")
        if dec_digits is not None:
            return decode_numeric(dec_digits)
        return _decode_named(match, in_attribute)

    return _REFERENCE_PATTERN.sub(replace, text)
