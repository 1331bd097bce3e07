"""HTML element tables used by the parser, sanitizer and serializer.

Elements are kept in lists where iteration order matters and in frozensets
where only membership is checked.

References:
    - https://html.spec.whatwg.org/multipage/syntax.html#void-elements
    - https://html.spec.whatwg.org/multipage/syntax.html#optional-tags
"""

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "basefont",
        "bgsound",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "keygen",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

# Content is not parsed as markup and not entity-decoded. noscript, iframe,
# noembed and noframes are read this way by browsers with scripting enabled.
RAWTEXT_ELEMENTS = frozenset({"script", "style", "xmp", "noscript", "iframe", "noembed", "noframes"})

# Content is not parsed as markup but character references are decoded.
RCDATA_ELEMENTS = frozenset({"textarea", "title"})

HEADING_ELEMENTS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

# Start tags that close an open <p> in scope.
BLOCK_WITH_P_START = frozenset(
    {
        "address",
        "article",
        "aside",
        "blockquote",
        "center",
        "details",
        "dialog",
        "dir",
        "div",
        "dl",
        "dd",
        "dt",
        "fieldset",
        "figcaption",
        "figure",
        "footer",
        "form",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "hgroup",
        "hr",
        "li",
        "listing",
        "main",
        "menu",
        "nav",
        "ol",
        "p",
        "plaintext",
        "pre",
        "search",
        "section",
        "summary",
        "table",
        "ul",
    }
)

# Elements whose end tag may be omitted; closing them implicitly is not
# reported as malformed markup.
OPTIONAL_END_TAG_ELEMENTS = frozenset(
    {
        "li",
        "dt",
        "dd",
        "p",
        "rb",
        "rt",
        "rtc",
        "rp",
        "optgroup",
        "option",
        "colgroup",
        "caption",
        "thead",
        "tbody",
        "tfoot",
        "tr",
        "td",
        "th",
    }
)

# A new start tag of the key closes the nearest open element named in the
# value, as long as no scope boundary sits between them.
AUTO_CLOSING_TAGS = {
    "li": ("li",),
    "dt": ("dt", "dd"),
    "dd": ("dt", "dd"),
    "option": ("option",),
    "optgroup": ("option", "optgroup"),
    "tr": ("tr", "td", "th"),
    "td": ("td", "th"),
    "th": ("td", "th"),
    "thead": ("thead", "tbody", "tfoot", "tr", "td", "th"),
    "tbody": ("thead", "tbody", "tfoot", "tr", "td", "th"),
    "tfoot": ("thead", "tbody", "tfoot", "tr", "td", "th"),
    "rt": ("rt", "rp"),
    "rp": ("rt", "rp"),
    "a": ("a",),
    "button": ("button",),
    "form": ("form",),
    "nobr": ("nobr",),
}

DEFAULT_SCOPE_TERMINATORS = frozenset(
    {
        "applet",
        "caption",
        "html",
        "table",
        "td",
        "th",
        "marquee",
        "object",
        "template",
    }
)

# Auto-closing of list items and table parts stops at their containers.
LIST_ITEM_SCOPE_TERMINATORS = DEFAULT_SCOPE_TERMINATORS | {"ol", "ul", "menu", "dl"}
TABLE_SCOPE_TERMINATORS = frozenset({"html", "table", "template"})
SELECT_SCOPE_TERMINATORS = frozenset({"select", "datalist"})

AUTO_CLOSE_SCOPES = {
    "li": LIST_ITEM_SCOPE_TERMINATORS,
    "dt": LIST_ITEM_SCOPE_TERMINATORS,
    "dd": LIST_ITEM_SCOPE_TERMINATORS,
    "option": SELECT_SCOPE_TERMINATORS,
    "optgroup": SELECT_SCOPE_TERMINATORS,
    "tr": TABLE_SCOPE_TERMINATORS,
    "td": TABLE_SCOPE_TERMINATORS | {"tr"},
    "th": TABLE_SCOPE_TERMINATORS | {"tr"},
    "thead": TABLE_SCOPE_TERMINATORS,
    "tbody": TABLE_SCOPE_TERMINATORS,
    "tfoot": TABLE_SCOPE_TERMINATORS,
}

# Elements rendered as blocks; the pretty printer only breaks lines around
# these so inline rendering is never changed by added whitespace.
BLOCK_ELEMENTS = frozenset(
    BLOCK_WITH_P_START
    | {
        "body",
        "caption",
        "colgroup",
        "html",
        "optgroup",
        "option",
        "select",
        "tbody",
        "td",
        "tfoot",
        "th",
        "thead",
        "tr",
    }
)

PREFORMATTED_ELEMENTS = frozenset({"pre", "textarea", "listing", "plaintext"})

# Attributes carrying URLs; values are passed to the URL validator.
URL_ATTRIBUTES = frozenset(
    {
        "action",
        "background",
        "cite",
        "codebase",
        "dynsrc",
        "formaction",
        "href",
        "longdesc",
        "lowsrc",
        "poster",
        "src",
        "usemap",
    }
)

# <param name="..."> names that carry a URL when validated as <embed> attributes.
URL_PARAM_NAMES = frozenset({"src", "movie", "url", "href", "base", "codebase", "filename"})

HTML_SPACE_CHARACTERS = "\t\n\f\r "
