import bisect
import re
import sys

from .constants import RAWTEXT_ELEMENTS, RCDATA_ELEMENTS
from .entities import decode_entities
from .tokens import (
    CharacterTokens,
    CommentToken,
    DoctypeToken,
    EOFToken,
    ProcessingInstructionToken,
    Tag,
)

_ASCII_LOWER_TABLE = str.maketrans({chr(code): chr(code + 32) for code in range(65, 91)})
_WHITESPACE = "\t\n\f "

_TAG_NAME_TERMINATOR_PATTERN = re.compile(r"[\t\n\f />]")
_ATTR_NAME_TERMINATOR_PATTERN = re.compile(r"[\t\n\f />=]")
_ATTR_VALUE_UNQUOTED_PATTERN = re.compile(r"[\t\n\f >]")

_RAWTEXT_END_PATTERNS = {}


def _rawtext_end_pattern(tag_name):
    pattern = _RAWTEXT_END_PATTERNS.get(tag_name)
    if pattern is None:
        pattern = re.compile(rf"</{re.escape(tag_name)}(?=[\t\n\f />])", re.IGNORECASE)
        _RAWTEXT_END_PATTERNS[tag_name] = pattern
    return pattern


def _is_ascii_alpha(c):
    return c is not None and ("a" <= c <= "z" or "A" <= c <= "Z")


class TokenizerOpts:
    __slots__ = ("discard_bom",)

    def __init__(self, discard_bom=True):
        self.discard_bom = bool(discard_bom)


class Tokenizer:
    """Character-level HTML tokenizer feeding a token sink.

    The sink must provide ``process_token(token)`` and
    ``parse_error(code, *args, line=None, column=None)``.
    """

    DATA = 0
    TAG_OPEN = 1
    END_TAG_OPEN = 2
    TAG_NAME = 3
    BEFORE_ATTRIBUTE_NAME = 4
    ATTRIBUTE_NAME = 5
    AFTER_ATTRIBUTE_NAME = 6
    BEFORE_ATTRIBUTE_VALUE = 7
    ATTRIBUTE_VALUE_DOUBLE = 8
    ATTRIBUTE_VALUE_SINGLE = 9
    ATTRIBUTE_VALUE_UNQUOTED = 10
    AFTER_ATTRIBUTE_VALUE_QUOTED = 11
    SELF_CLOSING_START_TAG = 12
    MARKUP_DECLARATION_OPEN = 13
    COMMENT_START = 14
    COMMENT_START_DASH = 15
    COMMENT = 16
    COMMENT_END_DASH = 17
    COMMENT_END = 18
    COMMENT_END_BANG = 19
    BOGUS_COMMENT = 20
    DOCTYPE = 21
    RAWTEXT = 22
    PLAINTEXT = 23

    __slots__ = (
        "buffer",
        "comment_is_pi",
        "current_attr_name",
        "current_attr_names",
        "current_attr_value",
        "current_char",
        "current_comment",
        "current_tag_attrs",
        "current_tag_kind",
        "current_tag_name",
        "current_tag_self_closing",
        "length",
        "newlines",
        "opts",
        "original_tag_name",
        "pos",
        "rawtext_tag_name",
        "sink",
        "state",
        "tag_start",
        "text_buffer",
    )

    def __init__(self, sink, opts=None):
        self.sink = sink
        self.opts = opts or TokenizerOpts()

        self.state = self.DATA
        self.buffer = ""
        self.length = 0
        self.pos = 0
        self.current_char = ""
        self.newlines = []
        self.tag_start = 0

        # Reusable buffers to avoid per-token allocations.
        self.text_buffer = []
        self.current_tag_name = []
        self.original_tag_name = []
        self.current_tag_attrs = []  # list of (name, value)
        self.current_attr_names = set()
        self.current_attr_name = []
        self.current_attr_value = []
        self.current_tag_self_closing = False
        self.current_tag_kind = Tag.START
        self.current_comment = []
        self.comment_is_pi = False
        self.rawtext_tag_name = None

    def run(self, html):
        html = html or ""
        if html and html[0] == "\ufeff" and self.opts.discard_bom:
            html = html[1:]
        if "\r" in html:
            html = html.replace("\r\n", "\n").replace("\r", "\n")
        if "\0" in html:
            first = html.index("\0")
            line, column = self._position_in(html, first)
            self.sink.parse_error("unexpected-null-character", html.count("\0"), line=line, column=column)
            html = html.replace("\0", "\ufffd")

        self.buffer = html
        self.length = len(html)
        self.pos = 0
        self.current_char = ""
        self.newlines = [index for index, ch in enumerate(html) if ch == "\n"]
        self.text_buffer.clear()
        self.current_comment.clear()
        self.rawtext_tag_name = None
        self.state = self.DATA

        while True:
            state = self.state
            if state == self.DATA:
                if self._state_data():
                    break
            elif state == self.TAG_OPEN:
                if self._state_tag_open():
                    break
            elif state == self.END_TAG_OPEN:
                if self._state_end_tag_open():
                    break
            elif state == self.TAG_NAME:
                if self._state_tag_name():
                    break
            elif state == self.BEFORE_ATTRIBUTE_NAME:
                if self._state_before_attribute_name():
                    break
            elif state == self.ATTRIBUTE_NAME:
                if self._state_attribute_name():
                    break
            elif state == self.AFTER_ATTRIBUTE_NAME:
                if self._state_after_attribute_name():
                    break
            elif state == self.BEFORE_ATTRIBUTE_VALUE:
                if self._state_before_attribute_value():
                    break
            elif state == self.ATTRIBUTE_VALUE_DOUBLE:
                if self._state_attribute_value_quoted('"'):
                    break
            elif state == self.ATTRIBUTE_VALUE_SINGLE:
                if self._state_attribute_value_quoted("'"):
                    break
            elif state == self.ATTRIBUTE_VALUE_UNQUOTED:
                if self._state_attribute_value_unquoted():
                    break
            elif state == self.AFTER_ATTRIBUTE_VALUE_QUOTED:
                if self._state_after_attribute_value_quoted():
                    break
            elif state == self.SELF_CLOSING_START_TAG:
                if self._state_self_closing_start_tag():
                    break
            elif state == self.MARKUP_DECLARATION_OPEN:
                if self._state_markup_declaration_open():
                    break
            elif state == self.COMMENT_START:
                if self._state_comment_start():
                    break
            elif state == self.COMMENT_START_DASH:
                if self._state_comment_start_dash():
                    break
            elif state == self.COMMENT:
                if self._state_comment():
                    break
            elif state == self.COMMENT_END_DASH:
                if self._state_comment_end_dash():
                    break
            elif state == self.COMMENT_END:
                if self._state_comment_end():
                    break
            elif state == self.COMMENT_END_BANG:
                if self._state_comment_end_bang():
                    break
            elif state == self.BOGUS_COMMENT:
                if self._state_bogus_comment():
                    break
            elif state == self.DOCTYPE:
                if self._state_doctype():
                    break
            elif state == self.RAWTEXT:
                if self._state_rawtext():
                    break
            elif state == self.PLAINTEXT:
                if self._state_plaintext():
                    break

    # ---------------------
    # State handlers
    # ---------------------

    def _state_data(self):
        lt_index = self.buffer.find("<", self.pos)
        if lt_index == -1:
            if self.pos < self.length:
                self.text_buffer.append(self.buffer[self.pos :])
            self.pos = self.length
            return self._emit_eof()
        if lt_index > self.pos:
            self.text_buffer.append(self.buffer[self.pos : lt_index])
        self.tag_start = lt_index
        self.pos = lt_index + 1
        self.state = self.TAG_OPEN
        return False

    def _state_tag_open(self):
        c = self._get_char()
        if c is None:
            self.text_buffer.append("<")
            return self._emit_eof()
        if c == "!":
            self.state = self.MARKUP_DECLARATION_OPEN
            return False
        if c == "/":
            self.state = self.END_TAG_OPEN
            return False
        if c == "?":
            self.current_comment.clear()
            self.comment_is_pi = True
            self._reconsume_current()
            self.state = self.BOGUS_COMMENT
            return False
        if _is_ascii_alpha(c):
            self._flush_text()
            self._start_tag(Tag.START)
            self._reconsume_current()
            self.state = self.TAG_NAME
            return False
        # "a < b" is just text.
        self.text_buffer.append("<")
        self._reconsume_current()
        self.state = self.DATA
        return False

    def _state_end_tag_open(self):
        c = self._get_char()
        if c is None:
            self.text_buffer.append("</")
            return self._emit_eof()
        if _is_ascii_alpha(c):
            self._flush_text()
            self._start_tag(Tag.END)
            self._reconsume_current()
            self.state = self.TAG_NAME
            return False
        if c == ">":
            # "</>" is dropped entirely.
            self.state = self.DATA
            return False
        self.current_comment.clear()
        self._reconsume_current()
        self.state = self.BOGUS_COMMENT
        return False

    def _state_tag_name(self):
        match = _TAG_NAME_TERMINATOR_PATTERN.search(self.buffer, self.pos)
        if match is None:
            self.pos = self.length
            return self._eof_in_tag()
        chunk = self.buffer[self.pos : match.start()]
        self.original_tag_name.append(chunk)
        self.current_tag_name.append(chunk.translate(_ASCII_LOWER_TABLE))
        self.pos = match.end()
        c = match.group()
        if c == ">":
            self._emit_current_tag()
        elif c == "/":
            self.state = self.SELF_CLOSING_START_TAG
        else:
            self.state = self.BEFORE_ATTRIBUTE_NAME
        return False

    def _state_before_attribute_name(self):
        while True:
            c = self._get_char()
            if c is None:
                return self._eof_in_tag()
            if c in _WHITESPACE:
                continue
            if c == "/":
                self.state = self.SELF_CLOSING_START_TAG
                return False
            if c == ">":
                self._emit_current_tag()
                return False
            self._start_attribute()
            if c == "=":
                # A leading "=" becomes part of the attribute name.
                self.current_attr_name.append(c)
            else:
                self._reconsume_current()
            self.state = self.ATTRIBUTE_NAME
            return False

    def _state_attribute_name(self):
        match = _ATTR_NAME_TERMINATOR_PATTERN.search(self.buffer, self.pos)
        if match is None:
            self.pos = self.length
            return self._eof_in_tag()
        chunk = self.buffer[self.pos : match.start()]
        if chunk:
            self.current_attr_name.append(chunk.translate(_ASCII_LOWER_TABLE))
        self.pos = match.end()
        c = match.group()
        if c == "=":
            self.state = self.BEFORE_ATTRIBUTE_VALUE
            return False
        if c == ">":
            self._emit_current_tag()
        elif c == "/":
            self._finish_attribute()
            self.state = self.SELF_CLOSING_START_TAG
        else:
            self.state = self.AFTER_ATTRIBUTE_NAME
        return False

    def _state_after_attribute_name(self):
        while True:
            c = self._get_char()
            if c is None:
                return self._eof_in_tag()
            if c in _WHITESPACE:
                continue
            if c == "/":
                self._finish_attribute()
                self.state = self.SELF_CLOSING_START_TAG
                return False
            if c == ">":
                self._emit_current_tag()
                return False
            if c == "=":
                self.state = self.BEFORE_ATTRIBUTE_VALUE
                return False
            self._finish_attribute()
            self._start_attribute()
            self._reconsume_current()
            self.state = self.ATTRIBUTE_NAME
            return False

    def _state_before_attribute_value(self):
        while True:
            c = self._get_char()
            if c is None:
                return self._eof_in_tag()
            if c in _WHITESPACE:
                continue
            if c == '"':
                self.state = self.ATTRIBUTE_VALUE_DOUBLE
                return False
            if c == "'":
                self.state = self.ATTRIBUTE_VALUE_SINGLE
                return False
            if c == ">":
                # "<a href=>": attribute with an empty value.
                self._finish_attribute()
                self._emit_current_tag()
                return False
            self._reconsume_current()
            self.state = self.ATTRIBUTE_VALUE_UNQUOTED
            return False

    def _state_attribute_value_quoted(self, quote):
        end = self.buffer.find(quote, self.pos)
        if end == -1:
            # The incomplete tag is discarded, as browsers do.
            self.pos = self.length
            return self._eof_in_tag()
        self.current_attr_value.append(self.buffer[self.pos : end])
        self.pos = end + 1
        self._finish_attribute()
        self.state = self.AFTER_ATTRIBUTE_VALUE_QUOTED
        return False

    def _state_attribute_value_unquoted(self):
        match = _ATTR_VALUE_UNQUOTED_PATTERN.search(self.buffer, self.pos)
        if match is None:
            self.pos = self.length
            return self._eof_in_tag()
        self.current_attr_value.append(self.buffer[self.pos : match.start()])
        self.pos = match.end()
        self._finish_attribute()
        if match.group() == ">":
            self._emit_current_tag()
        else:
            self.state = self.BEFORE_ATTRIBUTE_NAME
        return False

    def _state_after_attribute_value_quoted(self):
        c = self._get_char()
        if c is None:
            return self._eof_in_tag()
        if c in _WHITESPACE:
            self.state = self.BEFORE_ATTRIBUTE_NAME
            return False
        if c == "/":
            self.state = self.SELF_CLOSING_START_TAG
            return False
        if c == ">":
            self._emit_current_tag()
            return False
        # Missing whitespace between attributes: <a x="1"y="2">.
        self._reconsume_current()
        self.state = self.BEFORE_ATTRIBUTE_NAME
        return False

    def _state_self_closing_start_tag(self):
        c = self._get_char()
        if c is None:
            return self._eof_in_tag()
        if c == ">":
            self.current_tag_self_closing = True
            self._emit_current_tag()
            return False
        self._reconsume_current()
        self.state = self.BEFORE_ATTRIBUTE_NAME
        return False

    def _state_markup_declaration_open(self):
        self._flush_text()
        self.current_comment.clear()
        self.comment_is_pi = False
        if self._consume_if("--"):
            self.state = self.COMMENT_START
            return False
        if self._consume_case_insensitive("DOCTYPE"):
            self.state = self.DOCTYPE
            return False
        if self._consume_if("[CDATA["):
            # Outside SVG/MathML a CDATA section is a bogus comment that keeps
            # its "[CDATA[" prefix.
            self.current_comment.append("[CDATA[")
        self.state = self.BOGUS_COMMENT
        return False

    def _state_comment_start(self):
        c = self._get_char()
        if c is None:
            return self._emit_comment_and_eof()
        if c == "-":
            self.state = self.COMMENT_START_DASH
            return False
        if c == ">":
            # "<!-->" is an (abruptly closed) empty comment.
            self._emit_comment()
            return False
        self._reconsume_current()
        self.state = self.COMMENT
        return False

    def _state_comment_start_dash(self):
        c = self._get_char()
        if c is None:
            return self._emit_comment_and_eof()
        if c == "-":
            self.state = self.COMMENT_END
            return False
        if c == ">":
            self._emit_comment()
            return False
        self.current_comment.append("-")
        self._reconsume_current()
        self.state = self.COMMENT
        return False

    def _state_comment(self):
        dash = self.buffer.find("-", self.pos)
        if dash == -1:
            self.current_comment.append(self.buffer[self.pos :])
            self.pos = self.length
            return self._emit_comment_and_eof()
        self.current_comment.append(self.buffer[self.pos : dash])
        self.pos = dash + 1
        self.state = self.COMMENT_END_DASH
        return False

    def _state_comment_end_dash(self):
        c = self._get_char()
        if c is None:
            return self._emit_comment_and_eof()
        if c == "-":
            self.state = self.COMMENT_END
            return False
        self.current_comment.append("-")
        self._reconsume_current()
        self.state = self.COMMENT
        return False

    def _state_comment_end(self):
        c = self._get_char()
        if c is None:
            return self._emit_comment_and_eof()
        if c == ">":
            self._emit_comment()
            return False
        if c == "!":
            self.state = self.COMMENT_END_BANG
            return False
        if c == "-":
            self.current_comment.append("-")
            return False
        self.current_comment.append("--")
        self._reconsume_current()
        self.state = self.COMMENT
        return False

    def _state_comment_end_bang(self):
        c = self._get_char()
        if c is None:
            return self._emit_comment_and_eof()
        if c == ">":
            # "--!>" closes a comment too.
            self._emit_comment()
            return False
        self.current_comment.append("--!")
        if c == "-":
            self.state = self.COMMENT_END_DASH
            return False
        self._reconsume_current()
        self.state = self.COMMENT
        return False

    def _state_bogus_comment(self):
        self._flush_text()
        end = self.buffer.find(">", self.pos)
        if end == -1:
            self.current_comment.append(self.buffer[self.pos :])
            self.pos = self.length
            return self._emit_comment_and_eof()
        self.current_comment.append(self.buffer[self.pos : end])
        self.pos = end + 1
        self._emit_comment()
        return False

    def _state_doctype(self):
        end = self.buffer.find(">", self.pos)
        body = self.buffer[self.pos : end if end != -1 else self.length]
        words = body.split()
        self._emit_token(DoctypeToken(words[0].lower() if words else None))
        if end == -1:
            self.pos = self.length
            return self._emit_eof()
        self.pos = end + 1
        self.state = self.DATA
        return False

    def _state_rawtext(self):
        match = _rawtext_end_pattern(self.rawtext_tag_name).search(self.buffer, self.pos)
        if match is None:
            self.text_buffer.append(self.buffer[self.pos :])
            self.pos = self.length
            return self._emit_eof()
        self.text_buffer.append(self.buffer[self.pos : match.start()])
        self._flush_text()
        self.tag_start = match.start()
        self.pos = match.start() + 2
        self._start_tag(Tag.END)
        self.state = self.TAG_NAME
        return False

    def _state_plaintext(self):
        # Everything after <plaintext> is text; there is no end tag.
        self.text_buffer.append(self.buffer[self.pos :])
        self.pos = self.length
        return self._emit_eof()

    # ---------------------
    # Low-level helpers
    # ---------------------

    def _get_char(self):
        if self.pos >= self.length:
            self.current_char = None
            return None
        c = self.buffer[self.pos]
        self.pos += 1
        self.current_char = c
        return c

    def _reconsume_current(self):
        self.pos -= 1

    def _position_in(self, text, pos):
        line = text.count("\n", 0, pos) + 1
        column = pos - (text.rfind("\n", 0, pos) + 1) + 1
        return line, column

    def position(self, pos=None):
        """Return the 1-based (line, column) of a buffer offset."""
        if pos is None:
            pos = self.pos
        line_index = bisect.bisect_left(self.newlines, pos)
        line_start = self.newlines[line_index - 1] + 1 if line_index else 0
        return line_index + 1, pos - line_start + 1

    def _flush_text(self):
        if not self.text_buffer:
            return
        data = "".join(self.text_buffer)
        self.text_buffer.clear()
        if not data:
            return
        # RAWTEXT elements and PLAINTEXT keep character references literal.
        raw = self.state == self.PLAINTEXT or (
            self.state == self.RAWTEXT and self.rawtext_tag_name not in RCDATA_ELEMENTS
        )
        if not raw and "&" in data:
            data = decode_entities(data)
        self._emit_token(CharacterTokens(data))

    def _start_tag(self, kind):
        self.current_tag_kind = kind
        self.current_tag_name.clear()
        self.original_tag_name.clear()
        self.current_tag_attrs = []
        self.current_attr_names.clear()
        self.current_attr_name.clear()
        self.current_attr_value.clear()
        self.current_tag_self_closing = False

    def _start_attribute(self):
        self.current_attr_name.clear()
        self.current_attr_value.clear()

    def _finish_attribute(self):
        if not self.current_attr_name:
            self.current_attr_value.clear()
            return
        name = "".join(self.current_attr_name)
        value = "".join(self.current_attr_value)
        if "&" in value:
            value = decode_entities(value, in_attribute=True)
        if name in self.current_attr_names:
            if self.current_tag_kind == Tag.START:
                line, column = self.position(self.tag_start)
                self.sink.parse_error(
                    "duplicate-attribute", "".join(self.current_tag_name), name, line=line, column=column
                )
        else:
            self.current_attr_names.add(name)
            self.current_tag_attrs.append((name, value))
        self.current_attr_name.clear()
        self.current_attr_value.clear()

    def _emit_current_tag(self):
        self._finish_attribute()
        name = sys.intern("".join(self.current_tag_name))
        line, column = self.position(self.tag_start)
        tag = Tag(
            self.current_tag_kind,
            name,
            self.current_tag_attrs,
            self.current_tag_self_closing,
            raw_name="".join(self.original_tag_name),
            line=line,
            column=column,
        )
        self.current_tag_attrs = []
        self.state = self.DATA
        if tag.kind == Tag.START:
            if name in RAWTEXT_ELEMENTS or name in RCDATA_ELEMENTS:
                self.state = self.RAWTEXT
                self.rawtext_tag_name = name
            elif name == "plaintext":
                self.state = self.PLAINTEXT
        else:
            self.rawtext_tag_name = None
        self._emit_token(tag)

    def _eof_in_tag(self):
        line, column = self.position(self.tag_start)
        self.sink.parse_error("eof-in-tag", line=line, column=column)
        self.text_buffer.clear()
        self._emit_token(EOFToken())
        return True

    def _emit_comment(self):
        data = "".join(self.current_comment)
        self.current_comment.clear()
        line, column = self.position(self.tag_start)
        if self.comment_is_pi:
            self.comment_is_pi = False
            self._emit_token(ProcessingInstructionToken(data, line, column))
        else:
            self._emit_token(CommentToken(data, line, column))
        self.state = self.DATA

    def _emit_comment_and_eof(self):
        self._emit_comment()
        self._emit_token(EOFToken())
        return True

    def _emit_eof(self):
        self._flush_text()
        self._emit_token(EOFToken())
        return True

    def _emit_token(self, token):
        self.sink.process_token(token)

    def _consume_if(self, literal):
        end = self.pos + len(literal)
        if self.buffer[self.pos : end] != literal:
            return False
        self.pos = end
        return True

    def _consume_case_insensitive(self, literal):
        end = self.pos + len(literal)
        if self.buffer[self.pos : end].lower() != literal.lower():
            return False
        self.pos = end
        return True
