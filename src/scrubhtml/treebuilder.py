from .constants import (
    AUTO_CLOSE_SCOPES,
    AUTO_CLOSING_TAGS,
    BLOCK_WITH_P_START,
    DEFAULT_SCOPE_TERMINATORS,
    HEADING_ELEMENTS,
    OPTIONAL_END_TAG_ELEMENTS,
    TABLE_SCOPE_TERMINATORS,
    VOID_ELEMENTS,
)
from .errors import NestingTooDeepError, warning
from .node import NodeArena
from .tokens import CharacterTokens, CommentToken, DoctypeToken, EOFToken, ProcessingInstructionToken, Tag

# Closing these implicitly is normal HTML and not worth a warning.
_SILENT_CLOSE_ELEMENTS = OPTIONAL_END_TAG_ELEMENTS | {"plaintext"}

# End tags of table parts reach through open cells.
_END_TAG_SCOPES = {**AUTO_CLOSE_SCOPES, "table": TABLE_SCOPE_TERMINATORS, "caption": TABLE_SCOPE_TERMINATORS}


class TreeBuilder:
    """Builds a fragment tree from tokens.

    This is a reduced tree construction algorithm: there is a single
    "in body" behavior, no implied html/head/body, no foster parenting and no
    adoption agency. Structure that a browser would repair (unclosed elements,
    stray end tags, misnested blocks) is repaired here in the simplest way that
    re-parses to the same tree, and reported as a warning.
    """

    __slots__ = ("arena", "errors", "max_depth", "open_elements")

    def __init__(self, *, max_depth=None, errors=None):
        self.arena = NodeArena()
        self.errors = errors if errors is not None else []
        self.max_depth = max_depth
        # Stack of node indices; the fragment root is never popped.
        self.open_elements = [NodeArena.ROOT]

    def parse_error(self, code, *args, line=None, column=None):
        self.errors.append(warning(code, *args, line=line, column=column))

    @property
    def current_node(self):
        return self.open_elements[-1]

    # ---------------
    # Scope helpers
    # ---------------

    def _find_in_scope(self, target, terminators=None):
        """Stack position of the nearest open ``target``, or -1 if a scope
        boundary comes first."""
        if terminators is None:
            terminators = DEFAULT_SCOPE_TERMINATORS
        names = self.arena.names
        for position in range(len(self.open_elements) - 1, 0, -1):
            name = names[self.open_elements[position]]
            if name == target:
                return position
            if name in terminators:
                return -1
        return -1

    def _find_open(self, target):
        names = self.arena.names
        for position in range(len(self.open_elements) - 1, 0, -1):
            if names[self.open_elements[position]] == target:
                return position
        return -1

    def _pop_to(self, position, explicit=None):
        """Close every open element from the top of the stack down to
        ``position`` inclusive.

        ``explicit`` is the node closed by an end tag; every other element
        closed here was left open in the source.
        """
        arena = self.arena
        while len(self.open_elements) > position:
            node = self.open_elements.pop()
            if node == explicit:
                continue
            name = arena.names[node]
            if name not in _SILENT_CLOSE_ELEMENTS:
                self.parse_error(
                    "unclosed-tag", arena.raw_names[node], line=arena.lines[node], column=arena.columns[node]
                )

    # ---------------
    # Token dispatch
    # ---------------

    def process_token(self, token):
        if isinstance(token, CharacterTokens):
            self.arena.append_text(self.current_node, token.data)
        elif isinstance(token, Tag):
            if token.kind == Tag.START:
                self._start_tag(token)
            else:
                self._end_tag(token)
        elif isinstance(token, CommentToken):
            node = self.arena.create_comment(token.data, line=token.line, column=token.column)
            self.arena.append(self.current_node, node)
        elif isinstance(token, ProcessingInstructionToken):
            # <?xml ...?> declarations are dropped silently so that output
            # carrying a declaration re-scans cleanly.
            if not token.is_xml_declaration:
                self.parse_error("processing-instruction-removed", line=token.line, column=token.column)
        elif isinstance(token, (DoctypeToken, EOFToken)):
            # A fragment has no document type; EOF is handled by finish().
            pass

    def _start_tag(self, token):
        name = token.name

        if name in BLOCK_WITH_P_START:
            # Blocks close an open <p> anywhere on the stack, so a <p> never
            # ends up containing a block and the output re-parses unchanged.
            position = self._find_open("p")
            if position != -1:
                self._pop_to(position)

        if name in HEADING_ELEMENTS and self.arena.names[self.current_node] in HEADING_ELEMENTS:
            self._pop_to(len(self.open_elements) - 1)

        closes = AUTO_CLOSING_TAGS.get(name)
        if closes:
            terminators = AUTO_CLOSE_SCOPES.get(name, DEFAULT_SCOPE_TERMINATORS)
            for peer in closes:
                position = self._find_in_scope(peer, terminators)
                if position != -1:
                    self._pop_to(position)
                    break

        if self.max_depth is not None and len(self.open_elements) > self.max_depth:
            raise NestingTooDeepError(self.max_depth, token.line)

        node = self.arena.create_element(
            name, token.attrs, raw_name=token.raw_name, line=token.line, column=token.column
        )
        self.arena.append(self.current_node, node)

        if name in VOID_ELEMENTS:
            return
        if token.self_closing:
            self.parse_error("non-void-self-closing", token.raw_name, line=token.line, column=token.column)
        self.open_elements.append(node)

    def _end_tag(self, token):
        name = token.name
        terminators = _END_TAG_SCOPES.get(name, DEFAULT_SCOPE_TERMINATORS)
        position = self._find_in_scope(name, terminators) if name not in VOID_ELEMENTS else -1
        if position == -1:
            self.parse_error("unexpected-end-tag", token.raw_name, line=token.line, column=token.column)
            return
        self._pop_to(position, explicit=self.open_elements[position])

    def finish(self):
        """Close everything still open and return the arena."""
        self._pop_to(1)
        return self.arena
