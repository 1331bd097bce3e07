"""Index-addressed node storage for one parsed fragment.

Nodes live in parallel lists inside a :class:`NodeArena` and are referred to
by integer index. Each element owns an ordered list of child indices; there
are no parent or sibling pointers, so the tree can be rearranged with plain
list splices and cannot form cycles. Index 0 is the synthetic fragment root.

Detached nodes keep their slots until the arena is discarded at the end of
the scan.
"""

import enum


class NodeKind(enum.IntEnum):
    FRAGMENT = 0
    ELEMENT = 1
    TEXT = 2
    COMMENT = 3


class NodeArena:
    ROOT = 0

    __slots__ = ("attrs", "children", "columns", "data", "kinds", "lines", "names", "raw_names")

    def __init__(self):
        self.kinds = []
        self.names = []
        self.raw_names = []
        self.attrs = []  # per node: list of [name, value] pairs, in source order
        self.children = []  # per node: list of child indices, in document order
        self.data = []
        self.lines = []
        self.columns = []
        self._add(NodeKind.FRAGMENT, "#document-fragment")

    def __len__(self):
        return len(self.kinds)

    def _add(self, kind, name, raw_name=None, attrs=None, data=None, line=None, column=None):
        index = len(self.kinds)
        self.kinds.append(kind)
        self.names.append(name)
        self.raw_names.append(raw_name or name)
        self.attrs.append(attrs if attrs is not None else [])
        self.children.append([])
        self.data.append(data)
        self.lines.append(line)
        self.columns.append(column)
        return index

    # ---------
    # Creation
    # ---------

    def create_element(self, name, attrs=None, *, raw_name=None, line=None, column=None):
        pairs = [[attr_name, value] for attr_name, value in attrs] if attrs else []
        return self._add(NodeKind.ELEMENT, name, raw_name, pairs, None, line, column)

    def create_text(self, data):
        return self._add(NodeKind.TEXT, "#text", data=data)

    def create_comment(self, data, *, line=None, column=None):
        return self._add(NodeKind.COMMENT, "#comment", data=data, line=line, column=column)

    # ---------
    # Structure
    # ---------

    def append(self, parent, child):
        self.children[parent].append(child)
        return child

    def append_text(self, parent, data):
        """Append character data, merging with a trailing text child."""
        siblings = self.children[parent]
        if siblings and self.kinds[siblings[-1]] == NodeKind.TEXT:
            last = siblings[-1]
            self.data[last] += data
            return last
        return self.append(parent, self.create_text(data))

    def unwrap(self, parent, position):
        """Replace the child at ``position`` by its own children.

        Returns how many children were promoted.
        """
        siblings = self.children[parent]
        node = siblings[position]
        promoted = self.children[node]
        siblings[position : position + 1] = promoted
        self.children[node] = []
        return len(promoted)

    def remove(self, parent, position):
        """Detach the child at ``position`` together with its subtree."""
        return self.children[parent].pop(position)

    def replace(self, parent, position, nodes):
        """Replace the child at ``position`` with the given node indices."""
        self.children[parent][position : position + 1] = list(nodes)

    # --------
    # Queries
    # --------

    def kind(self, index):
        return self.kinds[index]

    def is_element(self, index):
        return self.kinds[index] == NodeKind.ELEMENT

    def name(self, index):
        return self.names[index]

    def get_attr(self, index, name):
        for attr_name, value in self.attrs[index]:
            if attr_name == name:
                return value
        return None

    def has_attr(self, index, name):
        return any(attr_name == name for attr_name, _ in self.attrs[index])

    def set_attr(self, index, name, value):
        for pair in self.attrs[index]:
            if pair[0] == name:
                pair[1] = value
                return
        self.attrs[index].append([name, value])

    def iter_descendants(self, index=ROOT):
        """Yield attached descendants of ``index`` in document (pre-)order."""
        stack = list(reversed(self.children[index]))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(self.children[node]))

    def iter_elements(self, index=ROOT):
        for node in self.iter_descendants(index):
            if self.kinds[node] == NodeKind.ELEMENT:
                yield node

    def text_content(self, index=ROOT):
        parts = []
        for node in self.iter_descendants(index):
            if self.kinds[node] == NodeKind.TEXT:
                parts.append(self.data[node])
        return "".join(parts)

    def depth(self, index=ROOT):
        """Height of the subtree under ``index`` (0 for a leaf)."""
        best = 0
        stack = [(child, 1) for child in self.children[index]]
        while stack:
            node, level = stack.pop()
            best = max(best, level)
            stack.extend((child, level + 1) for child in self.children[node])
        return best

    def __repr__(self):
        return f"<NodeArena {len(self.kinds)} nodes>"
