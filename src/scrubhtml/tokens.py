class Tag:
    __slots__ = ("attrs", "column", "kind", "line", "name", "raw_name", "self_closing")

    START = 0
    END = 1

    def __init__(self, kind, name, attrs, self_closing=False, raw_name=None, line=None, column=None):
        self.kind = kind
        self.name = name
        self.raw_name = raw_name or name
        self.attrs = attrs if attrs is not None else []
        self.self_closing = bool(self_closing)
        self.line = line
        self.column = column

    def __repr__(self):
        attrs = " ".join(f"{name}={value!r}" for name, value in self.attrs)
        closing = " /" if self.self_closing else ""
        kind_str = "start" if self.kind == self.START else "end"
        return f"<{kind_str}:{self.name}{closing} {attrs}>"


class CharacterTokens:
    __slots__ = ("data",)

    def __init__(self, data):
        self.data = data

    def __repr__(self):
        return f"CharacterTokens({self.data!r})"


class CommentToken:
    __slots__ = ("data", "line", "column")

    def __init__(self, data, line=None, column=None):
        self.data = data
        self.line = line
        self.column = column

    def __repr__(self):
        return f"CommentToken({self.data!r})"


class ProcessingInstructionToken:
    """``<?target ...>``; HTML parses these as bogus comments."""

    __slots__ = ("data", "line", "column")

    def __init__(self, data, line=None, column=None):
        self.data = data
        self.line = line
        self.column = column

    @property
    def is_xml_declaration(self):
        return self.data[:4].lower() == "?xml" and (len(self.data) == 4 or self.data[4] in " \t\n\f?")


class DoctypeToken:
    __slots__ = ("name",)

    def __init__(self, name=None):
        self.name = name


class EOFToken:
    __slots__ = ()
