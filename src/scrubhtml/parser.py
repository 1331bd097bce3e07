"""Fragment parser entry point."""

from .errors import InputTooLargeError
from .tokenizer import Tokenizer, TokenizerOpts
from .treebuilder import TreeBuilder


class FragmentParser:
    __slots__ = ("arena", "errors", "tokenizer", "tree_builder")

    def __init__(
        self,
        html,
        *,
        max_length=None,
        max_depth=None,
        errors=None,
        tokenizer_opts=None,
    ):
        html = html or ""
        if max_length is not None and len(html) > max_length:
            raise InputTooLargeError(len(html), max_length)
        self.errors = errors if errors is not None else []
        self.tree_builder = TreeBuilder(max_depth=max_depth, errors=self.errors)
        self.tokenizer = Tokenizer(self.tree_builder, tokenizer_opts or TokenizerOpts())
        self.tokenizer.run(html)
        self.arena = self.tree_builder.finish()


def parse(html, max_length, *, max_depth=None, errors=None):
    """Parse an HTML fragment into a :class:`~scrubhtml.node.NodeArena`.

    Malformed markup never fails: it is repaired and reported as warnings
    appended to ``errors``. Raises :class:`InputTooLargeError` when ``html``
    is longer than ``max_length`` and :class:`NestingTooDeepError` when
    elements nest deeper than ``max_depth``.
    """
    return FragmentParser(html, max_length=max_length, max_depth=max_depth, errors=errors).arena
