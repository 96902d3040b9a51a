"""Flat PHP token stream on top of the tree-sitter concrete syntax tree."""

import re
from bisect import bisect_right

import tree_sitter_php
from tree_sitter import Language, Parser

from xref.errors import ParseError
from xref.models import Token, TokenKind

# syntax nodes emitted as a single token instead of their leaves
ATOMIC_NODES = {
    "variable_name": TokenKind.VARIABLE,
    "name": TokenKind.IDENTIFIER,
    "qualified_name": TokenKind.IDENTIFIER,
    "namespace_name": TokenKind.IDENTIFIER,
    "relative_name": TokenKind.IDENTIFIER,
    "string": TokenKind.STRING,
    "encapsed_string": TokenKind.STRING,
    "heredoc": TokenKind.STRING,
    "nowdoc": TokenKind.STRING,
    "shell_command_expression": TokenKind.STRING,
    "integer": TokenKind.NUMBER,
    "float": TokenKind.NUMBER,
    "comment": TokenKind.COMMENT,
    "php_tag": TokenKind.OPEN_TAG,
    "php_end_tag": TokenKind.CLOSE_TAG,
    "text": TokenKind.INLINE_HTML,
}

_WORD = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PhpLexer:
    """Tokenizer for PHP source code using tree-sitter."""

    def __init__(self):
        self.language = Language(tree_sitter_php.language_php())
        self.parser = Parser(self.language)

    def tokenize(self, content: bytes) -> list[Token]:
        """Split content into tokens; texts of all tokens concatenate back to content.

        Raises:
            ParseError: If content is not valid UTF-8 or has syntax errors.
        """
        newlines = [m.start() for m in re.finditer(b"\n", content)]

        def line_at(offset: int) -> int:
            return bisect_right(newlines, offset - 1) + 1

        try:
            content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(
                f"invalid UTF-8 sequence at byte {e.start}",
                line_number=line_at(e.start),
                byte_offset=e.start,
            ) from e

        tree = self.parser.parse(content)
        root = tree.root_node
        if root.has_error:
            error_node = self._first_error(root)
            offset = error_node.start_byte if error_node is not None else 0
            raise ParseError(
                f"syntax error at line {line_at(offset)}",
                line_number=line_at(offset),
                byte_offset=offset,
            )

        tokens: list[Token] = []
        position = 0

        def emit(kind: TokenKind, start: int, end: int) -> None:
            text = content[start:end].decode("utf-8")
            tokens.append(Token(kind=kind, text=text, line_number=line_at(start), index=len(tokens)))

        for node, kind in self._leaves(root):
            if node.start_byte == node.end_byte:
                continue
            if node.start_byte > position:
                emit(TokenKind.WHITESPACE, position, node.start_byte)
            emit(kind, node.start_byte, node.end_byte)
            position = node.end_byte
        if position < len(content):
            emit(TokenKind.WHITESPACE, position, len(content))

        return tokens

    def _leaves(self, root):
        """Yield (node, kind) for every token-level node in source order."""
        stack = [root]
        while stack:
            node = stack.pop()
            kind = ATOMIC_NODES.get(node.type)
            if kind is not None:
                yield node, kind
            elif node.child_count == 0:
                yield node, self._classify_leaf(node)
            else:
                stack.extend(reversed(node.children))

    def _classify_leaf(self, node) -> TokenKind:
        if node.type == "?>":
            return TokenKind.CLOSE_TAG
        if node.is_named:
            # boolean, null, cast_type and other named leaves
            return TokenKind.IDENTIFIER
        if _WORD.match(node.type):
            return TokenKind.KEYWORD
        return TokenKind.PUNCTUATION

    def _first_error(self, root):
        """Find the first ERROR or MISSING node in source order."""
        stack = [root]
        while stack:
            node = stack.pop()
            if node.is_error or node.is_missing:
                return node
            stack.extend(reversed([child for child in node.children if child.has_error]))
        return None
