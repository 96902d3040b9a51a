"""Structural model of one parsed source file.

The ParsedFile owns the token array; every derived entity (namespaces,
classes, functions, constants, bracket pairs) addresses tokens by index only,
so the model holds no cycles and entities can be detached and cached.
"""

from bisect import bisect_right

from xref.models import ClassDecl, Constant, Function, Namespace, QualifiedName, Token

OPEN_BRACKETS = {"(": ")", "[": "]", "{": "}", "#[": "]"}
CLOSE_BRACKETS = frozenset(OPEN_BRACKETS.values())

# names that are never resolved against a namespace
SPECIAL_NAMES = frozenset({
    "self", "parent", "static",
    "array", "bool", "callable", "false", "float", "int", "iterable", "mixed",
    "never", "null", "object", "string", "true", "void",
})


def scan_list(
    tokens: list[Token],
    bracket_pairs: dict[int, int],
    start: int,
    separator: str = ",",
    terminator: str = ")",
) -> tuple[list[int], int]:
    """Find the first token of each top-level list element and the terminator index.

    Nested brackets are skipped as a whole. If the terminator is never found,
    the returned index is len(tokens).
    """
    elements = []
    expect_element = True
    i = start
    while i < len(tokens):
        token = tokens[i]
        if token.is_space:
            i += 1
            continue
        if token.text == terminator:
            return elements, i
        if token.text == separator:
            expect_element = True
            i += 1
            continue
        if expect_element:
            elements.append(i)
            expect_element = False
        if token.text in OPEN_BRACKETS and i in bracket_pairs:
            i = bracket_pairs[i] + 1
        else:
            i += 1
    return elements, len(tokens)


class ParsedFile:
    """Token array of one file plus indices derived in a single parsing pass."""

    def __init__(
        self,
        file_name: str,
        tokens: list[Token],
        namespaces: list[Namespace],
        classes: list[ClassDecl],
        functions: list[Function],
        constants: list[Constant],
        bracket_pairs: dict[int, int],
        number_of_lines: int,
        file_type: str = "php",
    ):
        self.file_name = file_name
        self.file_type = file_type
        self.tokens = tokens
        self.namespaces = namespaces
        self.classes = classes
        self.functions = functions
        self.constants = constants
        self.bracket_pairs = bracket_pairs
        self.number_of_lines = number_of_lines
        self._namespace_starts = [ns.index for ns in namespaces]
        self._class_at: list[int] = []
        self._function_at: list[int] = []
        self._function_parent: list[int] = []
        self._build_lookup()

    def _build_lookup(self) -> None:
        """Paint owner ranges token by token; inner bodies are painted after outer ones."""
        n = len(self.tokens)
        self._class_at = [-1] * n
        for ci, class_decl in enumerate(self.classes):
            if class_decl.body_ends is None:
                continue
            for i in range(class_decl.index, class_decl.body_ends + 1):
                self._class_at[i] = ci

        self._function_at = [-1] * n
        self._function_parent = [-1] * len(self.functions)
        order = sorted(range(len(self.functions)), key=lambda fi: self.functions[fi].index)
        for fi in order:
            function = self.functions[fi]
            if function.body_ends is None:
                continue
            self._function_parent[fi] = self._function_at[function.index]
            for i in range(function.index, function.body_ends + 1):
                self._function_at[i] = fi

    def token_at(self, index: int) -> Token | None:
        if 0 <= index < len(self.tokens):
            return self.tokens[index]
        return None

    def next_non_space(self, index: int) -> Token | None:
        """Return the first token after index that is neither whitespace nor a comment."""
        i = index + 1
        while i < len(self.tokens):
            if not self.tokens[i].is_space:
                return self.tokens[i]
            i += 1
        return None

    def prev_non_space(self, index: int) -> Token | None:
        """Return the last token before index that is neither whitespace nor a comment."""
        i = min(index, len(self.tokens)) - 1
        while i >= 0:
            if not self.tokens[i].is_space:
                return self.tokens[i]
            i -= 1
        return None

    def get_line_number_at(self, index: int) -> int:
        token = self.token_at(index)
        return token.line_number if token else 0

    def get_paired_bracket(self, index: int) -> int:
        """Map an opening bracket to its closing bracket and back.

        Raises:
            KeyError: If the token at index is not a bracket.
        """
        return self.bracket_pairs[index]

    def extract_list(self, start: int, separator: str = ",", terminator: str = ")") -> list[int]:
        """Return the index of the first token of each top-level list element.

        start must be the first token after the opening bracket:
            function foo(a, b, &c)  --> [a, b, &]
            list(a, list(b, c), d)  --> [a, list, d]
            for (i=0; i<10; ++i)    --> [i, i, ++]   (separator ";")
            function()              --> []
        """
        elements, _ = scan_list(self.tokens, self.bracket_pairs, start, separator, terminator)
        return elements

    def get_namespace_at(self, index: int) -> Namespace | None:
        if not self.namespaces:
            return None
        pos = bisect_right(self._namespace_starts, index) - 1
        if pos < 0:
            return None
        namespace = self.namespaces[pos]
        return namespace if namespace.contains(index) else None

    def get_class_at(self, index: int) -> ClassDecl | None:
        if 0 <= index < len(self._class_at) and self._class_at[index] >= 0:
            return self.classes[self._class_at[index]]
        return None

    def get_method_at(self, index: int) -> Function | None:
        """Return the innermost function, method or closure containing index."""
        if 0 <= index < len(self._function_at) and self._function_at[index] >= 0:
            return self.functions[self._function_at[index]]
        return None

    def get_named_method_at(self, index: int) -> Function | None:
        """Like get_method_at, but skips enclosing closures."""
        if not (0 <= index < len(self._function_at)):
            return None
        fi = self._function_at[index]
        while fi >= 0 and self.functions[fi].is_closure:
            fi = self._function_parent[fi]
        return self.functions[fi] if fi >= 0 else None

    def get_methods(self) -> list[Function]:
        return self.functions

    def get_classes(self) -> list[ClassDecl]:
        return self.classes

    def get_constants(self) -> list[Constant]:
        return self.constants

    def qualify_name(self, name: str, index: int) -> QualifiedName:
        """Return the fully qualified name according to the namespace in effect at index.

        Assuming namespace Foo is active and \\Bar\\Baz is imported as Baz:
            \\string     -> string
            \\Foo\\bar    -> Foo\\bar
            bar         -> Foo\\bar
            Baz\\quxx    -> Bar\\Baz\\quxx
        """
        if isinstance(name, QualifiedName):
            return name
        if name.startswith("\\"):
            return QualifiedName(name[1:])
        if name.lower() in SPECIAL_NAMES:
            return QualifiedName(name)

        namespace = self.get_namespace_at(index)
        if namespace is None:
            return QualifiedName(name)

        head, sep, rest = name.partition("\\")
        imported = namespace.lookup_import(head)
        if imported is not None:
            return QualifiedName(imported + sep + rest)
        if namespace.name:
            return QualifiedName(f"{namespace.name}\\{name}")
        return QualifiedName(name)

    def release(self) -> None:
        """Drop the token array and indices to bound memory on large projects."""
        self.tokens = []
        self.bracket_pairs = {}
        self._class_at = []
        self._function_at = []
        self._function_parent = []
        self._namespace_starts = []
        self.namespaces = []
        self.classes = []
        self.functions = []
        self.constants = []
