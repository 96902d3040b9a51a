from bisect import bisect_right

from xref.errors import ParseError
from xref.models import (
    MODIFIER_KEYWORDS,
    Attribute,
    ClassDecl,
    Constant,
    Function,
    Namespace,
    Parameter,
    Property,
    QualifiedName,
    Token,
    TokenKind,
)
from xref.parsed_file import CLOSE_BRACKETS, OPEN_BRACKETS, ParsedFile, scan_list
from xref.parsers.base import BaseParser
from xref.parsers.php_lexer import PhpLexer

CLASS_KEYWORDS = frozenset({"class", "interface", "trait", "enum"})
MEMBER_ACCESS = frozenset({"->", "?->", "::"})
WORD_KINDS = (TokenKind.IDENTIFIER, TokenKind.KEYWORD)
OPAQUE_KINDS = (TokenKind.STRING, TokenKind.INLINE_HTML, TokenKind.NUMBER)

# punctuation allowed inside a type declaration: ?int, A|B, (A&B)|null, \Foo\Bar
TYPE_PUNCTUATION = frozenset({"?", "|", "&", "(", ")", "\\"})

ANONYMOUS_CLASS = "class@anonymous"


def count_lines(content: bytes) -> int:
    """Lines as an editor shows them; a trailing newline doesn't start a new line."""
    if not content:
        return 0
    lines = content.count(b"\n")
    return lines if content.endswith(b"\n") else lines + 1


class PhpParser(BaseParser):
    """Parser building the structural model of PHP source files."""

    def __init__(self):
        self.lexer = PhpLexer()

    def parse(self, content: bytes | str, display_name: str) -> ParsedFile:
        """Tokenize content and build its ParsedFile in one forward pass.

        Args:
            content: PHP source; str is encoded as UTF-8
            display_name: Name of the file as shown in defects

        Returns:
            ParsedFile with namespaces, classes, functions and constants

        Raises:
            ParseError: On invalid UTF-8, syntax errors or unbalanced brackets
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        tokens = self.lexer.tokenize(content)
        return _ModelBuilder(tokens, display_name, count_lines(content)).build()

    def supported_extensions(self) -> list[str]:
        return ["php"]


class _ModelBuilder:
    """Single forward pass over the token array of one file."""

    def __init__(self, tokens: list[Token], file_name: str, number_of_lines: int):
        self.tokens = tokens
        self.file_name = file_name
        self.number_of_lines = number_of_lines
        self.n = len(tokens)
        self.pairs: dict[int, int] = {}
        self.namespace_keywords: list[int] = []

        self.explicit_namespaces: list[Namespace] = []
        self.global_imports: list[tuple[int, str, str]] = []  # (index, alias, name)
        self.classes: list[ClassDecl] = []
        self.functions: list[Function] = []
        self.constants: list[Constant] = []
        self.trait_uses: list[tuple[ClassDecl, str, int]] = []

        # open class/function bodies: (kind, entity, index of the last body token)
        self.scopes: list[tuple[str, object, int]] = []
        self.modifiers = Attribute.NONE

    def build(self) -> ParsedFile:
        self._scan_brackets()

        i = 0
        while i < self.n:
            while self.scopes and i > self.scopes[-1][2]:
                self.scopes.pop()
            if self.tokens[i].is_space:
                i += 1
                continue
            i = self._visit(i)

        return self._finalize()

    # --- navigation helpers ---

    def _next(self, index: int) -> int | None:
        i = index + 1
        while i < self.n:
            if not self.tokens[i].is_space:
                return i
            i += 1
        return None

    def _prev(self, index: int) -> int | None:
        i = index - 1
        while i >= 0:
            if not self.tokens[i].is_space:
                return i
            i -= 1
        return None

    def _text_at(self, index: int | None) -> str:
        """Text of a code token; empty for literals, inline HTML and out of range."""
        if index is None or self.tokens[index].kind in OPAQUE_KINDS:
            return ""
        return self.tokens[index].text

    def _is_word(self, index: int | None) -> bool:
        return index is not None and self.tokens[index].kind in WORD_KINDS

    def _read_name(self, index: int) -> tuple[str, int]:
        """Join adjacent name segments and backslashes starting at index.

        Returns the name as written and the index of its last token.
        """
        parts = []
        last = index
        i = index
        while i < self.n:
            token = self.tokens[i]
            if token.kind in WORD_KINDS or token.text == "\\":
                parts.append(token.text)
                last = i
                i += 1
            else:
                break
        return "".join(parts), last

    def _statement_end(self, start: int, terminators=(";",)) -> int:
        """Index of the first top-level terminator at or after start, or the last token."""
        i = start
        while i < self.n:
            text = self.tokens[i].text
            if text in terminators:
                return i
            if text in OPEN_BRACKETS and i in self.pairs:
                i = self.pairs[i] + 1
            elif text in CLOSE_BRACKETS or self.tokens[i].kind is TokenKind.CLOSE_TAG:
                return i
            else:
                i += 1
        return self.n - 1

    def _namespace_name(self, index: int) -> str:
        if self.explicit_namespaces and self.explicit_namespaces[-1].contains(index):
            return self.explicit_namespaces[-1].name
        return ""

    def _qualify_declared(self, name: str, index: int) -> QualifiedName:
        namespace = self._namespace_name(index)
        return QualifiedName(f"{namespace}\\{name}" if namespace else name)

    def _current_class(self) -> tuple[str, ClassDecl | None] | None:
        """The class whose body directly contains the current token, if any."""
        if self.scopes and self.scopes[-1][0] in ("class", "anonymous_class"):
            kind, entity, _ = self.scopes[-1]
            return kind, entity
        return None

    # --- passes ---

    def _scan_brackets(self) -> None:
        stack: list[int] = []
        for token in self.tokens:
            if token.kind is TokenKind.KEYWORD and token.lower == "namespace":
                self.namespace_keywords.append(token.index)
            if token.kind is not TokenKind.PUNCTUATION:
                continue
            if token.text in OPEN_BRACKETS:
                stack.append(token.index)
            elif token.text in CLOSE_BRACKETS:
                if not stack:
                    raise ParseError(
                        f"unexpected '{token.text}' at line {token.line_number}",
                        line_number=token.line_number,
                    )
                opening = self.tokens[stack.pop()]
                if OPEN_BRACKETS[opening.text] != token.text:
                    raise ParseError(
                        f"'{token.text}' at line {token.line_number} doesn't match "
                        f"'{opening.text}' at line {opening.line_number}",
                        line_number=token.line_number,
                    )
                self.pairs[opening.index] = token.index
                self.pairs[token.index] = opening.index
        if stack:
            opening = self.tokens[stack[-1]]
            raise ParseError(
                f"unclosed '{opening.text}' at line {opening.line_number}",
                line_number=opening.line_number,
            )

    def _visit(self, i: int) -> int:
        token = self.tokens[i]
        text = token.text

        if text in (";", "{", "}") or token.kind is TokenKind.CLOSE_TAG:
            self.modifiers = Attribute.NONE
            return i + 1
        if text == "#[" and i in self.pairs:
            return self.pairs[i] + 1

        if token.kind is TokenKind.VARIABLE:
            if self._current_class() is not None:
                return self._parse_properties(i)
            return i + 1

        if token.kind not in WORD_KINDS:
            return i + 1

        word = token.lower
        if word == "namespace" and token.kind is TokenKind.KEYWORD:
            return self._parse_namespace(i)
        if word == "use":
            return self._parse_use(i)
        if word in CLASS_KEYWORDS:
            return self._parse_class(i)
        if word in ("function", "fn"):
            return self._parse_function(i)
        if word == "const":
            return self._parse_constants(i)
        if word == "case":
            current = self._current_class()
            if current is not None and current[1] is not None and current[1].kind == "enum":
                return self._parse_enum_case(i, current[1])
        if word in MODIFIER_KEYWORDS and self._is_modifier(i):
            self.modifiers |= MODIFIER_KEYWORDS[word]
        return i + 1

    def _is_modifier(self, i: int) -> bool:
        # static::foo(), new static(), $obj->public
        if self._text_at(self._prev(i)) in MEMBER_ACCESS:
            return False
        return self._text_at(self._next(i)) not in ("::", "(")

    def _parse_namespace(self, i: int) -> int:
        j = self._next(i)
        if self._text_at(j) == "\\":
            return i + 1  # namespace\foo() written with spaces
        name = ""
        if self._is_word(j):
            name, last = self._read_name(j)
            name = name.lstrip("\\")
            j = self._next(last)

        if self._text_at(j) == "{":
            body_starts, body_ends = j, self.pairs[j]
        elif self._text_at(j) == ";":
            body_starts = j
            pos = bisect_right(self.namespace_keywords, i)
            body_ends = (
                self.namespace_keywords[pos] - 1
                if pos < len(self.namespace_keywords)
                else self.n - 1
            )
        else:
            return i + 1

        self.explicit_namespaces.append(Namespace(
            index=i,
            name=name,
            body_starts=body_starts,
            body_ends=body_ends,
        ))
        self.modifiers = Attribute.NONE
        return body_starts + 1

    def _parse_use(self, i: int) -> int:
        if self._text_at(self._prev(i)) == ")":
            return i + 1  # closure use list, read with the closure header
        current = self._current_class()
        if current is not None:
            return self._parse_trait_use(i, current[1])
        if self.scopes:
            return i + 1
        return self._parse_import(i)

    def _parse_import(self, i: int) -> int:
        j = self._next(i)
        if j is None:
            return i + 1
        if self.tokens[j].lower in ("function", "const"):
            return self._statement_end(j) + 1

        elements, end = scan_list(self.tokens, self.pairs, j, ",", ";")
        for element in elements:
            self._import_clause(element, "")
        return end + 1

    def _import_clause(self, index: int, prefix: str) -> None:
        if not self._is_word(index):
            return
        if self.tokens[index].lower in ("function", "const"):
            return  # mixed group use: only class imports are tracked
        name, last = self._read_name(index)
        following = self._next(last)

        if name.endswith("\\") and self._text_at(following) == "{":
            group_prefix = prefix + name.lstrip("\\")
            elements, _ = scan_list(self.tokens, self.pairs, following + 1, ",", "}")
            for element in elements:
                self._import_clause(element, group_prefix)
            return

        full_name = prefix + name.lstrip("\\")
        alias = full_name.rsplit("\\", 1)[-1]
        if self._text_at(following).lower() == "as":
            alias_index = self._next(following)
            if self._is_word(alias_index):
                alias = self.tokens[alias_index].text

        if self.explicit_namespaces and self.explicit_namespaces[-1].contains(index):
            self.explicit_namespaces[-1].import_map[alias] = full_name
        else:
            self.global_imports.append((index, alias, full_name))

    def _parse_trait_use(self, i: int, class_decl: ClassDecl | None) -> int:
        j = self._next(i)
        while j is not None:
            token = self.tokens[j]
            if token.text == ";":
                return j + 1
            if token.text == "{":
                return self.pairs[j] + 1  # insteadof/as conflict resolution block
            if token.kind in WORD_KINDS:
                name, last = self._read_name(j)
                if class_decl is not None:
                    self.trait_uses.append((class_decl, name, j))
                j = self._next(last)
                continue
            j = self._next(j)
        return self.n

    def _parse_class(self, i: int) -> int:
        prev = self._prev(i)
        if self._text_at(prev) in MEMBER_ACCESS:
            return i + 1  # Foo::class

        if self._text_at(prev).lower() == "new":
            brace = self._statement_end(i, ("{",))
            if self._text_at(brace) == "{":
                self.scopes.append(("anonymous_class", None, self.pairs[brace]))
                self.modifiers = Attribute.NONE
                return brace + 1
            return i + 1

        j = self._next(i)
        if j is None or self.tokens[j].kind is not TokenKind.IDENTIFIER:
            return i + 1

        class_decl = ClassDecl(
            index=i,
            kind=self.tokens[i].lower,
            name_index=j,
            name=self._qualify_declared(self.tokens[j].text, i),
            is_abstract=bool(self.modifiers & Attribute.ABSTRACT),
        )

        target = None
        k = self._next(j)
        while k is not None and self.tokens[k].text != "{":
            token = self.tokens[k]
            if token.lower == "extends":
                target = class_decl.extends_index
            elif token.lower == "implements":
                target = class_decl.implements_index
            elif token.text == ":":
                target = None  # backed enum type
            elif token.kind in WORD_KINDS and target is not None:
                name, last = self._read_name(k)
                target[name] = k
                k = self._next(last)
                continue
            k = self._next(k)
        if k is None:
            return i + 1

        class_decl.body_starts = k
        class_decl.body_ends = self.pairs[k]
        self.classes.append(class_decl)
        self.scopes.append(("class", class_decl, class_decl.body_ends))
        self.modifiers = Attribute.NONE
        return k + 1

    def _parse_function(self, i: int) -> int:
        if self._text_at(self._prev(i)) in MEMBER_ACCESS:
            return i + 1

        j = self._next(i)
        returns_reference = False
        if self._text_at(j) == "&":
            returns_reference = True
            j = self._next(j)

        name_index = None
        if self._is_word(j):
            name_index = j
            j = self._next(j)
        if self._text_at(j) != "(":
            return i + 1

        params_close = self.pairs[j]
        parameters = self._parse_parameters(j + 1)

        k = self._next(params_close)
        used_variables = []
        if self._text_at(k).lower() == "use":
            use_open = self._next(k)
            if self._text_at(use_open) == "(":
                used_variables = [param for param, _ in self._parse_parameters(use_open + 1)]
                k = self._next(self.pairs[use_open])

        return_type = None
        if self._text_at(k) == ":":
            type_start = self._next(k)
            k = self._statement_end(type_start, ("{", ";", "=>"))
            return_type = "".join(
                t.text for t in self.tokens[type_start:k] if not t.is_space
            ) or None

        body_starts = None
        is_declaration = False
        if self._text_at(k) == "{":
            body_starts, body_ends = k, self.pairs[k]
        elif self._text_at(k) == "=>":
            # arrow function: the body is the expression after =>
            end = self._statement_end(self._next(k) or k, (";", ","))
            body_starts, body_ends = k, self._prev(end) if end > k else k
        elif self._text_at(k) == ";":
            body_ends = k
            is_declaration = True
        else:
            return i + 1

        current = self._current_class()
        class_decl = None
        if name_index is None:
            name = None
            class_name = None
        elif current is not None:
            class_decl = current[1]
            name = self.tokens[name_index].text
            class_name = class_decl.name if class_decl is not None else ANONYMOUS_CLASS
        else:
            name = self._qualify_declared(self.tokens[name_index].text, i)
            class_name = None

        function = Function(
            index=i,
            name=name,
            name_index=name_index,
            class_name=class_name,
            body_starts=body_starts,
            body_ends=body_ends,
            returns_reference=returns_reference,
            parameters=[param for param, _ in parameters],
            used_variables=used_variables,
            is_declaration=is_declaration,
            attributes=int(self.modifiers),
            return_type=return_type,
        )
        self.modifiers = Attribute.NONE
        self.functions.append(function)

        if class_decl is not None and name is not None:
            class_decl.methods.append(function)
            if name.lower() == "__construct":
                self._promote_parameters(class_decl, parameters)

        if body_starts is None:
            return body_ends + 1
        self.scopes.append(("function", function, body_ends))
        return body_starts + 1

    def _parse_parameters(self, start: int) -> list[tuple[Parameter, int]]:
        """Read a parameter list; start is the first token after '('.

        Returns each parameter with the modifiers of constructor promotion.
        """
        elements, end = scan_list(self.tokens, self.pairs, start, ",", ")")
        bounds = elements[1:] + [end]
        parameters = []
        for element, stop in zip(elements, bounds):
            modifiers = Attribute.NONE
            type_parts = []
            by_reference = False
            variadic = False
            k = element
            while k < stop:
                token = self.tokens[k]
                if token.is_space:
                    k += 1
                    continue
                if token.text == "#[":
                    k = self.pairs[k] + 1
                    continue
                if token.kind is TokenKind.VARIABLE:
                    parameters.append((
                        Parameter(
                            index=k,
                            name=token.text,
                            type_name="".join(type_parts) or None,
                            is_passed_by_reference=by_reference,
                            has_default_value=self._text_at(self._next(k)) == "=",
                            is_variadic=variadic,
                        ),
                        int(modifiers),
                    ))
                    break
                following = self._next(k)
                if token.text == "&" and following is not None and (
                    self.tokens[following].kind is TokenKind.VARIABLE
                    or self.tokens[following].text == "..."
                ):
                    by_reference = True
                elif token.text == "...":
                    variadic = True
                elif token.kind in WORD_KINDS and token.lower in MODIFIER_KEYWORDS:
                    modifiers |= MODIFIER_KEYWORDS[token.lower]
                else:
                    type_parts.append(token.text)
                k += 1
        return parameters

    def _promote_parameters(self, class_decl: ClassDecl, parameters) -> None:
        for param, modifiers in parameters:
            # any visibility or readonly modifier turns a parameter into a property
            if not modifiers:
                continue
            prop = Property(
                index=param.index,
                name=param.name,
                class_name=class_decl.name,
                type_name=param.type_name,
                attributes=modifiers,
            )
            class_decl.properties.append(prop)

    def _parse_constants(self, i: int) -> int:
        elements, end = scan_list(self.tokens, self.pairs, i + 1, ",", ";")
        current = self._current_class()
        class_decl = current[1] if current is not None else None

        for element in elements:
            name_index = None
            k = element
            while k < end and self.tokens[k].text != "=":
                if self.tokens[k].kind in WORD_KINDS:
                    name_index = k
                k += 1
            if name_index is None:
                continue
            if current is not None:
                if class_decl is None:
                    continue
                constant = Constant(
                    index=name_index,
                    name=self.tokens[name_index].text,
                    class_name=class_decl.name,
                    attributes=int(self.modifiers),
                )
                class_decl.constants.append(constant)
            else:
                constant = Constant(
                    index=name_index,
                    name=self._qualify_declared(self.tokens[name_index].text, i),
                )
            self.constants.append(constant)

        self.modifiers = Attribute.NONE
        return end + 1

    def _parse_enum_case(self, i: int, class_decl: ClassDecl) -> int:
        j = self._next(i)
        if self._is_word(j):
            constant = Constant(
                index=j,
                name=self.tokens[j].text,
                class_name=class_decl.name,
                attributes=int(Attribute.PUBLIC),
            )
            class_decl.constants.append(constant)
            self.constants.append(constant)
        return self._statement_end(i) + 1

    def _parse_properties(self, i: int) -> int:
        _, class_decl = self._current_class()
        end = self._statement_end(i, (";", "{"))
        if class_decl is not None:
            type_name = self._property_type(i)
            elements, _ = scan_list(self.tokens, self.pairs, i, ",", self._text_at(end))
            for element in elements:
                if self.tokens[element].kind is not TokenKind.VARIABLE:
                    continue
                class_decl.properties.append(Property(
                    index=element,
                    name=self.tokens[element].text,
                    class_name=class_decl.name,
                    type_name=type_name,
                    attributes=int(self.modifiers),
                ))
        self.modifiers = Attribute.NONE
        if self._text_at(end) == "{":
            return self.pairs[end] + 1  # property hooks
        return end + 1

    def _property_type(self, i: int) -> str | None:
        parts = []
        k = self._prev(i)
        while k is not None:
            token = self.tokens[k]
            if token.kind in WORD_KINDS:
                if token.lower in MODIFIER_KEYWORDS:
                    break
            elif token.text not in TYPE_PUNCTUATION:
                break
            parts.append(token.text)
            k = self._prev(k)
        return "".join(reversed(parts)) or None

    def _finalize(self) -> ParsedFile:
        namespaces = []
        position = 0
        for namespace in self.explicit_namespaces:
            if namespace.index > position:
                namespaces.append(self._global_namespace(position, namespace.index - 1))
            namespaces.append(namespace)
            position = namespace.body_ends + 1
        if position < self.n:
            namespaces.append(self._global_namespace(position, self.n - 1))

        starts = [ns.index for ns in namespaces]
        for index, alias, name in self.global_imports:
            namespace = namespaces[bisect_right(starts, index) - 1]
            namespace.import_map[alias] = name

        pf = ParsedFile(
            file_name=self.file_name,
            tokens=self.tokens,
            namespaces=namespaces,
            classes=self.classes,
            functions=self.functions,
            constants=self.constants,
            bracket_pairs=self.pairs,
            number_of_lines=self.number_of_lines,
        )

        # resolved only now: imports may follow the first use of a name
        for class_decl in self.classes:
            class_decl.extends = [
                pf.qualify_name(name, index) for name, index in class_decl.extends_index.items()
            ]
            class_decl.implements = [
                pf.qualify_name(name, index) for name, index in class_decl.implements_index.items()
            ]
        for class_decl, name, index in self.trait_uses:
            class_decl.uses.append(pf.qualify_name(name, index))

        return pf

    def _global_namespace(self, start: int, end: int) -> Namespace:
        return Namespace(index=start, name="", body_starts=start, body_ends=end)
