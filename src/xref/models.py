from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum, IntFlag
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from xref.parsed_file import ParsedFile


class TokenKind(Enum):
    """Lexical category of a token."""
    WHITESPACE = "whitespace"
    COMMENT = "comment"
    OPEN_TAG = "open_tag"
    CLOSE_TAG = "close_tag"
    INLINE_HTML = "inline_html"
    VARIABLE = "variable"
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    STRING = "string"
    NUMBER = "number"
    PUNCTUATION = "punctuation"


@dataclass(frozen=True)
class Token:
    """One token of a parsed file, addressed by its index in the file."""
    kind: TokenKind
    text: str
    line_number: int  # 1-based
    index: int

    @property
    def is_space(self) -> bool:
        return self.kind in (TokenKind.WHITESPACE, TokenKind.COMMENT)

    @property
    def lower(self) -> str:
        return self.text.lower()


class Severity(IntEnum):
    """Ordered importance of a code defect."""
    NOTICE = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4  # e.g. file can't be parsed

    @property
    def label(self) -> str:
        return self.name.lower()


class Attribute(IntFlag):
    """Visibility and modifier bits of methods, properties and constants."""
    NONE = 0
    PUBLIC = 1
    PROTECTED = 2
    PRIVATE = 4
    STATIC = 8
    ABSTRACT = 16
    FINAL = 32
    READONLY = 64


# keyword -> attribute bit
MODIFIER_KEYWORDS = {
    "public": Attribute.PUBLIC,
    "protected": Attribute.PROTECTED,
    "private": Attribute.PRIVATE,
    "static": Attribute.STATIC,
    "abstract": Attribute.ABSTRACT,
    "final": Attribute.FINAL,
    "readonly": Attribute.READONLY,
    "var": Attribute.NONE,
}


def is_public(attributes: int) -> bool:
    """Explicit public, or no visibility modifier at all (legacy PHP 4 rule)."""
    return bool(attributes & Attribute.PUBLIC) or not (
        attributes & (Attribute.PRIVATE | Attribute.PROTECTED)
    )


def is_protected(attributes: int) -> bool:
    return bool(attributes & Attribute.PROTECTED)


def is_private(attributes: int) -> bool:
    return bool(attributes & Attribute.PRIVATE)


def is_static(attributes: int) -> bool:
    return bool(attributes & Attribute.STATIC)


class QualifiedName(str):
    """A class/function/constant name that is already fully qualified."""
    pass


@dataclass
class Namespace:
    """A namespace block, or a synthetic global namespace (name == "")."""
    index: int  # the 'namespace' keyword, or the first token of a global block
    name: str
    body_starts: int  # '{' or ';' token
    body_ends: int  # '}' token or the last token of the block
    import_map: dict[str, str] = field(default_factory=dict)

    def lookup_import(self, alias: str) -> str | None:
        """Find the imported name for an alias; PHP class names are case-insensitive."""
        if alias in self.import_map:
            return self.import_map[alias]
        lowered = alias.lower()
        for key, value in self.import_map.items():
            if key.lower() == lowered:
                return value
        return None

    def contains(self, index: int) -> bool:
        return self.index <= index <= self.body_ends


@dataclass
class Parameter:
    """Represents a function/method/closure parameter."""
    index: int  # the variable token
    name: str  # e.g. $x
    type_name: str | None = None
    is_passed_by_reference: bool = False
    has_default_value: bool = False
    is_variadic: bool = False


@dataclass
class Function:
    """A function, a method or a closure (name is None)."""
    index: int  # 'function' keyword
    name: str | None
    name_index: int | None
    class_name: str | None = None
    body_starts: int | None = None  # '{', None for declarations
    body_ends: int | None = None  # '}', or ';' for declarations
    returns_reference: bool = False
    parameters: list[Parameter] = field(default_factory=list)
    used_variables: list[Parameter] = field(default_factory=list)
    is_declaration: bool = False
    attributes: int = 0
    return_type: str | None = None

    @property
    def is_closure(self) -> bool:
        return self.name is None


@dataclass
class Constant:
    """A class constant or a file-level constant (class_name is None)."""
    index: int
    name: str
    class_name: str | None = None
    attributes: int = 0


@dataclass
class Property:
    """A class property."""
    index: int
    name: str  # e.g. $foo
    class_name: str | None = None
    type_name: str | None = None
    attributes: int = 0


@dataclass
class ClassDecl:
    """A class, interface, trait or enum declaration."""
    index: int  # 'class'/'interface'/'trait'/'enum' keyword
    kind: str
    name_index: int
    name: str  # fully qualified
    extends: list[str] = field(default_factory=list)
    implements: list[str] = field(default_factory=list)
    uses: list[str] = field(default_factory=list)
    body_starts: int | None = None
    body_ends: int | None = None
    methods: list[Function] = field(default_factory=list)
    properties: list[Property] = field(default_factory=list)
    constants: list[Constant] = field(default_factory=list)
    is_abstract: bool = False
    # name as written -> token index, resolved to fully qualified names after the pass
    extends_index: dict[str, int] = field(default_factory=dict)
    implements_index: dict[str, int] = field(default_factory=dict)


@dataclass
class FilePosition:
    """Location of a token range: "called from Class::method at file:line"."""
    file_name: str
    line_number: int
    in_class: str | None
    in_method: str | None
    start_index: int
    end_index: int

    @classmethod
    def at(cls, pf: ParsedFile, start_index: int, end_index: int | None = None) -> FilePosition:
        class_decl = pf.get_class_at(start_index)
        method = pf.get_named_method_at(start_index)
        return cls(
            file_name=pf.file_name,
            line_number=pf.get_line_number_at(start_index),
            in_class=class_decl.name if class_decl else None,
            in_method=method.name if method else None,
            start_index=start_index,
            end_index=end_index if end_index is not None else start_index,
        )

    def __str__(self) -> str:
        return f"{self.file_name}:{self.line_number}"


def _escape_non_printable(text: str) -> str:
    return re.sub(
        r"[^\x20-\x7f]",
        lambda m: "".join("\\x%02x" % byte for byte in m.group(0).encode("utf-8")),
        text,
    )


@dataclass(frozen=True)
class CodeDefect:
    """One defect found by lint; holds no references to the parse tree."""
    token_text: str
    error_code: str
    severity: Severity
    message: str
    file_name: str
    line_number: int
    in_class: str | None = None
    in_method: str | None = None

    @classmethod
    def from_token(
        cls,
        pf: ParsedFile,
        index: int,
        error_code: str,
        severity: Severity,
        message: str,
    ) -> CodeDefect:
        token = pf.token_at(index)
        if token is None:
            raise IndexError(f"No token at index {index} in {pf.file_name}")
        position = FilePosition.at(pf, index)
        return cls(
            token_text=_escape_non_printable(token.text),
            error_code=error_code,
            severity=Severity(severity),
            message=message,
            file_name=pf.file_name,
            line_number=position.line_number,
            in_class=position.in_class,
            in_method=position.in_method,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = int(self.severity)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CodeDefect:
        return cls(
            token_text=data["token_text"],
            error_code=data["error_code"],
            severity=Severity(data["severity"]),
            message=data["message"],
            file_name=data["file_name"],
            line_number=data["line_number"],
            in_class=data.get("in_class"),
            in_method=data.get("in_method"),
        )


@dataclass
class ErrorDescription:
    """Entry of a plugin error map."""
    severity: Severity
    message: str  # may contain %s, replaced by the token text

    def format(self, token_text: str) -> str:
        return self.message % token_text if "%s" in self.message else self.message
