"""Cross-file table of declarations, filled before project-wide checks run."""

from dataclasses import asdict, dataclass, field
from typing import Any

from xref.parsed_file import ParsedFile


@dataclass
class DeclaredClass:
    """Summary of a class, interface, trait or enum declaration."""
    name: str  # fully qualified
    kind: str
    file_name: str
    line_number: int
    extends: list[str] = field(default_factory=list)
    implements: list[str] = field(default_factory=list)
    is_abstract: bool = False


@dataclass
class DeclaredFunction:
    """Summary of a free (non-method) function declaration."""
    name: str  # fully qualified
    file_name: str
    line_number: int


@dataclass
class FileDeclarations:
    """Declarations of one file; cached together with the file's defects."""
    file_name: str
    classes: list[DeclaredClass] = field(default_factory=list)
    functions: list[DeclaredFunction] = field(default_factory=list)

    @classmethod
    def from_parsed_file(cls, pf: ParsedFile) -> "FileDeclarations":
        classes = [
            DeclaredClass(
                name=str(c.name),
                kind=c.kind,
                file_name=pf.file_name,
                line_number=pf.get_line_number_at(c.name_index),
                extends=[str(name) for name in c.extends],
                implements=[str(name) for name in c.implements],
                is_abstract=c.is_abstract,
            )
            for c in pf.get_classes()
        ]
        functions = [
            DeclaredFunction(
                name=str(f.name),
                file_name=pf.file_name,
                line_number=pf.get_line_number_at(f.name_index),
            )
            for f in pf.get_methods()
            if f.name is not None and f.class_name is None
        ]
        return cls(file_name=pf.file_name, classes=classes, functions=functions)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileDeclarations":
        return cls(
            file_name=data["file_name"],
            classes=[DeclaredClass(**c) for c in data.get("classes", [])],
            functions=[DeclaredFunction(**f) for f in data.get("functions", [])],
        )


class ProjectDatabase:
    """All classes and functions declared in the project, keyed by lower-case name.

    PHP class and function names are case-insensitive. Written once while
    files are processed, read-only while project plugins run.
    """

    def __init__(self):
        self.classes: dict[str, list[DeclaredClass]] = {}
        self.functions: dict[str, list[DeclaredFunction]] = {}
        self.file_names: list[str] = []

    def add_file(self, declarations: FileDeclarations) -> None:
        self.file_names.append(declarations.file_name)
        for declared_class in declarations.classes:
            self.classes.setdefault(declared_class.name.lower(), []).append(declared_class)
        for declared_function in declarations.functions:
            self.functions.setdefault(declared_function.name.lower(), []).append(declared_function)

    def get_class(self, name: str) -> DeclaredClass | None:
        """First declaration wins."""
        declarations = self.classes.get(name.lstrip("\\").lower())
        return declarations[0] if declarations else None

    def get_function(self, name: str) -> DeclaredFunction | None:
        declarations = self.functions.get(name.lstrip("\\").lower())
        return declarations[0] if declarations else None

    def get_classes(self) -> list[DeclaredClass]:
        return [declarations[0] for declarations in self.classes.values()]

    def get_duplicate_classes(self) -> list[list[DeclaredClass]]:
        """Declarations of every class declared more than once, ordered by name."""
        return [
            self.classes[key]
            for key in sorted(self.classes)
            if len(self.classes[key]) > 1
        ]
