from collections.abc import Iterable

from xref.models import CodeDefect, ErrorDescription, Severity
from xref.plugins.base import ProjectLintPlugin
from xref.project_db import DeclaredClass, ProjectDatabase

# classes and interfaces of the PHP core that a project may extend
BUILTIN_CLASSES = frozenset(name.lower() for name in (
    "stdClass", "Closure", "Generator", "WeakMap", "WeakReference",
    "Throwable", "Exception", "Error", "ErrorException", "TypeError", "ValueError",
    "ArithmeticError", "DivisionByZeroError", "ArgumentCountError",
    "LogicException", "BadFunctionCallException", "BadMethodCallException",
    "DomainException", "InvalidArgumentException", "LengthException", "OutOfRangeException",
    "RuntimeException", "OutOfBoundsException", "OverflowException", "RangeException",
    "UnderflowException", "UnexpectedValueException", "JsonException",
    "Traversable", "Iterator", "IteratorAggregate", "ArrayAccess", "Countable",
    "Serializable", "JsonSerializable", "Stringable", "UnitEnum", "BackedEnum",
    "ArrayObject", "ArrayIterator", "SplObjectStorage", "SplStack", "SplQueue",
    "SplFixedArray", "SplSubject", "SplObserver", "IteratorIterator", "FilterIterator",
    "DateTime", "DateTimeImmutable", "DateTimeInterface", "DateInterval", "DateTimeZone",
    "PDO", "PDOStatement", "PDOException",
))


class ClassHierarchyPlugin(ProjectLintPlugin):
    """Checks extends/implements clauses against the declarations of the whole project."""

    EXTENDS_INTERFACE = "xr071"
    IMPLEMENTS_CLASS = "xr072"
    UNKNOWN_PARENT = "xr073"

    def __init__(self, ignore_missing_class: Iterable[str] = ()):
        super().__init__("class-hierarchy", "Class hierarchy")
        self.ignore_missing_class = {name.lstrip("\\").lower() for name in ignore_missing_class}

    def get_error_map(self) -> dict[str, ErrorDescription]:
        return {
            self.EXTENDS_INTERFACE: ErrorDescription(Severity.WARNING, "Class extends interface %s"),
            self.IMPLEMENTS_CLASS: ErrorDescription(Severity.WARNING, "Class implements class %s"),
            self.UNKNOWN_PARENT: ErrorDescription(Severity.WARNING, "Parent class %s is not declared"),
        }

    def get_project_report(self, db: ProjectDatabase) -> dict[str, list[CodeDefect]]:
        report: dict[str, list[CodeDefect]] = {}
        for declared in db.get_classes():
            if declared.kind != "class":
                continue
            for parent in declared.extends:
                parent_class = db.get_class(parent)
                if parent_class is None:
                    if not self._is_known(parent):
                        self._add(report, declared, parent, self.UNKNOWN_PARENT)
                elif parent_class.kind == "interface":
                    self._add(report, declared, parent, self.EXTENDS_INTERFACE)
            for interface in declared.implements:
                implemented = db.get_class(interface)
                if implemented is not None and implemented.kind == "class":
                    self._add(report, declared, interface, self.IMPLEMENTS_CLASS)
        return report

    def _is_known(self, name: str) -> bool:
        lowered = name.lstrip("\\").lower()
        return lowered in BUILTIN_CLASSES or lowered in self.ignore_missing_class

    def _add(self, report: dict[str, list[CodeDefect]], declared: DeclaredClass, name: str, error_code: str) -> None:
        description = self.get_error_map()[error_code]
        report.setdefault(declared.file_name, []).append(CodeDefect(
            token_text=name,
            error_code=error_code,
            severity=description.severity,
            message=description.format(name),
            file_name=declared.file_name,
            line_number=declared.line_number,
            in_class=declared.name,
        ))
