from xref.models import ErrorDescription, Severity, TokenKind, is_static
from xref.parsed_file import ParsedFile
from xref.plugins.base import LintPlugin


class StaticThisPlugin(LintPlugin):
    """$this can't be used in static methods and static closures."""

    ERROR_CODE = "xr021"

    def __init__(self):
        super().__init__("static-this", "$this in static context")

    def get_error_map(self) -> dict[str, ErrorDescription]:
        return {
            self.ERROR_CODE: ErrorDescription(Severity.ERROR, "Use of %s inside a static method"),
        }

    def get_report(self, pf: ParsedFile) -> list[tuple[int, str]]:
        found = []
        for token in pf.tokens:
            if token.kind is not TokenKind.VARIABLE or token.text != "$this":
                continue
            innermost = pf.get_method_at(token.index)
            if innermost is None:
                continue
            if innermost.is_closure and is_static(innermost.attributes):
                found.append((token.index, self.ERROR_CODE))
                continue
            method = pf.get_named_method_at(token.index)
            if method is not None and method.class_name is not None and is_static(method.attributes):
                found.append((token.index, self.ERROR_CODE))
        return found
