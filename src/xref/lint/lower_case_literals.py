from xref.models import ErrorDescription, Severity, TokenKind
from xref.parsed_file import ParsedFile
from xref.plugins.base import LintPlugin

LITERALS = frozenset({"true", "false", "null"})


class LowerCaseLiteralsPlugin(LintPlugin):
    """Flags TRUE, False, NULL and friends; PHP style is lower case."""

    ERROR_CODE = "xr011"

    def __init__(self):
        super().__init__("lower-case-literals", "Lower case literals")

    def get_error_map(self) -> dict[str, ErrorDescription]:
        return {
            self.ERROR_CODE: ErrorDescription(Severity.NOTICE, "Use lower-case literal instead of '%s'"),
        }

    def get_report(self, pf: ParsedFile) -> list[tuple[int, str]]:
        found = []
        for token in pf.tokens:
            if token.kind not in (TokenKind.IDENTIFIER, TokenKind.KEYWORD):
                continue
            if token.lower not in LITERALS or token.text == token.lower:
                continue
            prev = pf.prev_non_space(token.index)
            # Foo::NULL, $obj->TRUE and const NULL are names, not literals
            if prev is not None and prev.text in ("::", "->", "?->", "const", "function"):
                continue
            found.append((token.index, self.ERROR_CODE))
        return found
