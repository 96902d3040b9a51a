from xref.models import ErrorDescription, Severity, TokenKind
from xref.parsed_file import ParsedFile
from xref.plugins.base import LintPlugin


class ClosingTagPlugin(LintPlugin):
    """A closing ?> at the very end of a file only risks sending trailing whitespace."""

    ERROR_CODE = "xr041"

    def __init__(self):
        super().__init__("closing-tag", "Unneeded closing tag")

    def get_error_map(self) -> dict[str, ErrorDescription]:
        return {
            self.ERROR_CODE: ErrorDescription(Severity.NOTICE, "Unneeded closing tag '%s' at the end of file"),
        }

    def get_report(self, pf: ParsedFile) -> list[tuple[int, str]]:
        for token in reversed(pf.tokens):
            if token.kind is TokenKind.CLOSE_TAG:
                return [(token.index, self.ERROR_CODE)]
            if token.kind is TokenKind.WHITESPACE:
                continue
            # inline HTML after ?> may contain only a newline
            if token.kind is TokenKind.INLINE_HTML and not token.text.strip():
                continue
            break
        return []
