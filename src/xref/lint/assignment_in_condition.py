from xref.models import ErrorDescription, Severity, TokenKind
from xref.parsed_file import OPEN_BRACKETS, ParsedFile
from xref.plugins.base import LintPlugin


class AssignmentInConditionPlugin(LintPlugin):
    """Flags `if ($a = f())`, which is usually a mistyped comparison.

    An assignment wrapped in its own parentheses, `if (($a = f()) !== null)`,
    is taken as intended and not reported.
    """

    ERROR_CODE = "xr031"

    def __init__(self):
        super().__init__("assignment-in-condition", "Assignment in condition")

    def get_error_map(self) -> dict[str, ErrorDescription]:
        return {
            self.ERROR_CODE: ErrorDescription(Severity.WARNING, "Assignment in conditional expression (%s)"),
        }

    def get_report(self, pf: ParsedFile) -> list[tuple[int, str]]:
        found = []
        for token in pf.tokens:
            if token.kind is not TokenKind.KEYWORD or token.lower not in ("if", "elseif"):
                continue
            condition = pf.next_non_space(token.index)
            if condition is None or condition.text != "(":
                continue
            end = pf.get_paired_bracket(condition.index)
            first = pf.next_non_space(condition.index)
            i = condition.index + 1
            while i < end:
                current = pf.tokens[i]
                if current.text in OPEN_BRACKETS and i in pf.bracket_pairs:
                    i = pf.get_paired_bracket(i) + 1
                    continue
                if current.kind is TokenKind.PUNCTUATION and current.text == "=":
                    found.append((first.index, self.ERROR_CODE))
                    break
                i += 1
        return found
