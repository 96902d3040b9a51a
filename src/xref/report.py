"""Post-processing of lint reports: filtering, sorting and revision diffs."""

from collections import Counter
from collections.abc import Iterable
from typing import Any

from xref.models import CodeDefect, Severity

Report = dict[str, list[CodeDefect]]


def sort_and_filter_report(
    report: Report,
    report_level: Severity = Severity.NOTICE,
    ignored_errors: Iterable[str] = (),
) -> Report:
    """Drop defects below report_level or with an ignored code, then sort.

    Files are sorted by name and files left without defects are dropped.
    Defects of a file are sorted by line number; sorted() is stable, so equal
    lines keep their detection order.
    """
    ignored = set(ignored_errors)
    filtered = {}
    for file_name in sorted(report):
        defects = [
            d for d in report[file_name]
            if d.severity >= report_level and d.error_code not in ignored
        ]
        if defects:
            filtered[file_name] = sorted(defects, key=lambda d: d.line_number)
    return filtered


def defect_signature(defect: CodeDefect) -> tuple[str, str, str | None, str | None]:
    """Location-independent identity of a defect.

    Line numbers are left out: they shift whenever unrelated lines are
    inserted above the defect.
    """
    return (defect.error_code, defect.token_text, defect.in_class, defect.in_method)


def new_defects(old_report: Report, new_report: Report) -> Report:
    """Keep the defects of new_report that have no counterpart in old_report.

    Signatures are matched as multisets: if a file had one `$x` defect and
    now has two, one of them is new.
    """
    result = {}
    for file_name, defects in new_report.items():
        remaining = Counter(defect_signature(d) for d in old_report.get(file_name, []))
        introduced = []
        for defect in defects:
            signature = defect_signature(defect)
            if remaining[signature] > 0:
                remaining[signature] -= 1
            else:
                introduced.append(defect)
        if introduced:
            result[file_name] = introduced
    return result


def count_by_severity(report: Report) -> Counter:
    return Counter(d.severity for defects in report.values() for d in defects)


def report_to_json(report: Report) -> list[dict[str, Any]]:
    """Flat list of defects in the JSON output format of xref-lint."""
    return [
        {
            "fileName": d.file_name,
            "lineNumber": d.line_number,
            "tokenText": d.token_text,
            "severityStr": d.severity.label,
            "errorCode": d.error_code,
            "message": d.message,
            "inClass": d.in_class,
            "inMethod": d.in_method,
        }
        for defects in report.values()
        for d in defects
    ]
