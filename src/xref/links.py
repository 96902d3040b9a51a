"""Links from source file tokens to cross-reference report pages."""

import re
from dataclasses import dataclass

from xref.models import FilePosition


@dataclass(frozen=True)
class OpenLink:
    """Starts a link to the page of object_id in report report_id."""
    report_id: str
    object_id: str | None


@dataclass(frozen=True)
class CloseLink:
    """Ends the innermost open link."""
    pass


Link = OpenLink | CloseLink


def file_name_for_object_id(object_id: str, extension: str = "html") -> str:
    """Map an object id such as Foo\\Bar::baz to a relative page path, Foo/Bar--baz.html."""
    name = object_id.replace("\\", "/")
    name = re.sub(r"[^a-zA-Z0-9.\-/]", "-", name)
    name = name.replace("..", "--")
    return f"{name}.{extension}"


def get_html_link_for(report_id: str, object_id: str | None, root: str = "", anchor: str | None = None) -> str:
    if object_id is not None:
        link = f"{root}{report_id}/{file_name_for_object_id(object_id)}"
    else:
        link = f"{root}{report_id}.html"
    if anchor:
        link += f"#{anchor}"
    return link


class LinkDatabase:
    """Per file, the links that open or close before each token index."""

    def __init__(self):
        self._links: dict[str, dict[int, list[Link]]] = {}

    def add_source_file_link(self, position: FilePosition, report_id: str, object_id: str | None) -> None:
        links = self._links.setdefault(position.file_name, {})
        links.setdefault(position.start_index, []).append(OpenLink(report_id, object_id))
        links.setdefault(position.end_index + 1, []).append(CloseLink())

    def get_source_file_links(self, file_name: str) -> dict[int, list[Link]]:
        return self._links.get(file_name, {})
