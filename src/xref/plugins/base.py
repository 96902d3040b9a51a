"""Plugin contracts.

A plugin declares a closed set of capabilities; the registry filters plugins
by these tags instead of inspecting their types at run time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from xref.errors import PluginError
from xref.models import CodeDefect, ErrorDescription
from xref.parsed_file import ParsedFile

if TYPE_CHECKING:
    from xref.models import FilePosition
    from xref.project_db import ProjectDatabase
    from xref.registry import PluginRegistry


class Capability(Enum):
    """What a plugin can be dispatched for."""
    LINT = "lint"
    PROJECT_LINT = "project-lint"
    DOCUMENTATION = "documentation"


class Plugin(ABC):
    """A named unit owning one report id."""

    capabilities: frozenset[Capability] = frozenset()
    # bump when the rule changes so cached results of the old rule are dropped
    version = "1"

    def __init__(self, plugin_id: str, name: str):
        self.plugin_id = plugin_id
        self.name = name
        self.registry: PluginRegistry | None = None

    def set_registry(self, registry: PluginRegistry) -> None:
        """Called by the registry the plugin is registered with."""
        self.registry = registry

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.plugin_id!r})"


class LintPlugin(Plugin):
    """Checks one parsed file at a time."""

    capabilities = frozenset({Capability.LINT})

    @abstractmethod
    def get_error_map(self) -> dict[str, ErrorDescription]:
        """Error codes reported by this plugin with their severity and message."""
        pass

    @abstractmethod
    def get_report(self, pf: ParsedFile) -> list[tuple[int, str]]:
        """Find defects in a file.

        Returns:
            (token index, error code) pairs; the codes must be in get_error_map()
        """
        pass


class ProjectLintPlugin(Plugin):
    """Runs once per project, after every file has been parsed."""

    capabilities = frozenset({Capability.PROJECT_LINT})

    @abstractmethod
    def get_error_map(self) -> dict[str, ErrorDescription]:
        pass

    @abstractmethod
    def get_project_report(self, db: ProjectDatabase) -> dict[str, list[CodeDefect]]:
        """Find defects across files using the completed project database."""
        pass


class DocumentationPlugin(Plugin):
    """Builds a cross-reference report from parsed files."""

    capabilities = frozenset({Capability.DOCUMENTATION})

    @abstractmethod
    def generate_file_report(self, pf: ParsedFile) -> None:
        pass

    @abstractmethod
    def generate_total_report(self) -> None:
        pass

    @abstractmethod
    def get_report_link(self) -> str:
        """Relative path of the report's entry page."""
        pass

    def add_source_file_link(self, position: FilePosition, object_id: str | None) -> None:
        """Link the tokens at position to the page of object_id in this report."""
        if self.registry is None:
            raise PluginError(self.plugin_id, "not registered")
        self.registry.link_database.add_source_file_link(position, self.plugin_id, object_id)
