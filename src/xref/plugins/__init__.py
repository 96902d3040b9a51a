from xref.plugins.base import (
    Capability,
    DocumentationPlugin,
    LintPlugin,
    Plugin,
    ProjectLintPlugin,
)

__all__ = [
    "Capability",
    "DocumentationPlugin",
    "LintPlugin",
    "Plugin",
    "ProjectLintPlugin",
]
