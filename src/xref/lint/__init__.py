"""Lint rules shipped with xref."""

from collections.abc import Iterable

from xref.errors import ConfigurationError
from xref.lint.assignment_in_condition import AssignmentInConditionPlugin
from xref.lint.class_hierarchy import ClassHierarchyPlugin
from xref.lint.closing_tag import ClosingTagPlugin
from xref.lint.lower_case_literals import LowerCaseLiteralsPlugin
from xref.lint.static_this import StaticThisPlugin
from xref.parsers.php_parser import PhpParser
from xref.plugins.base import Plugin
from xref.registry import PluginRegistry


def default_plugins(ignore_missing_class: Iterable[str] = ()) -> list[Plugin]:
    return [
        LowerCaseLiteralsPlugin(),
        StaticThisPlugin(),
        AssignmentInConditionPlugin(),
        ClosingTagPlugin(),
        ClassHierarchyPlugin(ignore_missing_class),
    ]


def create_registry(
    enabled: Iterable[str] | None = None,
    ignore_missing_class: Iterable[str] = (),
) -> PluginRegistry:
    """Registry with the PHP parser and the built-in plugins.

    Args:
        enabled: Plugin ids to register; None registers all of them
        ignore_missing_class: Parent classes the class-hierarchy rule accepts as declared

    Raises:
        ConfigurationError: If enabled names an unknown plugin.
    """
    registry = PluginRegistry()
    registry.register_parser(PhpParser())

    plugins = {plugin.plugin_id: plugin for plugin in default_plugins(ignore_missing_class)}
    if enabled is None:
        selected = list(plugins)
    else:
        selected = list(enabled)
        unknown = [plugin_id for plugin_id in selected if plugin_id not in plugins]
        if unknown:
            raise ConfigurationError(
                f"Unknown plugin(s): {', '.join(unknown)}. Available: {', '.join(plugins)}"
            )
    for plugin_id in selected:
        registry.register_plugin(plugins[plugin_id])
    return registry
