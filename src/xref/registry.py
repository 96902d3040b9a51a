"""Registry of parsers and plugins, built once at startup."""

import logging
from pathlib import PurePosixPath

from xref.errors import ConfigurationError
from xref.links import LinkDatabase
from xref.parsed_file import ParsedFile
from xref.parsers.base import BaseParser
from xref.plugins.base import Capability, Plugin

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Parsers by file extension and plugins by id.

    Lookups preserve registration order, which makes report ordering
    deterministic.
    """

    def __init__(self):
        self._parsers: dict[str, BaseParser] = {}
        self._plugins: dict[str, Plugin] = {}
        self.link_database = LinkDatabase()

    def register_parser(self, parser: BaseParser) -> None:
        """Register a parser for each extension it supports.

        Raises:
            ConfigurationError: If another parser already handles one of the extensions.
        """
        extensions = [ext.lower().lstrip(".") for ext in parser.supported_extensions()]
        for extension in extensions:
            if extension in self._parsers:
                raise ConfigurationError(
                    f"Parser for '.{extension}' files is already registered "
                    f"({type(self._parsers[extension]).__name__})"
                )
        for extension in extensions:
            self._parsers[extension] = parser
        logger.debug(f"Registered {type(parser).__name__} for {extensions}")

    def register_plugin(self, plugin: Plugin) -> None:
        """Register a plugin under its id.

        Raises:
            ConfigurationError: If the id is already taken.
        """
        if plugin.plugin_id in self._plugins:
            raise ConfigurationError(f"Plugin '{plugin.plugin_id}' is already registered")
        self._plugins[plugin.plugin_id] = plugin
        plugin.set_registry(self)
        logger.debug(f"Registered plugin {plugin.plugin_id}")

    def plugins_implementing(self, capability: Capability) -> list[Plugin]:
        return [p for p in self._plugins.values() if capability in p.capabilities]

    def get_plugin(self, plugin_id: str) -> Plugin | None:
        return self._plugins.get(plugin_id)

    def get_plugins(self) -> list[Plugin]:
        return list(self._plugins.values())

    def supported_extensions(self) -> list[str]:
        return list(self._parsers)

    def get_parser_for_file(self, file_name: str) -> BaseParser | None:
        extension = PurePosixPath(file_name).suffix.lower().lstrip(".")
        return self._parsers.get(extension)

    def parse_file(self, file_name: str, content: bytes) -> ParsedFile:
        """Parse content with the parser registered for file_name.

        Raises:
            ConfigurationError: If no parser handles the file's extension.
            ParseError: If the content can't be parsed.
        """
        parser = self.get_parser_for_file(file_name)
        if parser is None:
            raise ConfigurationError(f"No parser registered for {file_name}")
        return parser.parse(content, file_name)

    def reset(self) -> None:
        """Forget all parsers, plugins and source file links."""
        self._parsers.clear()
        self._plugins.clear()
        self.link_database = LinkDatabase()
