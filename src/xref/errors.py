"""Error types raised by the parser, the lint engine and their collaborators."""


class XRefError(Exception):
    """Base error for xref operations."""

    pass


class ParseError(XRefError):
    """Source file can't be tokenized or its structure is malformed."""

    def __init__(self, message: str, line_number: int = 0, byte_offset: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.line_number = line_number
        self.byte_offset = byte_offset


class PluginError(XRefError):
    """A plugin failed while analyzing one file."""

    def __init__(self, plugin_id: str, message: str) -> None:
        super().__init__(f"Plugin '{plugin_id}' failed: {message}")
        self.plugin_id = plugin_id
        self.reason = message


class ConfigurationError(XRefError):
    """Broken setup: duplicate plugin, duplicate parser, unknown config value."""

    pass


class StorageError(XRefError):
    """Persistent storage read or write failed."""

    pass


class SourceControlError(XRefError):
    """Source code manager operation failed."""

    pass


class RevisionNotFoundError(SourceControlError):
    """Revision can't be resolved by the source code manager."""

    def __init__(self, revision: str) -> None:
        super().__init__(f"Revision not found: {revision}")
        self.revision = revision


class FileNotFoundInRevisionError(SourceControlError):
    """Path doesn't exist at the given revision."""

    def __init__(self, revision: str, path: str) -> None:
        super().__init__(f"File {path} not found in revision {revision}")
        self.revision = revision
        self.path = path
