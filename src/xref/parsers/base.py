from abc import ABC, abstractmethod

from xref.parsed_file import ParsedFile


class BaseParser(ABC):
    """Abstract base class for language-specific file parsers."""

    @abstractmethod
    def parse(self, content: bytes, display_name: str) -> ParsedFile:
        """Parse file content into a structural model.

        Args:
            content: Raw file content
            display_name: Name used in messages and defects, not necessarily a real path

        Returns:
            ParsedFile with tokens and derived indices

        Raises:
            ParseError: If the content can't be parsed
        """
        pass

    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """File extensions handled by this parser, e.g. ["php"]."""
        pass
