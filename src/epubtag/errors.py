from __future__ import annotations


class EpubAnalysisError(RuntimeError):
    """Base class for every terminal failure of an analysis run."""


class ArchiveError(EpubAnalysisError):
    """Raised when the buffer is not a readable zip archive."""


class EntryNotFound(EpubAnalysisError, KeyError):
    """Raised when an archive entry does not exist at the requested path."""

    def __init__(self, path: str) -> None:
        super().__init__(path)
        self.path = path

    def __str__(self) -> str:
        return f"Entry not found in archive: {self.path}"


class MissingContainer(EpubAnalysisError):
    """Raised when META-INF/container.xml is absent."""


class MalformedContainer(EpubAnalysisError):
    """Raised when META-INF/container.xml is not well-formed XML."""


class MissingRootfilePath(EpubAnalysisError):
    """Raised when the container does not name a package document."""


class ManifestNotFound(EpubAnalysisError):
    """Raised when the package document named by the container is missing."""


class MalformedManifest(EpubAnalysisError):
    """Raised when the package document is not well-formed XML."""


class NoExtractableContent(EpubAnalysisError):
    """Raised when the reading order yields no visible text."""
