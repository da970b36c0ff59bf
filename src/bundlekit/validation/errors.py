"""Exceptions raised inside the validation engine."""

from bundlekit.validation.enums import FindingCode


class BundleError(Exception):
    """Base class for bundle validation errors."""


class BundleUsageError(BundleError):
    """The bundle root itself is unusable (missing, not a directory, unreadable)."""


class FatalParseError(BundleError):
    """The manifest cannot be parsed; no further stage runs."""

    def __init__(self, message: str, code: FindingCode = FindingCode.FATAL_PARSE_ERROR) -> None:
        super().__init__(message)
        self.code = code


class PathResolutionError(BundleError):
    """A single reference could not be resolved safely."""

    code = FindingCode.PATH_ESCAPE


class PathEscapeError(PathResolutionError):
    """Resolution left the bundle root."""

    code = FindingCode.PATH_ESCAPE


class SymlinkCycleError(PathResolutionError):
    """Resolution hit a symlink loop."""

    code = FindingCode.SYMLINK_CYCLE
