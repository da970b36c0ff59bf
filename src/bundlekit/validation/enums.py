"""Centralized enums for bundle validation.

This module provides the severity, kind and finding-code constants used
throughout the engine, replacing magic strings with type-safe constants.
"""

from enum import Enum


class Severity(str, Enum):
    """Finding severity."""

    ERROR = "error"
    WARNING = "warning"


class ComponentKind(str, Enum):
    """Kinds of component a manifest may declare.

    Declaration order is also the traversal order of the engine.
    """

    SKILL = "skill"
    COMMAND = "command"
    AGENT = "agent"
    HOOK = "hook"
    MCP = "mcp"


# Keys used under the extended shape's `components` map.
COMPONENT_KEYS: dict[str, ComponentKind] = {
    "skills": ComponentKind.SKILL,
    "commands": ComponentKind.COMMAND,
    "agents": ComponentKind.AGENT,
    "hooks": ComponentKind.HOOK,
    "mcp": ComponentKind.MCP,
}


class ManifestShape(str, Enum):
    """Manifest format variant, decided once at parse time."""

    SIMPLE = "simple"
    EXTENDED = "extended"


class Transport(str, Enum):
    """External tool server transports."""

    STDIO = "stdio"
    HTTP = "http"
    SSE = "sse"


class FindingCode(str, Enum):
    """Codes attached to findings."""

    FATAL_PARSE_ERROR = "FatalParseError"
    MISSING_MANIFEST = "MissingManifest"
    SCHEMA_CONFLICT = "SchemaConflict"
    MISSING_FIELD = "MissingField"
    MISSING_HEADER_FIELD = "MissingHeaderField"
    INVALID_FIELD = "InvalidField"
    MALFORMED_HEADER = "MalformedHeader"
    REFERENCE_NOT_FOUND = "ReferenceNotFound"
    UNREADABLE_COMPONENT = "UnreadableComponent"
    PATH_ESCAPE = "PathEscape"
    SYMLINK_CYCLE = "SymlinkCycle"
    UNKNOWN_TRANSPORT = "UnknownTransport"
    FORBIDDEN_FIELD = "ForbiddenField"
    INVALID_SERVER_CONFIG = "InvalidServerConfig"
    ENV_VAR_MISSING = "EnvVarMissing"
    DUPLICATE_IDENTIFIER = "DuplicateIdentifier"
    CONFLICTING_SERVER_SOURCE = "ConflictingServerSource"
    MISSING_SERVER_SOURCE = "MissingServerSource"
    DEPRECATED_TRANSPORT = "DeprecatedTransport"
    ORPHANED_TAG = "OrphanedTag"
    DUPLICATE_REFERENCE = "DuplicateReference"
    UNKNOWN_COMPONENT_KIND = "UnknownComponentKind"
    PLACEHOLDER_TEXT = "PlaceholderText"
    NO_COMPONENTS = "NoComponents"
