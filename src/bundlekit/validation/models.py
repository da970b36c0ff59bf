"""Data models for bundle validation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from bundlekit.validation.enums import ComponentKind, FindingCode, ManifestShape, Severity


@dataclass(frozen=True)
class Finding:
    """One reported defect or warning.

    Attributes:
        severity: Error or warning.
        code: Taxonomy code of the defect.
        subject: Offending entity: component identifier or reference,
            dotted manifest field path, or server name.
        message: Human-readable description.
    """

    severity: Severity
    code: FindingCode
    subject: str
    message: str

    @classmethod
    def error(cls, code: FindingCode, subject: str, message: str) -> "Finding":
        """Create an error-severity finding."""
        return cls(Severity.ERROR, code, subject, message)

    @classmethod
    def warning(cls, code: FindingCode, subject: str, message: str) -> "Finding":
        """Create a warning-severity finding."""
        return cls(Severity.WARNING, code, subject, message)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for serialization."""
        return {
            "severity": self.severity.value,
            "code": self.code.value,
            "subject": self.subject,
            "message": self.message,
        }


@dataclass
class ComponentReference:
    """A declared component: kind plus the raw path from the manifest.

    Resolution fills in `path` and `exists`; the reference is kept for the
    final report.
    """

    kind: ComponentKind
    raw_path: str
    path: Path | None = None
    exists: bool = False


@dataclass(frozen=True)
class ComponentRecord:
    """The resolved, loaded form of a component reference."""

    kind: ComponentKind
    reference: str
    path: Path
    exists: bool
    identifier: str
    description: str = ""
    header: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    body: Any = field(default=None, hash=False, compare=False)


@dataclass(frozen=True)
class Author:
    """Bundle author block."""

    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class ManifestMetadata:
    """Optional extended-shape metadata block."""

    tags: tuple[str, ...] = ()
    category: str | None = None


@dataclass
class Manifest:
    """Parsed root manifest.

    `shape` is the discriminant between the simple and extended variants;
    it is fixed by the parser and never re-derived downstream.
    """

    shape: ManifestShape
    name: str = ""
    version: str = ""
    description: str = ""
    author: Author = field(default_factory=Author)
    references: list[ComponentReference] = field(default_factory=list)
    metadata: ManifestMetadata | None = None
    # Inline `mcpServers` object, if the manifest embeds server configs
    inline_servers: dict[str, Any] | None = None
    # `mcpServers` given as a path to a separate document
    server_file: str | None = None

    @property
    def declares_servers(self) -> bool:
        """Whether the manifest declares server integrations via components.mcp."""
        return any(ref.kind == ComponentKind.MCP for ref in self.references)


class ServerConfig(BaseModel):
    """External tool server entry.

    Unknown fields are kept so forbidden-field checks can see them. Fields
    whose values had the wrong type are dropped and listed in
    `invalid_fields`, so the entry still goes through the transport checks.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    source: str = "inline"
    transport: str = Field(default="stdio", alias="type")
    command: str | None = None
    args: list[str] | None = None
    env: dict[str, str] | None = None
    url: str | None = None
    headers: dict[str, str] | None = None

    _invalid_fields: set[str] = PrivateAttr(default_factory=set)

    @property
    def invalid_fields(self) -> set[str]:
        """Fields that were declared but rejected for their type."""
        return self._invalid_fields

    def present_fields(self) -> set[str]:
        """Names of transport fields explicitly set on this entry."""
        present = {
            name
            for name in ("command", "args", "env", "url", "headers")
            if getattr(self, name) is not None
        }
        present.update(self.model_extra or {})
        present.update(self._invalid_fields)
        return present

    def string_fields(self) -> list[tuple[str, str]]:
        """Every string value on the entry as (dotted field, value) pairs.

        Declared fields come first, then unknown fields in key order.
        """
        values: list[tuple[str, str]] = []
        for name in ("command", "url"):
            value = getattr(self, name)
            if value is not None:
                values.append((name, value))
        for i, arg in enumerate(self.args or []):
            values.append((f"args[{i}]", arg))
        for key, value in (self.env or {}).items():
            values.append((f"env.{key}", value))
        for key, value in (self.headers or {}).items():
            values.append((f"headers.{key}", value))
        for name, value in (self.model_extra or {}).items():
            values.extend(_strings_in(name, value))
        return values


def _strings_in(path: str, value: Any) -> list[tuple[str, str]]:
    """Collect string leaves of a JSON value with their field paths."""
    if isinstance(value, str):
        return [(path, value)]
    if isinstance(value, list):
        return [item for i, v in enumerate(value) for item in _strings_in(f"{path}[{i}]", v)]
    if isinstance(value, dict):
        return [item for k, v in value.items() for item in _strings_in(f"{path}.{k}", v)]
    return []
