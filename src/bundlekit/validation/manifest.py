"""Parse the root manifest document and detect its shape.

Two shapes are supported:

- simple: a flat ``skills`` list of skill directories
- extended: a ``components`` map keyed by kind, plus optional ``metadata``

Structural parse failure is fatal. Every other defect becomes a finding and
parsing continues so later stages can still report the rest of the bundle.
"""

import json
import logging
import re
from typing import Any

from bundlekit.validation.enums import COMPONENT_KEYS, ComponentKind, FindingCode, ManifestShape
from bundlekit.validation.errors import FatalParseError
from bundlekit.validation.models import (
    Author,
    ComponentReference,
    Finding,
    Manifest,
    ManifestMetadata,
)

# Configure logger
logger = logging.getLogger(__name__)

KEBAB_CASE_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)

# Left behind by the bundle scaffolding templates
PLACEHOLDER_MARKER = "TODO"


def has_placeholder_text(value: str) -> bool:
    """Check whether a value still carries scaffold placeholder text."""
    return PLACEHOLDER_MARKER in value


class ManifestParser:
    """Parse manifest bytes into a Manifest plus findings."""

    def __init__(self) -> None:
        self.findings: list[Finding] = []

    def parse(self, data: bytes, source: str = "plugin.json") -> tuple[Manifest, list[Finding]]:
        """Parse a manifest document.

        Args:
            data: Raw manifest bytes.
            source: Display name of the manifest, used in fatal messages.

        Returns:
            Tuple of (manifest, findings).

        Raises:
            FatalParseError: If the document is not a parseable JSON object.
        """
        self.findings = []
        document = self._load(data, source)

        shape = self._detect_shape(document)
        manifest = Manifest(shape=shape)
        manifest.name = self._required_string(document, "name")
        manifest.version = self._required_string(document, "version")
        manifest.description = self._required_string(document, "description")
        manifest.author = self._parse_author(document)

        if manifest.name and not KEBAB_CASE_PATTERN.match(manifest.name):
            self._error(FindingCode.INVALID_FIELD, "name", f"'{manifest.name}' is not kebab-case")
        if manifest.version and not SEMVER_PATTERN.match(manifest.version):
            self._error(
                FindingCode.INVALID_FIELD,
                "version",
                f"'{manifest.version}' is not a semantic version",
            )

        if shape == ManifestShape.SIMPLE:
            manifest.references = self._string_list(
                document.get("skills"), "skills", ComponentKind.SKILL
            )
        else:
            manifest.references = self._parse_components(document.get("components", {}))
            manifest.metadata = self._parse_metadata(document.get("metadata"))

        self._parse_server_field(document, manifest)

        if not manifest.references and ("skills" in document) != ("components" in document):
            self.findings.append(
                Finding.warning(
                    FindingCode.NO_COMPONENTS,
                    "skills" if shape == ManifestShape.SIMPLE else "components",
                    "manifest declares no components",
                )
            )

        logger.debug(
            f"Parsed manifest {manifest.name!r}: shape={shape.value}, "
            f"{len(manifest.references)} references, {len(self.findings)} findings"
        )
        return manifest, self.findings

    def _load(self, data: bytes, source: str) -> dict[str, Any]:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FatalParseError(f"{source} is not valid UTF-8: {e}") from e
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise FatalParseError(
                f"{source} is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})"
            ) from e
        if not isinstance(document, dict):
            raise FatalParseError(f"{source} must contain a JSON object")
        return document

    def _detect_shape(self, document: dict[str, Any]) -> ManifestShape:
        has_skills = "skills" in document
        has_components = "components" in document
        if has_skills and not has_components:
            return ManifestShape.SIMPLE
        if has_components and not has_skills:
            return ManifestShape.EXTENDED

        detail = (
            "both 'skills' and 'components' are declared"
            if has_skills
            else "neither 'skills' nor 'components' is declared"
        )
        self._error(
            FindingCode.SCHEMA_CONFLICT,
            "skills/components",
            f"{detail}; exactly one is required (treating as extended shape)",
        )
        return ManifestShape.EXTENDED

    def _required_string(self, container: dict[str, Any], key: str, prefix: str = "") -> str:
        path = f"{prefix}{key}"
        value = container.get(key)
        if value is None:
            self._error(FindingCode.MISSING_FIELD, path, f"required field '{path}' is missing")
            return ""
        if not isinstance(value, str):
            self._error(
                FindingCode.INVALID_FIELD,
                path,
                f"'{path}' must be a string, got {type(value).__name__}",
            )
            return ""
        if not value.strip():
            self._error(FindingCode.MISSING_FIELD, path, f"required field '{path}' is empty")
            return ""
        if path != "name" and has_placeholder_text(value):
            self.findings.append(
                Finding.warning(
                    FindingCode.PLACEHOLDER_TEXT,
                    path,
                    f"'{path}' contains {PLACEHOLDER_MARKER} placeholder: {value}",
                )
            )
        return value

    def _parse_author(self, document: dict[str, Any]) -> Author:
        author = document.get("author")
        if author is None:
            author = {}
        elif not isinstance(author, dict):
            self._error(
                FindingCode.INVALID_FIELD,
                "author",
                f"'author' must be an object, got {type(author).__name__}",
            )
            return Author()
        return Author(
            name=self._required_string(author, "name", "author."),
            email=self._required_string(author, "email", "author."),
        )

    def _string_list(self, value: Any, path: str, kind: ComponentKind) -> list[ComponentReference]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            self._error(
                FindingCode.INVALID_FIELD,
                path,
                f"'{path}' must be a list of paths, got {type(value).__name__}",
            )
            return []

        references = []
        for i, item in enumerate(value):
            if not isinstance(item, str) or not item.strip():
                self._error(
                    FindingCode.INVALID_FIELD,
                    f"{path}[{i}]",
                    f"'{path}[{i}]' must be a non-empty path string",
                )
                continue
            references.append(ComponentReference(kind=kind, raw_path=item))
        return references

    def _parse_components(self, components: Any) -> list[ComponentReference]:
        if not isinstance(components, dict):
            self._error(
                FindingCode.INVALID_FIELD,
                "components",
                f"'components' must be an object, got {type(components).__name__}",
            )
            return []

        for key in components:
            if key not in COMPONENT_KEYS:
                self.findings.append(
                    Finding.warning(
                        FindingCode.UNKNOWN_COMPONENT_KIND,
                        f"components.{key}",
                        f"unknown component kind '{key}' is ignored",
                    )
                )

        references: list[ComponentReference] = []
        for key, kind in COMPONENT_KEYS.items():
            if key in components:
                references.extend(self._string_list(components[key], f"components.{key}", kind))
        return references

    def _parse_metadata(self, metadata: Any) -> ManifestMetadata | None:
        if metadata is None:
            return None
        if not isinstance(metadata, dict):
            self._error(
                FindingCode.INVALID_FIELD,
                "metadata",
                f"'metadata' must be an object, got {type(metadata).__name__}",
            )
            return None

        tags = metadata.get("tags", [])
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            self._error(FindingCode.INVALID_FIELD, "metadata.tags", "'metadata.tags' must be a list of strings")
            tags = []

        category = metadata.get("category")
        if category is not None and not isinstance(category, str):
            self._error(FindingCode.INVALID_FIELD, "metadata.category", "'metadata.category' must be a string")
            category = None

        return ManifestMetadata(tags=tuple(tags), category=category)

    def _parse_server_field(self, document: dict[str, Any], manifest: Manifest) -> None:
        servers = document.get("mcpServers")
        if servers is None:
            return
        if isinstance(servers, dict):
            manifest.inline_servers = servers
        elif isinstance(servers, str) and servers.strip():
            manifest.server_file = servers
        else:
            self._error(
                FindingCode.INVALID_FIELD,
                "mcpServers",
                "'mcpServers' must be an object or a path to a server document",
            )

    def _error(self, code: FindingCode, subject: str, message: str) -> None:
        self.findings.append(Finding.error(code, subject, message))


def parse_manifest(data: bytes, source: str = "plugin.json") -> tuple[Manifest, list[Finding]]:
    """Parse manifest bytes.

    Args:
        data: Raw manifest bytes.
        source: Display name used in messages.

    Returns:
        Tuple of (manifest, findings).

    Raises:
        FatalParseError: If the document cannot be parsed.
    """
    return ManifestParser().parse(data, source)
