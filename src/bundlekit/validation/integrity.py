"""Cross-checks over the fully resolved component set.

A pure function of its input: it only adds findings.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from bundlekit.validation.enums import ComponentKind, FindingCode, ManifestShape
from bundlekit.validation.models import ComponentRecord, Finding, Manifest, ServerConfig

# Configure logger
logger = logging.getLogger(__name__)


@dataclass
class IntegrityInput:
    """Everything the integrity checks look at.

    Attributes:
        manifest: Parsed manifest.
        records: Every loaded component record, in traversal order.
        servers: Every server config, inline first then file sources.
        server_documents: Display paths of server documents that loaded.
    """

    manifest: Manifest
    records: list[ComponentRecord] = field(default_factory=list)
    servers: list[ServerConfig] = field(default_factory=list)
    server_documents: list[str] = field(default_factory=list)


def _group(items: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    """Group (key, value) pairs, keeping first-seen order and unique values."""
    groups: dict[str, list[str]] = {}
    for key, value in items:
        values = groups.setdefault(key, [])
        if value not in values:
            values.append(value)
    return groups


class IntegrityChecker:
    """Run the bundle-wide consistency checks."""

    def __init__(self, allowed_categories: Iterable[str], bundle_root: Path | None = None) -> None:
        """Initialize the checker.

        Args:
            allowed_categories: Categories accepted in extended-shape metadata.
            bundle_root: Root used to shorten paths in messages.
        """
        self.allowed_categories = set(allowed_categories)
        self.bundle_root = bundle_root

    def check(self, data: IntegrityInput) -> list[Finding]:
        """Run all checks.

        Returns:
            Findings in check order.
        """
        findings: list[Finding] = []
        findings.extend(self.check_duplicate_identifiers(data.records))
        findings.extend(self.check_duplicate_servers(data.servers))
        findings.extend(self.check_duplicate_references(data.records))
        findings.extend(self.check_server_sources(data))
        findings.extend(self.check_metadata_tags(data.manifest))
        logger.debug(f"Integrity checks produced {len(findings)} findings")
        return findings

    def _display(self, path: Path) -> str:
        if self.bundle_root is not None:
            try:
                return path.relative_to(self.bundle_root).as_posix()
            except ValueError:
                pass
        return str(path)

    def check_duplicate_identifiers(self, records: list[ComponentRecord]) -> list[Finding]:
        """Flag identifiers shared by different files of the same kind."""
        findings = []
        for kind in ComponentKind:
            if kind == ComponentKind.MCP:
                continue
            groups = _group(
                (record.identifier, self._display(record.path))
                for record in records
                if record.kind == kind and record.identifier
            )
            for identifier, paths in groups.items():
                if len(paths) > 1:
                    findings.append(
                        Finding.error(
                            FindingCode.DUPLICATE_IDENTIFIER,
                            identifier,
                            f"{kind.value} '{identifier}' is declared by {len(paths)} files: "
                            f"{', '.join(paths)}",
                        )
                    )
        return findings

    def check_duplicate_servers(self, servers: list[ServerConfig]) -> list[Finding]:
        """Flag server names defined more than once across sources."""
        findings = []
        counts: dict[str, int] = {}
        for server in servers:
            counts[server.name] = counts.get(server.name, 0) + 1
        sources = _group((server.name, server.source) for server in servers)
        for name, where in sources.items():
            if counts[name] > 1:
                findings.append(
                    Finding.error(
                        FindingCode.DUPLICATE_IDENTIFIER,
                        name,
                        f"server '{name}' is defined {counts[name]} times: {', '.join(where)}",
                    )
                )
        return findings

    def check_duplicate_references(self, records: list[ComponentRecord]) -> list[Finding]:
        """Flag files reached through more than one declaration."""
        findings = []
        groups = _group((self._display(record.path), record.reference) for record in records)
        seen: dict[str, int] = {}
        for record in records:
            key = self._display(record.path)
            seen[key] = seen.get(key, 0) + 1
        for path, references in groups.items():
            if seen[path] > 1:
                findings.append(
                    Finding.warning(
                        FindingCode.DUPLICATE_REFERENCE,
                        path,
                        f"{path} is declared {seen[path]} times (via {', '.join(references)})",
                    )
                )
        return findings

    def check_server_sources(self, data: IntegrityInput) -> list[Finding]:
        """Enforce inline XOR file for server configuration."""
        has_inline = data.manifest.inline_servers is not None
        has_file = bool(data.server_documents)

        if has_inline and has_file:
            return [
                Finding.error(
                    FindingCode.CONFLICTING_SERVER_SOURCE,
                    "mcpServers",
                    "servers are declared both inline in the manifest and in "
                    f"{', '.join(data.server_documents)}; use exactly one source",
                )
            ]
        if data.manifest.declares_servers and not has_inline and not has_file:
            return [
                Finding.error(
                    FindingCode.MISSING_SERVER_SOURCE,
                    "components.mcp",
                    "components.mcp declares server integrations but no server "
                    "configuration could be loaded",
                )
            ]
        return []

    def check_metadata_tags(self, manifest: Manifest) -> list[Finding]:
        """Warn on categories and tags outside the advisory set."""
        if manifest.shape != ManifestShape.EXTENDED or manifest.metadata is None:
            return []

        findings = []
        category = manifest.metadata.category
        if category is not None and category not in self.allowed_categories:
            findings.append(
                Finding.warning(
                    FindingCode.ORPHANED_TAG,
                    "metadata.category",
                    f"category '{category}' is not a known category",
                )
            )
        for i, tag in enumerate(manifest.metadata.tags):
            if tag not in self.allowed_categories:
                findings.append(
                    Finding.warning(
                        FindingCode.ORPHANED_TAG,
                        f"metadata.tags[{i}]",
                        f"tag '{tag}' does not reference a known category",
                    )
                )
        return findings
