"""Validation pipeline for a single bundle.

Manifest -> components (worker pool) -> transports -> integrity -> report.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from bundlekit.config import BundleSettings, get_settings
from bundlekit.validation.components import ComponentResolver
from bundlekit.validation.enums import ComponentKind, FindingCode
from bundlekit.validation.errors import BundleUsageError, FatalParseError, PathResolutionError
from bundlekit.validation.expander import chained_lookup
from bundlekit.validation.integrity import IntegrityChecker, IntegrityInput
from bundlekit.validation.manifest import parse_manifest
from bundlekit.validation.models import (
    ComponentRecord,
    ComponentReference,
    Finding,
    Manifest,
    ServerConfig,
)
from bundlekit.validation.paths import PathResolver
from bundlekit.validation.report import ReportAggregator, ValidationReport
from bundlekit.validation.transport import (
    TransportValidator,
    build_server_configs,
    servers_from_document,
)

# Configure logger
logger = logging.getLogger(__name__)


class BundleValidator:
    """Validate bundles against the manifest rules."""

    def __init__(
        self,
        settings: BundleSettings | None = None,
        environ: Mapping[str, str] | None = None,
        max_workers: int | None = None,
    ) -> None:
        """Initialize the validator.

        Args:
            settings: Bundlekit settings. Defaults to get_settings().
            environ: Variables visible to server placeholders. Defaults to
                the process environment at validation time.
            max_workers: Worker pool size override.
        """
        self.settings = settings or get_settings()
        self.environ = environ
        self.max_workers = max_workers or self.settings.max_workers

    def find_manifest(self, root: Path) -> Path | None:
        """Return the first manifest candidate present under the root."""
        for candidate in self.settings.manifest_paths:
            path = root / candidate
            if path.is_file():
                return path
        return None

    def validate(self, bundle_path: str | Path) -> ValidationReport:
        """Validate one bundle.

        Args:
            bundle_path: Bundle root directory.

        Returns:
            The validation report.

        Raises:
            BundleUsageError: If the root is missing or unreadable.
        """
        root = self._check_root(Path(bundle_path))
        aggregator = ReportAggregator()
        logger.info(f"Validating bundle: {root}")

        manifest_path = self.find_manifest(root)
        if manifest_path is None:
            expected = " or ".join(self.settings.manifest_paths)
            aggregator.add(
                "manifest",
                [
                    Finding.error(
                        FindingCode.MISSING_MANIFEST,
                        "manifest",
                        f"no manifest found (expected {expected})",
                    )
                ],
            )
            return aggregator.build()

        source = manifest_path.relative_to(root).as_posix()
        try:
            manifest, findings = parse_manifest(manifest_path.read_bytes(), source)
        except OSError as e:
            aggregator.add(
                "manifest",
                [Finding.error(FindingCode.FATAL_PARSE_ERROR, source, f"cannot read {source}: {e}")],
            )
            return aggregator.build()
        except FatalParseError as e:
            logger.info(f"Manifest parse failed, halting: {e}")
            aggregator.add("manifest", [Finding.error(e.code, source, str(e))])
            return aggregator.build()
        aggregator.add("manifest", findings)

        path_resolver = PathResolver(root, self.settings.root_placeholder)
        component_resolver = ComponentResolver(
            path_resolver,
            skill_header_file=self.settings.skill_header_file,
            max_workers=self.max_workers,
        )

        references = manifest.references + self._server_references(manifest, path_resolver)
        outcomes = component_resolver.resolve_all(references)
        records = [record for outcome in outcomes for record in outcome.records]
        aggregator.add("components", [f for outcome in outcomes for f in outcome.findings])

        servers, server_findings = self._collect_servers(manifest, records)
        environ = os.environ if self.environ is None else self.environ
        lookup = chained_lookup({self.settings.root_placeholder: str(root)}, environ)
        validator = TransportValidator(lookup)
        for server in servers:
            server_findings.extend(validator.validate(server))
        aggregator.add("transport", server_findings)

        checker = IntegrityChecker(self.settings.allowed_categories, bundle_root=root)
        aggregator.add(
            "integrity",
            checker.check(
                IntegrityInput(
                    manifest=manifest,
                    records=records,
                    servers=servers,
                    server_documents=[
                        r.identifier for r in records if r.kind == ComponentKind.MCP
                    ],
                )
            ),
        )

        report = aggregator.build(bundle=manifest.name, shape=manifest.shape)
        logger.info(
            f"Validated {manifest.name or root.name}: "
            f"{len(report.errors)} errors, {len(report.warnings)} warnings"
        )
        return report

    def _check_root(self, root: Path) -> Path:
        if not root.exists():
            raise BundleUsageError(f"Bundle path '{root}' does not exist")
        if not root.is_dir():
            raise BundleUsageError(f"Bundle path '{root}' is not a directory")
        try:
            next(root.iterdir(), None)
        except OSError as e:
            raise BundleUsageError(f"Bundle path '{root}' is not readable: {e}") from e
        return root.resolve()

    def _server_references(
        self, manifest: Manifest, path_resolver: PathResolver
    ) -> list[ComponentReference]:
        """Server documents not listed under components.mcp.

        These are a manifest `mcpServers` path and the sibling server
        document at the bundle root, each added once.
        """
        declared: set[Path] = set()
        for reference in manifest.references:
            if reference.kind == ComponentKind.MCP:
                path = self._peek(path_resolver, reference.raw_path)
                if path is not None:
                    declared.add(path)

        extra: list[ComponentReference] = []
        candidates = []
        if manifest.server_file:
            candidates.append(manifest.server_file)
        sibling = path_resolver.bundle_root / self.settings.server_config_file
        if sibling.is_file():
            candidates.append(f"./{self.settings.server_config_file}")

        for raw in candidates:
            path = self._peek(path_resolver, raw)
            if path is not None and path in declared:
                continue
            if path is not None:
                declared.add(path)
            extra.append(ComponentReference(kind=ComponentKind.MCP, raw_path=raw))
        return extra

    @staticmethod
    def _peek(path_resolver: PathResolver, raw: str) -> Path | None:
        try:
            return path_resolver.resolve(raw).path
        except (PathResolutionError, OSError):
            return None

    def _collect_servers(
        self, manifest: Manifest, records: list[ComponentRecord]
    ) -> tuple[list[ServerConfig], list[Finding]]:
        servers: list[ServerConfig] = []
        findings: list[Finding] = []
        if manifest.inline_servers is not None:
            configs, problems = build_server_configs(manifest.inline_servers, "inline")
            servers.extend(configs)
            findings.extend(problems)
        for record in records:
            if record.kind != ComponentKind.MCP:
                continue
            configs, problems = servers_from_document(record.body, record.identifier)
            servers.extend(configs)
            findings.extend(problems)
        return servers, findings


def validate_bundle(
    bundle_path: str | Path,
    settings: BundleSettings | None = None,
    environ: Mapping[str, str] | None = None,
) -> ValidationReport:
    """Validate a bundle with default settings.

    Args:
        bundle_path: Bundle root directory.
        settings: Optional settings override.
        environ: Optional placeholder variables instead of os.environ.

    Returns:
        The validation report.
    """
    return BundleValidator(settings=settings, environ=environ).validate(bundle_path)
