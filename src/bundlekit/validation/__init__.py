"""Bundle manifest validation engine."""

from bundlekit.validation.engine import BundleValidator, validate_bundle
from bundlekit.validation.enums import ComponentKind, FindingCode, ManifestShape, Severity, Transport
from bundlekit.validation.errors import BundleError, BundleUsageError, FatalParseError
from bundlekit.validation.expander import PlaceholderToken, expand, extract_tokens
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

__all__ = [
    "BundleError",
    "BundleUsageError",
    "BundleValidator",
    "ComponentKind",
    "ComponentRecord",
    "ComponentReference",
    "FatalParseError",
    "Finding",
    "FindingCode",
    "Manifest",
    "ManifestShape",
    "PathResolver",
    "PlaceholderToken",
    "ReportAggregator",
    "ServerConfig",
    "Severity",
    "Transport",
    "ValidationReport",
    "expand",
    "extract_tokens",
    "parse_manifest",
    "validate_bundle",
]
