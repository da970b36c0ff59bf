"""Aggregate findings into a single ordered report."""

from dataclasses import dataclass, field
from typing import Any

from bundlekit.validation.enums import ManifestShape, Severity
from bundlekit.validation.models import Finding

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_USAGE = 2


@dataclass
class ValidationReport:
    """Ordered findings for one bundle.

    Attributes:
        bundle: Resolved manifest `name`, exposed for collection-level
            uniqueness checks. Empty when the manifest never parsed.
        shape: Detected manifest shape, if parsing got that far.
        findings: Findings in stage order.
    """

    bundle: str = ""
    shape: ManifestShape | None = None
    findings: list[Finding] = field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def is_valid(self) -> bool:
        """True when no finding has error severity."""
        return not self.errors

    def exit_code(self, strict: bool = False) -> int:
        """Process exit status for this report.

        Args:
            strict: Treat warnings as errors.

        Returns:
            EXIT_OK or EXIT_INVALID.
        """
        if not self.is_valid or (strict and self.warnings):
            return EXIT_INVALID
        return EXIT_OK

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "bundle": self.bundle,
            "shape": self.shape.value if self.shape else None,
            "valid": self.is_valid,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "findings": [f.to_dict() for f in self.findings],
        }


class ReportAggregator:
    """Collect findings stage by stage.

    Performs no validation of its own.
    """

    def __init__(self) -> None:
        self._stages: list[tuple[str, list[Finding]]] = []

    def add(self, stage: str, findings: list[Finding]) -> None:
        """Append a stage's findings, preserving discovery order."""
        self._stages.append((stage, list(findings)))

    def stage_findings(self, stage: str) -> list[Finding]:
        return [f for name, findings in self._stages if name == stage for f in findings]

    def build(self, bundle: str = "", shape: ManifestShape | None = None) -> ValidationReport:
        """Concatenate every stage into a report."""
        findings = [f for _, stage in self._stages for f in stage]
        return ValidationReport(bundle=bundle, shape=shape, findings=findings)
