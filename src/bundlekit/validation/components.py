"""Resolve and load declared components in parallel.

Each worker takes one ComponentReference end-to-end: path resolution, file
loading and header checks. Results go to a single collector; a failure in
one reference never cancels its siblings.
"""

import json
import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from bundlekit.validation.enums import ComponentKind, FindingCode
from bundlekit.validation.errors import PathResolutionError
from bundlekit.validation.manifest import PLACEHOLDER_MARKER, has_placeholder_text
from bundlekit.validation.models import ComponentRecord, ComponentReference, Finding
from bundlekit.validation.paths import PathResolver

# Configure logger
logger = logging.getLogger(__name__)

REQUIRED_HEADER_FIELDS = ("name", "description")

# Files picked up when a reference names a directory
DIRECTORY_PATTERNS = {
    ComponentKind.COMMAND: "*.md",
    ComponentKind.AGENT: "*.md",
    ComponentKind.HOOK: "*.json",
}


class HeaderError(ValueError):
    """The attributes block exists but cannot be parsed as a mapping."""


def split_front_matter(text: str) -> str | None:
    """Extract the YAML front matter of a Markdown document.

    Args:
        text: Full document text.

    Returns:
        The front matter source, or None when the document has none.

    Raises:
        HeaderError: If the opening delimiter is never closed.
    """
    lines = text.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != "---":
        return None
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            return "\n".join(lines[1:i])
    raise HeaderError("front matter is missing its closing '---'")


def parse_header(path: Path, text: str) -> dict[str, Any] | None:
    """Parse the attributes block of a component file.

    Markdown files carry YAML front matter; JSON and YAML documents use their
    top-level mapping.

    Returns:
        Header mapping, or None if the file has no attributes block.

    Raises:
        HeaderError: If the block is present but malformed.
    """
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            data = json.loads(text)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            block = split_front_matter(text)
            if block is None:
                return None
            data = yaml.safe_load(block)
    except json.JSONDecodeError as e:
        raise HeaderError(f"invalid JSON: {e.msg} (line {e.lineno})") from e
    except yaml.YAMLError as e:
        raise HeaderError(f"invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise HeaderError(f"attributes block must be a mapping, got {type(data).__name__}")
    return data


@dataclass
class ComponentOutcome:
    """Everything one worker produced for one reference."""

    reference: ComponentReference
    records: list[ComponentRecord] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)


class OutcomeCollector:
    """Synchronized sink for worker outcomes.

    Outcomes are keyed by declaration index so the final order does not
    depend on which worker finishes first.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcomes: dict[int, ComponentOutcome] = {}

    def add(self, index: int, outcome: ComponentOutcome) -> None:
        with self._lock:
            self._outcomes[index] = outcome

    def ordered(self) -> list[ComponentOutcome]:
        with self._lock:
            return [self._outcomes[i] for i in sorted(self._outcomes)]


class ComponentResolver:
    """Resolve component references to loaded ComponentRecords."""

    def __init__(
        self,
        path_resolver: PathResolver,
        skill_header_file: str = "SKILL.md",
        max_workers: int | None = None,
    ) -> None:
        """Initialize the component resolver.

        Args:
            path_resolver: Resolver bound to the bundle root.
            skill_header_file: Header file expected inside skill directories.
            max_workers: Worker pool size. Defaults to the CPU count.
        """
        self.path_resolver = path_resolver
        self.skill_header_file = skill_header_file
        self.max_workers = max_workers or os.cpu_count() or 1

    @property
    def bundle_root(self) -> Path:
        return self.path_resolver.bundle_root

    def display_path(self, path: Path) -> str:
        """Path relative to the bundle root, for messages."""
        try:
            return path.relative_to(self.bundle_root).as_posix()
        except ValueError:
            return str(path)

    def resolve_all(self, references: list[ComponentReference]) -> list[ComponentOutcome]:
        """Resolve every reference over a bounded worker pool.

        Returns only after all workers have finished.

        Args:
            references: References in traversal order.

        Returns:
            One outcome per reference, in the same order.
        """
        if not references:
            return []

        collector = OutcomeCollector()
        workers = min(self.max_workers, len(references))
        logger.debug(f"Resolving {len(references)} references with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures: dict[Future[ComponentOutcome], int] = {
                executor.submit(self.resolve_one, reference): i
                for i, reference in enumerate(references)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    collector.add(index, future.result())
                except Exception as e:
                    reference = references[index]
                    logger.error(f"Worker failed on {reference.raw_path!r}: {e}", exc_info=True)
                    collector.add(
                        index,
                        ComponentOutcome(
                            reference=reference,
                            findings=[
                                Finding.error(
                                    FindingCode.UNREADABLE_COMPONENT,
                                    reference.raw_path,
                                    f"could not load {reference.kind.value}: {e}",
                                )
                            ],
                        ),
                    )

        return collector.ordered()

    def resolve_one(self, reference: ComponentReference) -> ComponentOutcome:
        """Resolve, load and check a single reference."""
        outcome = ComponentOutcome(reference=reference)
        raw = reference.raw_path

        try:
            resolved = self.path_resolver.resolve(raw)
        except PathResolutionError as e:
            outcome.findings.append(Finding.error(e.code, raw, str(e)))
            return outcome
        except OSError as e:
            outcome.findings.append(
                Finding.error(FindingCode.UNREADABLE_COMPONENT, raw, f"cannot resolve '{raw}': {e}")
            )
            return outcome

        reference.path = resolved.path
        reference.exists = resolved.exists
        if not resolved.exists:
            outcome.findings.append(
                Finding.error(
                    FindingCode.REFERENCE_NOT_FOUND,
                    raw,
                    f"{reference.kind.value} not found: {raw}",
                )
            )
            return outcome

        files = self._component_files(reference, resolved.path, outcome)
        for path in files:
            if reference.kind == ComponentKind.MCP:
                record = self._load_document(reference, path, outcome)
            else:
                record = self._load_header(reference, path, outcome)
            if record is not None:
                outcome.records.append(record)

        return outcome

    def _component_files(
        self, reference: ComponentReference, path: Path, outcome: ComponentOutcome
    ) -> list[Path]:
        raw = reference.raw_path
        if not path.is_dir():
            return [path]

        if reference.kind == ComponentKind.SKILL:
            header = path / self.skill_header_file
            if header.is_file():
                return [header]
            outcome.findings.append(
                Finding.error(
                    FindingCode.REFERENCE_NOT_FOUND,
                    raw,
                    f"missing {self.skill_header_file} in {raw}",
                )
            )
            return []

        pattern = DIRECTORY_PATTERNS.get(reference.kind)
        files = sorted(p for p in path.glob(pattern) if p.is_file()) if pattern else []
        if not files:
            expected = f"{pattern} files" if pattern else "a file"
            outcome.findings.append(
                Finding.error(
                    FindingCode.REFERENCE_NOT_FOUND,
                    raw,
                    f"{reference.kind.value} directory {raw} contains no {expected}",
                )
            )
        return files

    def _read_text(self, path: Path, subject: str, outcome: ComponentOutcome) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            outcome.findings.append(
                Finding.error(FindingCode.UNREADABLE_COMPONENT, subject, f"cannot read {subject}: {e}")
            )
            return None

    def _load_header(
        self, reference: ComponentReference, path: Path, outcome: ComponentOutcome
    ) -> ComponentRecord | None:
        subject = self.display_path(path)
        text = self._read_text(path, subject, outcome)
        if text is None:
            return None

        try:
            header = parse_header(path, text)
        except HeaderError as e:
            outcome.findings.append(Finding.error(FindingCode.MALFORMED_HEADER, subject, str(e)))
            return None

        if header is None:
            header = {}
            detail = "is missing (no attributes block)"
        else:
            detail = "is missing"

        values: dict[str, str] = {}
        for name in REQUIRED_HEADER_FIELDS:
            value = header.get(name)
            if value is not None and not isinstance(value, str):
                outcome.findings.append(
                    Finding.error(
                        FindingCode.INVALID_FIELD,
                        subject,
                        f"header field '{name}' must be a string, got {type(value).__name__}",
                    )
                )
                value = ""
            elif value is None or not value.strip():
                outcome.findings.append(
                    Finding.error(
                        FindingCode.MISSING_HEADER_FIELD,
                        subject,
                        f"header field '{name}' {detail if value is None else 'is empty'}",
                    )
                )
                value = ""
            values[name] = value.strip()

        if has_placeholder_text(values["description"]):
            outcome.findings.append(
                Finding.warning(
                    FindingCode.PLACEHOLDER_TEXT,
                    values["name"] or subject,
                    f"description contains {PLACEHOLDER_MARKER} placeholder",
                )
            )

        return ComponentRecord(
            kind=reference.kind,
            reference=reference.raw_path,
            path=path,
            exists=True,
            identifier=values["name"],
            description=values["description"],
            header=header,
        )

    def _load_document(
        self, reference: ComponentReference, path: Path, outcome: ComponentOutcome
    ) -> ComponentRecord | None:
        subject = self.display_path(path)
        text = self._read_text(path, subject, outcome)
        if text is None:
            return None

        try:
            body = json.loads(text)
        except json.JSONDecodeError as e:
            outcome.findings.append(
                Finding.error(
                    FindingCode.INVALID_SERVER_CONFIG,
                    subject,
                    f"server document is not valid JSON: {e.msg} (line {e.lineno})",
                )
            )
            return None

        return ComponentRecord(
            kind=reference.kind,
            reference=reference.raw_path,
            path=path,
            exists=True,
            identifier=subject,
            body=body,
        )
