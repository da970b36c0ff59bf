"""Tests for component resolution and header checks."""

import json
from pathlib import Path

import pytest

from bundlekit.validation.components import (
    ComponentResolver,
    HeaderError,
    parse_header,
    split_front_matter,
)
from bundlekit.validation.enums import ComponentKind, FindingCode
from bundlekit.validation.models import ComponentReference
from bundlekit.validation.paths import PathResolver

VALID_SKILL = """---
name: auth-helper
description: Use when the user asks to "add login"
version: 1.0.0
---

# Auth Helper
"""


@pytest.fixture
def bundle_root(tmp_path: Path) -> Path:
    root = tmp_path / "bundle"
    root.mkdir()
    return root


@pytest.fixture
def resolver(bundle_root: Path) -> ComponentResolver:
    return ComponentResolver(PathResolver(bundle_root), max_workers=4)


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def skill(raw: str) -> ComponentReference:
    return ComponentReference(kind=ComponentKind.SKILL, raw_path=raw)


class TestFrontMatter:
    """Tests for header block parsing."""

    def test_split_front_matter(self):
        """The block between the leading '---' lines is returned."""
        assert split_front_matter("---\nname: x\n---\nbody") == "name: x"

    def test_no_front_matter(self):
        """Documents without a leading delimiter have no block."""
        assert split_front_matter("# Title\n---\n") is None

    def test_unclosed_front_matter(self):
        """An unclosed block is an error."""
        with pytest.raises(HeaderError, match="closing"):
            split_front_matter("---\nname: x\n")

    def test_byte_order_mark_ignored(self):
        """A UTF-8 BOM before the delimiter is tolerated."""
        assert split_front_matter("\ufeff---\nname: x\n---\n") == "name: x"

    def test_json_header(self, tmp_path: Path):
        """JSON documents use their top-level object as header."""
        header = parse_header(tmp_path / "hooks.json", '{"name": "fmt", "description": "d"}')

        assert header == {"name": "fmt", "description": "d"}

    def test_header_must_be_mapping(self, tmp_path: Path):
        """A scalar header block is malformed."""
        with pytest.raises(HeaderError, match="mapping"):
            parse_header(tmp_path / "SKILL.md", "---\njust text\n---\n")


class TestResolveOne:
    """Tests for resolving a single reference."""

    def test_valid_skill(self, bundle_root: Path, resolver: ComponentResolver):
        """A skill directory with a valid SKILL.md yields one record."""
        write(bundle_root / "skills" / "one" / "SKILL.md", VALID_SKILL)
        reference = skill("./skills/one")

        outcome = resolver.resolve_one(reference)

        assert outcome.findings == []
        assert len(outcome.records) == 1
        record = outcome.records[0]
        assert record.identifier == "auth-helper"
        assert record.description.startswith("Use when")
        assert record.path.name == "SKILL.md"
        assert reference.exists
        assert reference.path == (bundle_root / "skills" / "one").resolve()

    def test_skill_file_reference(self, bundle_root: Path, resolver: ComponentResolver):
        """A reference naming SKILL.md directly is accepted."""
        write(bundle_root / "skills" / "one" / "SKILL.md", VALID_SKILL)

        outcome = resolver.resolve_one(skill("skills/one/SKILL.md"))

        assert outcome.findings == []
        assert outcome.records[0].identifier == "auth-helper"

    def test_missing_directory(self, resolver: ComponentResolver):
        """A missing target is one ReferenceNotFound."""
        outcome = resolver.resolve_one(skill("./skills/one"))

        assert [f.code for f in outcome.findings] == [FindingCode.REFERENCE_NOT_FOUND]
        assert outcome.findings[0].subject == "./skills/one"
        assert outcome.records == []

    def test_missing_skill_header_file(self, bundle_root: Path, resolver: ComponentResolver):
        """A skill directory without SKILL.md is one ReferenceNotFound."""
        (bundle_root / "skills" / "one").mkdir(parents=True)

        outcome = resolver.resolve_one(skill("./skills/one"))

        assert [f.code for f in outcome.findings] == [FindingCode.REFERENCE_NOT_FOUND]
        assert "SKILL.md" in outcome.findings[0].message

    def test_no_front_matter(self, bundle_root: Path, resolver: ComponentResolver):
        """Without a header block both required fields are missing."""
        write(bundle_root / "skills" / "one" / "SKILL.md", "# Just content\n")

        outcome = resolver.resolve_one(skill("./skills/one"))

        assert [f.code for f in outcome.findings] == [
            FindingCode.MISSING_HEADER_FIELD,
            FindingCode.MISSING_HEADER_FIELD,
        ]
        assert outcome.findings[0].subject == "skills/one/SKILL.md"

    def test_empty_description(self, bundle_root: Path, resolver: ComponentResolver):
        """An empty description is one MissingHeaderField."""
        write(bundle_root / "skills" / "one" / "SKILL.md", "---\nname: one\ndescription: ''\n---\n")

        outcome = resolver.resolve_one(skill("./skills/one"))

        assert [f.code for f in outcome.findings] == [FindingCode.MISSING_HEADER_FIELD]
        assert "description" in outcome.findings[0].message
        assert outcome.records[0].identifier == "one"

    def test_malformed_yaml(self, bundle_root: Path, resolver: ComponentResolver):
        """Unparseable YAML is MalformedHeader and no record."""
        write(bundle_root / "skills" / "one" / "SKILL.md", "---\nname: [unclosed\n---\n")

        outcome = resolver.resolve_one(skill("./skills/one"))

        assert [f.code for f in outcome.findings] == [FindingCode.MALFORMED_HEADER]
        assert outcome.records == []

    def test_non_string_header_field(self, bundle_root: Path, resolver: ComponentResolver):
        """Non-string header values are InvalidField."""
        write(bundle_root / "skills" / "one" / "SKILL.md", "---\nname: 42\ndescription: d\n---\n")

        outcome = resolver.resolve_one(skill("./skills/one"))

        assert [f.code for f in outcome.findings] == [FindingCode.INVALID_FIELD]

    def test_todo_description_warns(self, bundle_root: Path, resolver: ComponentResolver):
        """Scaffold TODO text in a description is a warning."""
        write(
            bundle_root / "skills" / "one" / "SKILL.md",
            "---\nname: one\ndescription: 'TODO: add trigger phrases'\n---\n",
        )

        outcome = resolver.resolve_one(skill("./skills/one"))

        assert [f.code for f in outcome.findings] == [FindingCode.PLACEHOLDER_TEXT]
        assert outcome.findings[0].subject == "one"

    def test_path_escape(self, resolver: ComponentResolver):
        """Escaping references become PathEscape findings."""
        outcome = resolver.resolve_one(skill("../../etc"))

        assert [f.code for f in outcome.findings] == [FindingCode.PATH_ESCAPE]
        assert outcome.records == []

    def test_command_directory(self, bundle_root: Path, resolver: ComponentResolver):
        """A command directory yields one record per Markdown file, sorted."""
        write(bundle_root / "commands" / "b.md", "---\nname: b\ndescription: B\n---\n")
        write(bundle_root / "commands" / "a.md", "---\nname: a\ndescription: A\n---\n")
        write(bundle_root / "commands" / "notes.txt", "ignored")

        outcome = resolver.resolve_one(ComponentReference(ComponentKind.COMMAND, "./commands"))

        assert outcome.findings == []
        assert [r.identifier for r in outcome.records] == ["a", "b"]

    def test_empty_agent_directory(self, bundle_root: Path, resolver: ComponentResolver):
        """An agent directory with no Markdown files is ReferenceNotFound."""
        (bundle_root / "agents").mkdir()

        outcome = resolver.resolve_one(ComponentReference(ComponentKind.AGENT, "./agents"))

        assert [f.code for f in outcome.findings] == [FindingCode.REFERENCE_NOT_FOUND]

    def test_hook_document(self, bundle_root: Path, resolver: ComponentResolver):
        """Hook documents use their top-level mapping as header."""
        write(
            bundle_root / "hooks" / "hooks.json",
            json.dumps({"name": "format-on-save", "description": "Format files", "hooks": {}}),
        )

        outcome = resolver.resolve_one(ComponentReference(ComponentKind.HOOK, "./hooks/hooks.json"))

        assert outcome.findings == []
        assert outcome.records[0].identifier == "format-on-save"

    def test_server_document_loaded(self, bundle_root: Path, resolver: ComponentResolver):
        """Server documents are loaded without header checks."""
        body = {"mcpServers": {"db": {"command": "db-mcp"}}}
        write(bundle_root / ".mcp.json", json.dumps(body))

        outcome = resolver.resolve_one(ComponentReference(ComponentKind.MCP, "./.mcp.json"))

        assert outcome.findings == []
        assert outcome.records[0].body == body
        assert outcome.records[0].identifier == ".mcp.json"

    def test_server_document_invalid_json(self, bundle_root: Path, resolver: ComponentResolver):
        """Unparseable server documents are InvalidServerConfig."""
        write(bundle_root / ".mcp.json", "{nope")

        outcome = resolver.resolve_one(ComponentReference(ComponentKind.MCP, "./.mcp.json"))

        assert [f.code for f in outcome.findings] == [FindingCode.INVALID_SERVER_CONFIG]
        assert outcome.records == []


class TestResolveAll:
    """Tests for the worker pool."""

    def test_order_preserved(self, bundle_root: Path, resolver: ComponentResolver):
        """Outcomes come back in declaration order regardless of completion order."""
        names = [f"skill-{i:02d}" for i in range(20)]
        for name in names:
            write(
                bundle_root / "skills" / name / "SKILL.md",
                f"---\nname: {name}\ndescription: {name}\n---\n",
            )

        outcomes = resolver.resolve_all([skill(f"./skills/{name}") for name in names])

        assert [o.records[0].identifier for o in outcomes] == names

    def test_failure_isolated(self, bundle_root: Path, resolver: ComponentResolver):
        """A bad reference does not hide results for its siblings."""
        write(bundle_root / "skills" / "good" / "SKILL.md", VALID_SKILL)

        outcomes = resolver.resolve_all(
            [skill("./skills/missing"), skill("../escape"), skill("./skills/good")]
        )

        assert [f.code for f in outcomes[0].findings] == [FindingCode.REFERENCE_NOT_FOUND]
        assert [f.code for f in outcomes[1].findings] == [FindingCode.PATH_ESCAPE]
        assert outcomes[2].findings == []
        assert outcomes[2].records[0].identifier == "auth-helper"

    def test_empty(self, resolver: ComponentResolver):
        """No references means no work."""
        assert resolver.resolve_all([]) == []

    def test_undecodable_header_file(self, bundle_root: Path, resolver: ComponentResolver):
        """A SKILL.md that is not UTF-8 is UnreadableComponent; siblings still load."""
        bad = bundle_root / "skills" / "bad" / "SKILL.md"
        bad.parent.mkdir(parents=True)
        bad.write_bytes(b"---\nname: \xff\xfe\n---\n")
        write(bundle_root / "skills" / "good" / "SKILL.md", VALID_SKILL)

        outcomes = resolver.resolve_all([skill("./skills/bad"), skill("./skills/good")])

        assert [f.code for f in outcomes[0].findings] == [FindingCode.UNREADABLE_COMPONENT]
        assert outcomes[0].findings[0].subject == "skills/bad/SKILL.md"
        assert outcomes[0].records == []
        assert outcomes[1].findings == []
        assert outcomes[1].records[0].identifier == "auth-helper"

    def test_worker_exception_becomes_finding(self, bundle_root: Path):
        """An unexpected worker error is one UnreadableComponent in its slot."""

        class FailingResolver(ComponentResolver):
            def resolve_one(self, reference):
                if reference.raw_path == "./skills/broken":
                    raise RuntimeError("disk on fire")
                return super().resolve_one(reference)

        for name in ("first", "last"):
            write(
                bundle_root / "skills" / name / "SKILL.md",
                f"---\nname: {name}\ndescription: {name}\n---\n",
            )
        resolver = FailingResolver(PathResolver(bundle_root), max_workers=3)

        outcomes = resolver.resolve_all(
            [skill("./skills/first"), skill("./skills/broken"), skill("./skills/last")]
        )

        assert [o.reference.raw_path for o in outcomes] == [
            "./skills/first",
            "./skills/broken",
            "./skills/last",
        ]
        assert [f.code for f in outcomes[1].findings] == [FindingCode.UNREADABLE_COMPONENT]
        assert "disk on fire" in outcomes[1].findings[0].message
        assert outcomes[1].records == []
        assert outcomes[0].records[0].identifier == "first"
        assert outcomes[2].records[0].identifier == "last"
