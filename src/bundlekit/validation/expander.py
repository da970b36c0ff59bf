"""Placeholder expansion for configuration values.

Supports ``${NAME}`` (required) and ``${NAME:-default}`` (optional with
fallback). Expansion is a single left-to-right pass: substituted text is
never re-scanned, so crafted values cannot recurse.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass

Lookup = Callable[[str], str | None]

# ${NAME} or ${NAME:-default}; defaults cannot contain "}" (no nesting)
PLACEHOLDER_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


@dataclass(frozen=True)
class PlaceholderToken:
    """A placeholder extracted from a string value."""

    name: str
    has_default: bool
    default_value: str = ""

    @property
    def required(self) -> bool:
        return not self.has_default


def extract_tokens(value: str) -> list[PlaceholderToken]:
    """List the placeholder tokens in a value, in order of appearance.

    Args:
        value: String to scan.

    Returns:
        Tokens found; empty when the value has no placeholders.
    """
    if "${" not in value:
        return []
    return [
        PlaceholderToken(
            name=match.group(1),
            has_default=match.group(2) is not None,
            default_value=match.group(2) or "",
        )
        for match in PLACEHOLDER_PATTERN.finditer(value)
    ]


def expand(value: str, lookup: Lookup) -> tuple[str, list[str]]:
    """Expand placeholders in a value.

    A defined variable wins; otherwise the default is used; otherwise the
    name is recorded as missing and the token expands to the empty string.
    With ``:-`` an empty value counts as unset, as in the shell.

    Args:
        value: String that may contain placeholders.
        lookup: Callable returning a variable's value, or None when undefined.

    Returns:
        Tuple of (expanded value, names of missing required variables).
    """
    if "${" not in value:
        return value, []

    missing: list[str] = []

    def substitute(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        resolved = lookup(name)
        if default is not None:
            return resolved if resolved else default
        if resolved is None:
            missing.append(name)
            return ""
        return resolved

    return PLACEHOLDER_PATTERN.sub(substitute, value), missing


def chained_lookup(*layers: Mapping[str, str]) -> Lookup:
    """Build a lookup that consults each mapping in turn.

    Args:
        layers: Mappings searched first to last.

    Returns:
        Lookup callable.
    """

    def lookup(name: str) -> str | None:
        for layer in layers:
            if name in layer:
                return layer[name]
        return None

    return lookup
