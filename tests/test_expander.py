"""Tests for placeholder expansion."""

from bundlekit.validation.expander import (
    PlaceholderToken,
    chained_lookup,
    expand,
    extract_tokens,
)


def empty_lookup(name: str) -> str | None:
    return None


class TestExpand:
    """Tests for expand."""

    def test_default_used_when_undefined(self):
        """${PORT:-8080} falls back to its default."""
        value, missing = expand("${PORT:-8080}", empty_lookup)

        assert value == "8080"
        assert missing == []

    def test_required_reported_when_undefined(self):
        """${PORT} with no value is reported missing."""
        value, missing = expand("${PORT}", empty_lookup)

        assert value == ""
        assert missing == ["PORT"]

    def test_defined_value_wins_over_default(self):
        """A defined variable is substituted instead of the default."""
        value, missing = expand("${PORT:-8080}", {"PORT": "9000"}.get)

        assert value == "9000"
        assert missing == []

    def test_empty_value_uses_default(self):
        """With ':-' an empty value counts as unset."""
        value, _ = expand("${PORT:-8080}", {"PORT": ""}.get)

        assert value == "8080"

    def test_empty_value_satisfies_required(self):
        """A defined but empty variable is not missing."""
        value, missing = expand("x${EMPTY}y", {"EMPTY": ""}.get)

        assert value == "xy"
        assert missing == []

    def test_plain_value_unchanged(self):
        """Values without placeholders pass through untouched."""
        calls = []

        def lookup(name: str) -> str | None:
            calls.append(name)
            return None

        value, missing = expand("npx -y server", lookup)

        assert value == "npx -y server"
        assert missing == []
        assert calls == []

    def test_multiple_tokens_left_to_right(self):
        """All tokens are expanded in order and every missing name is listed."""
        value, missing = expand(
            "Bearer ${TOKEN} on ${HOST:-localhost}:${PORT}",
            {"TOKEN": "abc"}.get,
        )

        assert value == "Bearer abc on localhost:"
        assert missing == ["PORT"]

    def test_no_recursive_expansion(self):
        """Substituted text is not scanned again."""
        value, missing = expand("${OUTER}", {"OUTER": "${INNER}"}.get)

        assert value == "${INNER}"
        assert missing == []

    def test_invalid_names_left_literal(self):
        """Tokens that are not valid names are not placeholders."""
        value, missing = expand("${1BAD} and ${", empty_lookup)

        assert value == "${1BAD} and ${"
        assert missing == []

    def test_empty_default(self):
        """${NAME:-} expands to the empty string without being missing."""
        value, missing = expand("a${NAME:-}b", empty_lookup)

        assert value == "ab"
        assert missing == []


class TestExtractTokens:
    """Tests for extract_tokens."""

    def test_extracts_required_and_optional(self):
        """Tokens carry their default information."""
        tokens = extract_tokens("${A} ${B:-two}")

        assert tokens == [
            PlaceholderToken(name="A", has_default=False),
            PlaceholderToken(name="B", has_default=True, default_value="two"),
        ]
        assert tokens[0].required
        assert not tokens[1].required

    def test_no_tokens(self):
        """Plain strings have no tokens."""
        assert extract_tokens("plain") == []


class TestChainedLookup:
    """Tests for chained_lookup."""

    def test_first_layer_wins(self):
        """Earlier layers shadow later ones."""
        lookup = chained_lookup({"ROOT": "/bundle"}, {"ROOT": "/env", "HOME": "/home/a"})

        assert lookup("ROOT") == "/bundle"
        assert lookup("HOME") == "/home/a"
        assert lookup("NOPE") is None
