"""Structural validation of external tool server configurations.

Servers are never started or dialed; only the declared fields are checked
against the transport kind.
"""

import logging
from typing import Any

from pydantic import ValidationError

from bundlekit.validation.enums import FindingCode, Transport
from bundlekit.validation.expander import Lookup, expand
from bundlekit.validation.models import Finding, ServerConfig

# Configure logger
logger = logging.getLogger(__name__)

REQUIRED_FIELDS: dict[Transport, tuple[str, ...]] = {
    Transport.STDIO: ("command",),
    Transport.HTTP: ("url",),
    Transport.SSE: ("url",),
}

FORBIDDEN_FIELDS: dict[Transport, tuple[str, ...]] = {
    Transport.STDIO: ("url", "headers"),
    Transport.HTTP: ("command", "args"),
    Transport.SSE: ("command", "args"),
}

DEPRECATED_TRANSPORTS = {Transport.SSE}


def build_server_configs(
    servers: Any, source: str, subject: str = "mcpServers"
) -> tuple[list[ServerConfig], list[Finding]]:
    """Turn an ``mcpServers`` map into ServerConfig entries.

    Args:
        servers: The raw map of server name to entry.
        source: Where the map came from ("inline" or a document path).
        subject: Subject used when the map itself is malformed.

    Returns:
        Tuple of (configs in document order, findings).
    """
    if not isinstance(servers, dict):
        return [], [
            Finding.error(
                FindingCode.INVALID_SERVER_CONFIG,
                subject,
                f"'mcpServers' in {source} must be an object keyed by server name",
            )
        ]

    configs: list[ServerConfig] = []
    findings: list[Finding] = []
    for name, entry in servers.items():
        if not isinstance(entry, dict):
            findings.append(
                Finding.error(
                    FindingCode.INVALID_SERVER_CONFIG,
                    name,
                    f"server entry in {source} must be an object, got {type(entry).__name__}",
                )
            )
            continue
        data = {**entry, "name": name, "source": source}
        try:
            configs.append(ServerConfig.model_validate(data))
            continue
        except ValidationError as e:
            errors = e.errors()

        invalid: set[str] = set()
        for error in errors:
            field_path = ".".join(str(part) for part in error["loc"])
            findings.append(
                Finding.error(
                    FindingCode.INVALID_SERVER_CONFIG,
                    name,
                    f"field '{field_path}' in {source}: {error['msg']}",
                )
            )
            invalid.add(str(error["loc"][0]))
        configs.append(_without_invalid_fields(data, invalid))
    return configs, findings


def _without_invalid_fields(data: dict[str, Any], invalid: set[str]) -> ServerConfig:
    """Rebuild an entry with its wrongly typed fields left out.

    A wrongly typed transport is kept as text so it fails as unknown.
    """
    cleaned = {key: value for key, value in data.items() if key not in invalid}
    if {"type", "transport"} & invalid:
        cleaned.pop("transport", None)
        cleaned["type"] = str(data.get("type", data.get("transport")))
    config = ServerConfig.model_validate(cleaned)
    config.invalid_fields.update(invalid - {"type", "transport"})
    return config


def servers_from_document(document: Any, source: str) -> tuple[list[ServerConfig], list[Finding]]:
    """Extract server configs from a standalone server document.

    The document must be an object with a single ``mcpServers`` map.
    """
    if not isinstance(document, dict) or "mcpServers" not in document:
        return [], [
            Finding.error(
                FindingCode.INVALID_SERVER_CONFIG,
                source,
                "server document must be an object with an 'mcpServers' map",
            )
        ]
    return build_server_configs(document["mcpServers"], source, subject=source)


class TransportValidator:
    """Validate server configs against their transport's field table."""

    def __init__(self, lookup: Lookup) -> None:
        """Initialize the validator.

        Args:
            lookup: Placeholder lookup, normally the process environment
                layered under the bundle root placeholder.
        """
        self.lookup = lookup

    def validate(self, config: ServerConfig) -> list[Finding]:
        """Validate one server config.

        Args:
            config: Server configuration entry.

        Returns:
            Findings for this entry, in check order.
        """
        findings = self._check_placeholders(config)

        try:
            transport = Transport(config.transport)
        except ValueError:
            findings.append(
                Finding.error(
                    FindingCode.UNKNOWN_TRANSPORT,
                    config.name,
                    f"unknown transport '{config.transport}' "
                    f"(expected one of: {', '.join(t.value for t in Transport)})",
                )
            )
            return findings

        present = config.present_fields()
        for field_name in REQUIRED_FIELDS[transport]:
            # Already reported as InvalidServerConfig
            if field_name in config.invalid_fields:
                continue
            value = getattr(config, field_name)
            if value is None or not value.strip():
                findings.append(
                    Finding.error(
                        FindingCode.MISSING_FIELD,
                        config.name,
                        f"{transport.value} server is missing required field '{field_name}'",
                    )
                )

        for field_name in FORBIDDEN_FIELDS[transport]:
            if field_name in present:
                findings.append(
                    Finding.error(
                        FindingCode.FORBIDDEN_FIELD,
                        config.name,
                        f"field '{field_name}' is not allowed for {transport.value} transport",
                    )
                )

        if transport in DEPRECATED_TRANSPORTS:
            findings.append(
                Finding.warning(
                    FindingCode.DEPRECATED_TRANSPORT,
                    config.name,
                    f"'{transport.value}' transport is deprecated; use 'http' instead",
                )
            )

        logger.debug(f"Validated server {config.name!r} ({config.source}): {len(findings)} findings")
        return findings

    def _check_placeholders(self, config: ServerConfig) -> list[Finding]:
        findings = []
        for field_path, value in config.string_fields():
            _, missing = expand(value, self.lookup)
            for variable in missing:
                findings.append(
                    Finding.error(
                        FindingCode.ENV_VAR_MISSING,
                        config.name,
                        f"field '{field_path}' references undefined variable '{variable}'",
                    )
                )
        return findings
