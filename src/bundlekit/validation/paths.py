"""Resolve component references against a bundle root.

References are relative paths, optionally prefixed with the root placeholder
(``${CLAUDE_PLUGIN_ROOT}/servers/db``). Resolution never leaves the bundle
root and never loops on symlink cycles.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from bundlekit.validation.errors import PathEscapeError, SymlinkCycleError

# Configure logger
logger = logging.getLogger(__name__)

# Same hop limit the Linux kernel applies (MAXSYMLINKS)
MAX_SYMLINK_HOPS = 40


@dataclass(frozen=True)
class ResolvedPath:
    """Result of resolving one reference."""

    raw: str
    path: Path
    exists: bool


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


class PathResolver:
    """Resolve raw reference strings to absolute paths inside a bundle."""

    def __init__(self, bundle_root: str | Path, placeholder: str = "CLAUDE_PLUGIN_ROOT") -> None:
        """Initialize the resolver.

        Args:
            bundle_root: Bundle root directory.
            placeholder: Name of the root placeholder variable.
        """
        self.bundle_root = Path(bundle_root).resolve()
        self.token = "${" + placeholder + "}"

    def substitute_root(self, raw_path: str) -> str:
        """Replace the root placeholder with the bundle root."""
        if self.token not in raw_path:
            return raw_path
        return raw_path.replace(self.token, str(self.bundle_root))

    def resolve(self, raw_path: str) -> ResolvedPath:
        """Resolve a reference string.

        Args:
            raw_path: Reference as written in the manifest.

        Returns:
            ResolvedPath with the absolute path and existence flag.

        Raises:
            PathEscapeError: If the reference leaves the bundle root.
            SymlinkCycleError: If a symlink loop is encountered.
        """
        substituted = self.substitute_root(raw_path.strip())
        candidate = Path(substituted)
        if not candidate.is_absolute():
            candidate = self.bundle_root / candidate

        # Lexical check first: `..` segments must not climb out of the root
        normalized = Path(os.path.normpath(candidate))
        if not _is_within(normalized, self.bundle_root):
            raise PathEscapeError(f"'{raw_path}' resolves outside the bundle root")

        real = self._follow_symlinks(normalized)
        if not _is_within(real, self.bundle_root):
            raise PathEscapeError(
                f"'{raw_path}' follows a symlink outside the bundle root ({real})"
            )

        exists = real.exists()
        logger.debug(f"Resolved {raw_path!r} -> {real} (exists={exists})")
        return ResolvedPath(raw=raw_path, path=real, exists=exists)

    def _follow_symlinks(self, path: Path) -> Path:
        """Walk the path component by component, expanding symlinks.

        Each link is remembered together with the path still to walk after
        it. Reaching the same link with the same remainder, or exceeding
        MAX_SYMLINK_HOPS, aborts with SymlinkCycleError.
        """
        pending = list(path.parts[1:])
        resolved = Path(path.anchor)
        visited: set[tuple[Path, tuple[str, ...]]] = set()
        hops = 0

        while pending:
            part = pending.pop(0)
            if part in ("", "."):
                continue
            if part == "..":
                resolved = resolved.parent
                continue

            current = resolved / part
            if not current.is_symlink():
                resolved = current
                continue

            state = (current, tuple(pending))
            if state in visited or hops >= MAX_SYMLINK_HOPS:
                raise SymlinkCycleError(f"symlink cycle detected at {current}")
            visited.add(state)
            hops += 1

            target = Path(os.readlink(current))
            if target.is_absolute():
                resolved = Path(target.anchor)
                pending = list(target.parts[1:]) + pending
            else:
                pending = list(target.parts) + pending

        return resolved
