"""Windows compatibility utilities."""

import logging
import os
import sys

logger = logging.getLogger(__name__)


def configure_console() -> None:
    """Configure console for UTF-8 encoding on Windows.

    The report uses symbols that legacy code pages cannot encode. On
    non-Windows platforms, this is a no-op.
    """
    if sys.platform != "win32":
        return

    os.environ.setdefault("PYTHONIOENCODING", "utf-8")

    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    except AttributeError:
        # Replaced streams (captured output, pipes wrapped by tools)
        logger.debug("Console reconfigure not available")
