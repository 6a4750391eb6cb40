"""Debug utility for Portal Files.

Provides a single debug() function that can be toggled via the
PORTAL_FILES_DEBUG environment variable. Low-level filesystem helpers use it
for step-by-step traces that are too noisy for the structured log.

Usage:
    from portal_files.utils.debug import debug

    debug(f"Direct rename: {src} -> {dst}")

Environment:
    PORTAL_FILES_DEBUG: Set to '1', 'true', 'yes' (case-insensitive) to enable
                        debug output. Any other value or unset disables it.

Example:
    $ PORTAL_FILES_DEBUG=1 portal-files files ls    # Debug enabled
    $ portal-files files ls                         # Debug disabled (default)
"""

import os
import sys
from typing import Any

# Determine if debug mode is enabled at module import time
_DEBUG_ENABLED = os.environ.get("PORTAL_FILES_DEBUG", "").lower() in (
    "1",
    "true",
    "yes",
)


def debug(msg: Any) -> None:
    """Print debug message to stderr if PORTAL_FILES_DEBUG is enabled.

    Args:
        msg: Message to print. Will be converted to string.

    Note:
        The environment variable is read at module import time. Changing it
        afterwards has no effect unless the module is reloaded.
    """
    if _DEBUG_ENABLED:
        print(f"[DEBUG] {msg}", file=sys.stderr)
