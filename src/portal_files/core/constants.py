"""Core constants for Portal Files.

This module defines constants used throughout the application:
- Streaming and search limits
- Batch rename placeholder settings
- The extension to category lookup table used to decorate listings
"""

# ============================================================================
# Sandbox
# ============================================================================

#: Directory name of the sandbox root inside the application's storage
ROOT_DIRNAME = "PortalFiles"

# ============================================================================
# Streaming / limits
# ============================================================================

#: Chunk size used when streaming file bytes (checksums, archives)
DEFAULT_CHUNK_SIZE = 1024 * 1024

#: Hard cap on search results per call
DEFAULT_SEARCH_CAP = 100

#: Maximum candidate names tried by auto-rename
DEFAULT_MAX_RENAME_ATTEMPTS = 10_000

#: First numeric suffix used by auto-rename ("report 2.txt")
AUTO_RENAME_START = 2

# ============================================================================
# Batch rename
# ============================================================================

#: Token replaced by the sequence number in sequential renames
SEQUENCE_PLACEHOLDER = "{n}"

#: Zero-padding width for sequence numbers
SEQUENCE_PAD_WIDTH = 4

# ============================================================================
# Extension categories
# ============================================================================

EXTENSION_CATEGORIES: dict[str, str] = {
    "txt": "text",
    "text": "text",
    "plist": "plist",
    "zip": "archive",
    "json": "json",
    "xml": "xml",
    "ipa": "app",
    "tipa": "app",
    "p12": "certificate",
    "mobileprovision": "provision",
    "png": "image",
    "jpg": "image",
    "jpeg": "image",
    "gif": "image",
    "mp4": "video",
    "mov": "video",
    "mp3": "audio",
    "wav": "audio",
    "m4a": "audio",
}

#: Category for directories
DIRECTORY_CATEGORY = "folder"

#: Fallback category for unknown extensions
DEFAULT_CATEGORY = "other"
