"""Portal Files: a sandboxed file-management core."""

__version__ = "0.1.0"
