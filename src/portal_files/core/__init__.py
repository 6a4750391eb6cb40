"""File-management core: engines, schemas and errors."""
