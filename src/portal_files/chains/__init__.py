"""Orchestration chains for interactive archive and rename jobs."""
