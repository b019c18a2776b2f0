"""Utility modules for repo-insight."""
