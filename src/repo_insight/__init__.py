"""
repo-insight - metadata extraction and code search over git history.

Turns the text output of the git CLI into typed, paginated and aggregated
results: commit navigation, history-wide code search, per-commit file
status, submodule descriptors and per-author statistics.
"""

__version__ = "1.0.0"
