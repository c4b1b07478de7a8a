"""repo_lens: import a codebase and ask questions about it."""

__version__ = "0.1.0"
