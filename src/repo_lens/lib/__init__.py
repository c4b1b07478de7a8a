"""Core library: ingestion, ranking, and the codebase assistant.

Primary namespaces:
- ``repo_lens.lib.ingest`` / ``repo_lens.lib.archive`` produce project files.
- ``repo_lens.lib.search`` ranks files against free-text queries.
- ``repo_lens.lib.assistant`` answers questions, with or without an AI backend.
- ``repo_lens.lib.readme`` writes a README, with or without an AI backend.
- ``repo_lens.lib.ai_providers`` wraps the AI completion backends.
"""
