"""Path predicates deciding which repository files are worth importing.

Both predicates are pure and evaluated on the path as it will be stored,
i.e. repo-relative with ``/`` separators and any archive root folder already
stripped. ``should_ignore`` always wins over ``is_text_file``.
"""

from __future__ import annotations

from fnmatch import fnmatchcase

__all__ = [
    "IGNORED_DIRECTORIES",
    "IGNORED_FILE_GLOBS",
    "IGNORED_FILE_NAMES",
    "TEXT_EXTENSIONS",
    "TEXT_FILE_NAMES",
    "basename",
    "is_text_file",
    "should_ignore",
]

IGNORED_FILE_NAMES = frozenset(
    {
        # lockfiles
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "bun.lockb",
        "poetry.lock",
        "pipfile.lock",
        "composer.lock",
        "cargo.lock",
        "gemfile.lock",
        # credentials
        ".npmrc",
        ".pypirc",
        ".netrc",
        ".htpasswd",
        "id_rsa",
        "id_dsa",
        "id_ecdsa",
        "id_ed25519",
        "credentials.json",
        "service-account.json",
        # noise
        ".ds_store",
        "thumbs.db",
        ".editorconfig",
    }
)

IGNORED_DIRECTORIES = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        ".next",
        "__pycache__",
        "venv",
        ".venv",
        "coverage",
        ".vscode",
        ".idea",
    }
)

IGNORED_FILE_GLOBS = (
    ".env",
    ".env.*",
    "*.pem",
    "*.key",
    "*.min.js",
    "*.min.css",
    "*.map",
    "*.log",
    "*.tmp",
    "*.temp",
    "*.sublime-*",
    # images
    "*.jpg",
    "*.jpeg",
    "*.png",
    "*.gif",
    "*.svg",
    "*.ico",
    "*.webp",
    "*.bmp",
    # fonts
    "*.woff",
    "*.woff2",
    "*.ttf",
    "*.otf",
    "*.eot",
    # audio / video
    "*.mp3",
    "*.wav",
    "*.ogg",
    "*.mp4",
    "*.webm",
    "*.mov",
    "*.avi",
    # archives / documents
    "*.zip",
    "*.tar",
    "*.gz",
    "*.tgz",
    "*.rar",
    "*.7z",
    "*.pdf",
)

TEXT_EXTENSIONS = (
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    ".py",
    ".java",
    ".c",
    ".cpp",
    ".h",
    ".hpp",
    ".cs",
    ".go",
    ".rs",
    ".rb",
    ".php",
    ".swift",
    ".kt",
    ".scala",
    ".vue",
    ".svelte",
    ".html",
    ".css",
    ".scss",
    ".sass",
    ".less",
    ".json",
    ".xml",
    ".yaml",
    ".yml",
    ".md",
    ".txt",
    ".sh",
    ".bash",
    ".zsh",
    ".fish",
    ".dockerfile",
    ".gitignore",
    ".env.example",
    ".toml",
    ".ini",
    ".cfg",
    ".sql",
    ".graphql",
    ".prisma",
    ".proto",
)

TEXT_FILE_NAMES = frozenset(
    {
        "dockerfile",
        "makefile",
        "readme",
        "readme.md",
        "license",
        "license.md",
        "package.json",
    }
)


def basename(path: str) -> str:
    """Final ``/``-separated component of *path*."""
    return path.rstrip("/").rsplit("/", 1)[-1]


def should_ignore(path: str) -> bool:
    """Return True for build output, lockfiles, secrets, and binary assets."""
    parts = [part for part in path.lower().split("/") if part]
    if not parts:
        return True
    name = parts[-1]
    if name in IGNORED_FILE_NAMES:
        return True
    if any(part in IGNORED_DIRECTORIES for part in parts[:-1]):
        return True
    return any(fnmatchcase(name, pattern) for pattern in IGNORED_FILE_GLOBS)


def is_text_file(path: str) -> bool:
    """Return True when the file name looks like source, config, or docs."""
    name = basename(path).lower()
    return name.endswith(TEXT_EXTENSIONS) or name in TEXT_FILE_NAMES
