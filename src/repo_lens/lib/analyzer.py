"""Pattern-based code review that works without any AI backend."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from repo_lens.lib.paths import basename

__all__ = ["CodeIssue", "analyze_code", "language_for", "render_report"]

IssueType = Literal["security", "performance", "best-practice", "maintainability"]
Severity = Literal["low", "medium", "high"]

MAX_ISSUES = 10
LARGE_FILE_LINES = 500

_LANGUAGES = {
    "js": "JavaScript",
    "jsx": "JavaScript",
    "ts": "TypeScript",
    "tsx": "TypeScript",
    "py": "Python",
    "rb": "Ruby",
    "go": "Go",
    "rs": "Rust",
    "java": "Java",
    "cpp": "C++",
    "c": "C",
    "cs": "C#",
    "php": "PHP",
    "swift": "Swift",
    "kt": "Kotlin",
    "scala": "Scala",
    "html": "HTML",
    "css": "CSS",
    "scss": "SCSS",
    "sass": "Sass",
    "less": "Less",
    "json": "JSON",
    "xml": "XML",
    "yaml": "YAML",
    "yml": "YAML",
    "md": "Markdown",
    "sql": "SQL",
    "graphql": "GraphQL",
    "prisma": "Prisma",
    "proto": "Protobuf",
    "sh": "Shell",
    "bash": "Bash",
    "zsh": "Bash",
    "fish": "Bash",
    "dockerfile": "Dockerfile",
    "gitignore": "Gitignore",
    "env": "Environment Variables",
    "toml": "TOML",
    "ini": "INI",
    "cfg": "Configuration",
}

_SECURITY = (
    (re.compile(r"api[_-]?key\s*[:=]\s*['\"`]", re.I), "Hardcoded API key detected"),
    (re.compile(r"password\s*[:=]\s*['\"`]", re.I), "Hardcoded password detected"),
    (re.compile(r"secret\s*[:=]\s*['\"`]", re.I), "Hardcoded secret detected"),
    (re.compile(r"token\s*[:=]\s*['\"`]", re.I), "Hardcoded token detected"),
    (
        re.compile(r"private[_-]?key\s*[:=]\s*['\"`]", re.I),
        "Hardcoded private key detected",
    ),
    (re.compile(r"\.env\.[a-z]+"), "Potential environment variable file reference"),
)
_PERFORMANCE = (
    (
        re.compile(
            r"for\s*\(\s*let\s+i\s*=\s*0\s*;\s*i\s*<\s*\w+\.length\s*;"
            r"\s*i\+\+\s*\)"
        ),
        "Cache array length in loop for better performance",
    ),
    (re.compile(r"console\.log\("), "Console.log in production code"),
    (re.compile(r"\beval\("), "Avoid eval() for security and performance"),
    (re.compile(r"innerHTML\s*="), "Potential XSS vulnerability with innerHTML"),
)
_BEST_PRACTICE = (
    (re.compile(r"catch\s*\(\s*\)"), "Empty catch block"),
    (
        re.compile(r"catch\s*\(\s*e\s*\)\s*\{\s*console\.log"),
        "Generic error handling with only console.log",
    ),
    (re.compile(r":\s*any\b"), 'Avoid using "any" type in TypeScript'),
)


@dataclass(frozen=True)
class CodeIssue:
    """A single finding from ``analyze_code``."""

    type: IssueType
    message: str
    severity: Severity
    line: int | None = None


def language_for(path: str) -> str:
    """Human-readable language label derived from *path*'s extension."""
    name = basename(path).lower()
    ext = name.rsplit(".", 1)[-1] if "." in name else name
    return _LANGUAGES.get(ext, ext.upper())


def analyze_code(content: str, language: str, filename: str) -> list[CodeIssue]:
    """Run line and file level checks; returns at most ten issues."""
    issues: list[CodeIssue] = []
    lines = content.split("\n")

    for number, line in enumerate(lines, start=1):
        for pattern, message in _SECURITY:
            if pattern.search(line):
                issues.append(
                    CodeIssue(
                        type="security",
                        message=f"{message} - consider using environment variables",
                        severity="high",
                        line=number,
                    )
                )
        for pattern, message in _PERFORMANCE:
            if pattern.search(line):
                issues.append(
                    CodeIssue(
                        type="performance",
                        message=message,
                        severity="medium",
                        line=number,
                    )
                )
        for pattern, message in _BEST_PRACTICE:
            if pattern.search(line):
                issues.append(
                    CodeIssue(
                        type="best-practice",
                        message=message,
                        severity="low",
                        line=number,
                    )
                )

    lowered_name = filename.lower()
    if ("config" in lowered_name or "env" in lowered_name) and (
        "localhost" in content or "127.0.0.1" in content
    ):
        issues.append(
            CodeIssue(
                type="security",
                message="Hardcoded localhost URL in configuration file",
                severity="medium",
            )
        )

    if len(lines) > LARGE_FILE_LINES:
        issues.append(
            CodeIssue(
                type="maintainability",
                message=(
                    f"Large file detected ({len(lines)} lines). "
                    "Consider splitting into smaller modules."
                ),
                severity="medium",
            )
        )

    lowered_language = language.lower()
    if "typescript" in lowered_language or "javascript" in lowered_language:
        has_try = "try {" in content and "} catch" in content
        handles_errors = has_try or ".catch(" in content
        if "async" in content and not handles_errors:
            issues.append(
                CodeIssue(
                    type="best-practice",
                    message="Async functions without error handling detected",
                    severity="medium",
                )
            )

    return issues[:MAX_ISSUES]


def render_report(issues: Sequence[CodeIssue], filename: str, language: str) -> str:
    """Markdown report for *issues* found in *filename*."""
    if not issues:
        return (
            f"## Local Code Analysis: {filename}\n\n"
            "**No major issues found!**\n\n"
            "This file looks clean based on basic static analysis.\n\n"
            "*Note: This is a basic analysis. For a more in-depth review, "
            "configure an AI provider.*\n"
        )

    counts = Counter(issue.type for issue in issues)
    lines = [
        f"## Local Code Analysis: {filename}",
        "",
        f"**Language:** {language}",
        f"**Total Issues Found:** {len(issues)}",
        "",
        "### Summary:",
    ]
    for kind in ("security", "performance", "best-practice", "maintainability"):
        lines.append(f"- **{kind}:** {counts.get(kind, 0)}")
    lines += ["", "### Detailed Issues:"]
    for index, issue in enumerate(issues, start=1):
        lines += [
            "",
            f"**{index}. {issue.type.upper()} - {issue.severity.upper()}**",
            issue.message,
        ]
        if issue.line is not None:
            lines.append(f"*Line {issue.line}*")
    lines += [
        "",
        "---",
        "*Note: This is a basic static analysis. For AI-powered code review, "
        "configure an AI provider.*",
    ]
    return "\n".join(lines) + "\n"
