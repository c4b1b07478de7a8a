"""Question answering over an imported codebase.

The assistant prefers the local search engine for "where is X" questions
and whenever no AI provider is available. Otherwise it grounds an AI prompt
in the best-ranked files, falling back to a local answer when every
provider fails.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal

from repo_lens.lib.ai_providers import ModelCandidate, complete_first
from repo_lens.lib.analyzer import analyze_code, language_for, render_report
from repo_lens.lib.errors import ProviderError
from repo_lens.lib.paths import basename
from repo_lens.lib.search import (
    SearchResult,
    format_search_context,
    is_file_location_question,
    render_search_answer,
    search_codebase,
)
from repo_lens.lib.types import FetchedFile

__all__ = ["AssistantReply", "CodebaseAssistant", "classify_file_intent"]

logger = logging.getLogger(__name__)

ReplySource = Literal["local", "ai", "fallback"]
FileIntent = Literal["comment", "explain", "refactor", "general"]

_HISTORY_TURNS = 20
_UNRANKED_CONTEXT_FILES = 15
_UNRANKED_CONTEXT_CHARS = 1500
_FILE_PROMPT_CHARS = 5000


@dataclass(frozen=True)
class AssistantReply:
    """Answer text plus where it came from."""

    text: str
    source: ReplySource
    results: list[SearchResult] = field(default_factory=list)
    model: str | None = None


def classify_file_intent(question: str) -> FileIntent:
    """Bucket a per-file question into the prompt shape it needs."""
    lowered = question.lower()
    if "comment" in lowered:
        return "comment"
    if "explain this" in lowered or "what does this do" in lowered:
        return "explain"
    if "refactor" in lowered or "improve" in lowered:
        return "refactor"
    return "general"


def _file_prompt(question: str, language: str, content: str) -> str:
    intent = classify_file_intent(question)
    if intent == "comment":
        return (
            f"Please add helpful comments to this {language} code to explain "
            "complex parts.\n\n"
            "Return ONLY the commented code, with no explanation before or "
            "after it. Keep the existing code exactly as is.\n\n"
            f"```{language}\n{content}\n```"
        )
    excerpt = content[:_FILE_PROMPT_CHARS]
    if intent == "explain":
        return (
            f"Please explain what this {language} code does in simple terms, "
            "in 2-3 paragraphs at most.\n\n"
            f"```{language}\n{excerpt}\n```"
        )
    if intent == "refactor":
        return (
            f"Please refactor this {language} code to improve it. Return the "
            "refactored code with brief explanations of the changes.\n\n"
            f"```{language}\n{excerpt}\n```"
        )
    return (
        f'User asked: "{question}"\n\n'
        f"About this {language} code:\n"
        f"```{language}\n{excerpt}\n```\n\n"
        "Answer the question directly and concisely."
    )


class CodebaseAssistant:
    """Answer questions about one project's files."""

    def __init__(
        self,
        files: Sequence[FetchedFile],
        *,
        project_name: str,
        description: str | None = None,
        candidates: Sequence[ModelCandidate] = (),
    ) -> None:
        self.files = list(files)
        self.project_name = project_name
        self.description = description
        self.candidates = list(candidates)

    # ------------------------------------------------------------------
    # Project-level questions
    # ------------------------------------------------------------------

    def answer(
        self,
        question: str,
        history: Sequence[Mapping[str, str]] = (),
    ) -> AssistantReply:
        """Answer *question* about the whole project."""
        results = search_codebase(self.files, question)

        if is_file_location_question(question, self.files) or not self.candidates:
            logger.info("Answering locally: %s", question)
            return AssistantReply(
                text=render_search_answer(question, results, self.files),
                source="local",
                results=results,
            )

        messages = [
            {"role": "system", "content": self._system_prompt(results)},
            *(
                {
                    "role": str(turn.get("role", "user")),
                    "content": str(turn.get("content", "")),
                }
                for turn in list(history)[-_HISTORY_TURNS:]
            ),
            {"role": "user", "content": question},
        ]
        try:
            completion = complete_first(self.candidates, messages)
        except ProviderError as exc:
            logger.warning("AI providers unavailable, using local answer: %s", exc)
            return AssistantReply(
                text=self._fallback_text(question, results),
                source="fallback",
                results=results,
            )
        return AssistantReply(
            text=completion.text,
            source="ai",
            results=results,
            model=completion.candidate.label,
        )

    def _system_prompt(self, results: Sequence[SearchResult]) -> str:
        if results:
            context = format_search_context(results)
        else:
            context = "\n\n".join(
                f"--- {f.path} ---\n{f.content[:_UNRANKED_CONTEXT_CHARS]}"
                for f in self.files[:_UNRANKED_CONTEXT_FILES]
            )
        lines = [
            "You are a helpful AI assistant for a code project called "
            f'"{self.project_name}".'
        ]
        if self.description:
            lines.append(f"Project description: {self.description}")
        lines += [
            "",
            "Help with explaining code and project structure, answering "
            "questions about the codebase, and suggesting improvements.",
            "Keep responses concise and focused on the question. If you don't "
            "know, say so; do not make up information.",
            "",
            "Project files:",
            context,
            "",
            "Respond in 2-3 paragraphs maximum. Use Markdown for code snippets.",
        ]
        return "\n".join(lines)

    def _fallback_text(self, question: str, results: Sequence[SearchResult]) -> str:
        extensions = sorted(
            {
                basename(f.path).rsplit(".", 1)[-1]
                for f in self.files
                if "." in basename(f.path)
            }
        )
        lines = [
            "I'm having trouble reaching the AI service right now. "
            "Here's what I can tell you from the project itself:",
            "",
            f"**Project Name:** {self.project_name}",
            f"**Files:** {len(self.files)}",
        ]
        if extensions:
            lines.append(f"**File Types:** {', '.join(extensions)}")
        lines += ["", render_search_answer(question, results, self.files)]
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # File-level questions
    # ------------------------------------------------------------------

    def answer_about_file(
        self, question: str, path: str, content: str
    ) -> AssistantReply:
        """Answer *question* about one file, or return a local analysis."""
        language = language_for(path)
        filename = basename(path)
        if self.candidates:
            try:
                completion = complete_first(
                    self.candidates,
                    _file_prompt(question, language, content),
                )
            except ProviderError as exc:
                logger.warning("AI providers unavailable for %s: %s", path, exc)
            else:
                return AssistantReply(
                    text=completion.text,
                    source="ai",
                    model=completion.candidate.label,
                )

        issues = analyze_code(content, language, filename)
        return AssistantReply(
            text=render_report(issues, filename, language),
            source="fallback" if self.candidates else "local",
        )
