"""CLI entry point: import a codebase, then search it, ask about it, or document it."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from repo_lens.lib.ai_providers import PROVIDERS, resolve_candidates
from repo_lens.lib.archive import ingest_archive
from repo_lens.lib.assistant import CodebaseAssistant
from repo_lens.lib.config import Config
from repo_lens.lib.errors import RepoLensError
from repo_lens.lib.github import parse_repo_reference
from repo_lens.lib.ingest import IngestResult, ingest_github
from repo_lens.lib.readme import generate_readme
from repo_lens.lib.repo import RepoIndex
from repo_lens.lib.search import render_search_answer, search_codebase
from repo_lens.lib.tree import build_file_tree


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for CLI mode."""
    parser = argparse.ArgumentParser(
        prog="repo-lens",
        description="Import a codebase and ask questions about it.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Enable debug logging.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="Import a GitHub repository.")
    ingest.add_argument("repo", help="GitHub owner/repo or https://github.com URL.")
    ingest.add_argument(
        "--token",
        default=None,
        help="GitHub token (overrides GITHUB_TOKEN/GH_TOKEN).",
    )
    ingest.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the snapshot JSON here instead of stdout.",
    )
    ingest.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the whole import after this many seconds.",
    )

    import_zip = commands.add_parser("import-zip", help="Import a ZIP archive.")
    import_zip.add_argument("archive", type=Path, help="Path to the .zip file.")
    import_zip.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the snapshot JSON here instead of stdout.",
    )

    search = commands.add_parser("search", help="Rank project files for a query.")
    search.add_argument("source", type=Path, help="Snapshot JSON, ZIP, or directory.")
    search.add_argument("query", nargs="+", help="Free-text query.")
    search.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON instead of Markdown.",
    )

    ask = commands.add_parser("ask", help="Ask a question about a project.")
    ask.add_argument("source", type=Path, help="Snapshot JSON, ZIP, or directory.")
    ask.add_argument("question", nargs="+", help="Question to ask.")
    ask.add_argument(
        "--model",
        default=None,
        help="AI model to use, e.g. 'google' or 'openai/gpt-4o-mini'.",
    )
    ask.add_argument(
        "--file",
        default=None,
        help="Ask about this project-relative file instead of the whole project.",
    )

    readme = commands.add_parser("readme", help="Generate a README for a project.")
    readme.add_argument("source", type=Path, help="Snapshot JSON, ZIP, or directory.")
    readme.add_argument(
        "--model",
        default=None,
        help="AI model to use, e.g. 'google' or 'openai/gpt-4o-mini'.",
    )
    readme.add_argument(
        "--repo",
        default=None,
        help="GitHub owner/repo the project came from, for links and clone steps.",
    )
    readme.add_argument(
        "--description",
        default="",
        help="One-line project description to include.",
    )
    readme.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the README here instead of stdout.",
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_index(source: Path, config: Config) -> RepoIndex:
    if source.is_dir():
        return RepoIndex.from_path(source, max_file_bytes=config.max_file_bytes)
    if source.suffix.lower() == ".zip":
        result = ingest_archive(source, max_file_bytes=config.max_file_bytes)
        return RepoIndex(root=source, files=result.files)
    return RepoIndex.from_snapshot(source)


def _emit(result: IngestResult, output: Path | None) -> None:
    payload = json.dumps(result.as_dict(), indent=2)
    if output is None:
        print(payload)
    else:
        output.write_text(payload + "\n", encoding="utf-8")
    print(
        f"Found {result.file_count} files, imported {len(result.files)}.",
        file=sys.stderr,
    )


def main(argv: list[str] | None = None) -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = Config.from_env(
        overrides={
            "github_token": getattr(args, "token", None),
            "model": getattr(args, "model", None),
            "verbose": args.verbose,
        }
    )
    _configure_logging(config.verbose)

    try:
        if args.command == "ingest":
            owner, repo = parse_repo_reference(args.repo)
            result = asyncio.run(
                ingest_github(owner, repo, config=config, timeout=args.timeout)
            )
            _emit(result, args.output)
        elif args.command == "import-zip":
            _emit(
                ingest_archive(args.archive, max_file_bytes=config.max_file_bytes),
                args.output,
            )
        elif args.command == "search":
            index = _load_index(args.source, config)
            query = " ".join(args.query)
            results = search_codebase(index.files, query)
            if args.json:
                print(json.dumps([r.to_dict() for r in results], indent=2))
            else:
                print(render_search_answer(query, results, index.files))
        elif args.command == "readme":
            index = _load_index(args.source, config)
            source_repo = parse_repo_reference(args.repo) if args.repo else None
            generated = generate_readme(
                index.files,
                build_file_tree(f.path for f in index.files),
                project_name=source_repo[1] if source_repo else index.name,
                candidates=resolve_candidates(config.model, PROVIDERS),
                description=args.description,
                repo=source_repo,
            )
            if args.output is None:
                print(generated.text)
            else:
                args.output.write_text(generated.text, encoding="utf-8")
            if generated.source == "fallback":
                print("No AI model available; wrote a basic README.", file=sys.stderr)
        else:
            index = _load_index(args.source, config)
            question = " ".join(args.question)
            assistant = CodebaseAssistant(
                index.files,
                project_name=index.name,
                candidates=resolve_candidates(config.model, PROVIDERS),
            )
            if args.file:
                matches = [f for f in index.files if f.path == args.file]
                if not matches:
                    print(
                        f"Error: no such file in project: {args.file}",
                        file=sys.stderr,
                    )
                    sys.exit(1)
                reply = assistant.answer_about_file(
                    question, matches[0].path, matches[0].content
                )
            else:
                reply = assistant.answer(question)
            print(reply.text)
    except TimeoutError:
        print(f"Error: import timed out after {args.timeout}s", file=sys.stderr)
        sys.exit(1)
    except (ValueError, RepoLensError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
