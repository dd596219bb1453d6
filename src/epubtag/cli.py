from __future__ import annotations

import argparse
import json
import socket
import sys
from importlib import metadata
from pathlib import Path

import tomllib
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .core import AnalysisResult, analyze_epub
from .errors import EpubAnalysisError
from .keywords import KeywordConfigError, resolve_tables
from .logging_utils import build_uvicorn_log_config, set_debug_logging
from .scoring import CategoryResult, ScanTable, parse_keyword_list, positive
from .web import DEFAULT_MAX_UPLOAD_MB, WebConfig, create_app


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - defensive
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("epubtag")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"epubtag {__version__}",
    )


def _add_table_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--genres",
        help="TOML or JSON file mapping genre names to keyword lists (default: built-in table).",
    )
    parser.add_argument(
        "--tags",
        help="TOML or JSON file mapping tag names to keyword lists (default: built-in table).",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description=(
            "Rank likely genres and tags of an EPUB by keyword hits. "
            "Use `epubtag serve` for the HTTP API and `epubtag keywords` to list tables."
        ),
    )
    _add_version_flag(ap)
    ap.add_argument(
        "input_path",
        help="Path to an .epub file or a directory containing .epub files",
    )
    _add_table_options(ap)
    ap.add_argument(
        "-k",
        "--keywords",
        help="Extra comma-separated keywords to count, e.g. 'magic, wom*n'.",
    )
    ap.add_argument(
        "--top",
        type=int,
        default=5,
        help="Keywords shown per category (default: 5).",
    )
    ap.add_argument(
        "--all",
        action="store_true",
        help="Also list categories without any hits.",
    )
    ap.add_argument(
        "--json",
        action="store_true",
        help="Print the analysis as JSON instead of tables.",
    )
    ap.add_argument(
        "--max-mb",
        type=float,
        default=None,
        help="Refuse archives larger than this many megabytes.",
    )
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Print debug details about manifest parsing and text extraction.",
    )
    return ap


def build_serve_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Serve the EPUB keyword analyzer over HTTP.",
    )
    _add_version_flag(ap)
    _add_table_options(ap)
    ap.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the web server (default: 127.0.0.1).",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=2047,
        help="Port for the web server (default: 2047).",
    )
    ap.add_argument(
        "--max-upload-mb",
        type=float,
        default=DEFAULT_MAX_UPLOAD_MB,
        help=f"Largest accepted upload in megabytes (default: {DEFAULT_MAX_UPLOAD_MB:g}).",
    )
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging for requests and analysis.",
    )
    return ap


def build_keywords_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="List the genre and tag keyword tables in use.",
    )
    _add_table_options(ap)
    ap.add_argument(
        "--json",
        action="store_true",
        help="Print the tables as JSON.",
    )
    return ap


def _megabytes_to_bytes(value: float | None) -> int | None:
    if value is None or value <= 0:
        return None
    return int(value * 1024 * 1024)


def _category_table(
    title: str,
    results: list[CategoryResult],
    *,
    top: int | None,
    show_all: bool,
) -> Table | None:
    rows = results if show_all else positive(results)
    if not rows:
        return None
    table = Table(title=title, title_justify="left")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Category")
    table.add_column("Hits", justify="right")
    table.add_column("Top keywords")
    for index, result in enumerate(rows, start=1):
        keywords = ", ".join(
            f"{escape(keyword)} ({count})" for keyword, count in result.top_hits(top)
        )
        table.add_row(str(index), escape(result.name), str(result.score), keywords)
    return table


def render_result(
    console: Console,
    source: Path,
    result: AnalysisResult,
    *,
    top: int = 5,
    show_all: bool = False,
) -> None:
    meta = result.metadata
    heading = meta.title or source.name
    if meta.author:
        heading = f"{heading} by {meta.author}"
    console.print(f"[bold]{escape(heading)}[/bold]", highlight=False)
    console.print(
        f"{result.chapter_count} document(s), {result.corpus_length} characters scanned",
        style="dim",
        highlight=False,
    )
    found_any = False
    for title, results in (("Genres", result.genres), ("Tags", result.tags)):
        table = _category_table(title, results, top=top, show_all=show_all)
        if table is not None:
            console.print(table)
        found_any = found_any or bool(positive(results))
    if result.custom is not None:
        table = _category_table("Custom keywords", [result.custom], top=None, show_all=True)
        if table is not None:
            console.print(table)
    if result.all_hits:
        hits = Table(title="All keyword hits", title_justify="left")
        hits.add_column("Keyword")
        hits.add_column("Count", justify="right")
        for hit in result.all_hits:
            hits.add_row(escape(hit.keyword), str(hit.count))
        console.print(hits)
    if not found_any:
        console.print(
            "Analysis complete, but no matching genre or tag keywords were found in this ePub.",
            highlight=False,
        )


def _collect_inputs(inp_path: Path) -> list[Path]:
    if not inp_path.exists():
        raise FileNotFoundError(f"Input path not found: {inp_path}")
    if inp_path.is_dir():
        epubs = sorted(p for p in inp_path.iterdir() if p.suffix.lower() == ".epub")
        if not epubs:
            raise FileNotFoundError(f"No .epub files found in directory: {inp_path}")
        return epubs
    if inp_path.suffix.lower() != ".epub":
        raise ValueError(f"Input must be an .epub file or directory: {inp_path}")
    return [inp_path]


def _load_tables(args: argparse.Namespace) -> tuple[ScanTable, ScanTable]:
    return resolve_tables(getattr(args, "genres", None), getattr(args, "tags", None))


def _run_analyze(args: argparse.Namespace) -> int:
    set_debug_logging(bool(args.debug))
    err = Console(stderr=True)
    try:
        genres, tags = _load_tables(args)
        inputs = _collect_inputs(Path(args.input_path).expanduser())
    except (KeywordConfigError, FileNotFoundError, ValueError) as exc:
        err.print(f"[red]error:[/red] {escape(str(exc))}", highlight=False)
        return 1

    custom_keywords = parse_keyword_list(args.keywords)
    max_bytes = _megabytes_to_bytes(args.max_mb)
    console = Console()
    payloads: list[dict[str, object]] = []
    failures = 0
    for epub_path in inputs:
        try:
            result = analyze_epub(
                epub_path,
                genres,
                tags,
                custom_keywords=custom_keywords,
                max_bytes=max_bytes,
            )
        except (EpubAnalysisError, OSError) as exc:
            failures += 1
            err.print(f"[red]error:[/red] {escape(epub_path.name)}: {escape(str(exc))}", highlight=False)
            continue
        if args.json:
            payload = result.to_dict()
            payload["source"] = str(epub_path)
            payloads.append(payload)
        else:
            render_result(console, epub_path, result, top=args.top, show_all=args.all)
    if args.json and payloads:
        body = payloads[0] if len(inputs) == 1 else payloads
        print(json.dumps(body, ensure_ascii=False, indent=2))
    return 1 if failures else 0


def _run_keywords(args: argparse.Namespace) -> int:
    try:
        genres, tags = _load_tables(args)
    except KeywordConfigError as exc:
        Console(stderr=True).print(f"[red]error:[/red] {escape(str(exc))}", highlight=False)
        return 1
    if args.json:
        payload = {
            "genres": {name: list(words) for name, words in genres.items()},
            "tags": {name: list(words) for name, words in tags.items()},
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0
    console = Console()
    for title, table_data in (("Genres", genres), ("Tags", tags)):
        table = Table(title=title, title_justify="left")
        table.add_column("Category")
        table.add_column("Keywords")
        for name, words in table_data.items():
            table.add_row(escape(name), escape(", ".join(words)))
        console.print(table)
    return 0


def _resolve_local_ip(host: str) -> str:
    if host not in {"0.0.0.0", "::"}:
        return host
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"


def _run_serve(args: argparse.Namespace) -> int:
    set_debug_logging(bool(args.debug))
    try:
        genres, tags = _load_tables(args)
    except KeywordConfigError as exc:
        Console(stderr=True).print(f"[red]error:[/red] {escape(str(exc))}", highlight=False)
        return 1
    config = WebConfig(
        genres=genres,
        tags=tags,
        max_upload_bytes=_megabytes_to_bytes(args.max_upload_mb),
    )
    app = create_app(config)
    url = f"http://{_resolve_local_ip(args.host)}:{args.port}/"
    print(f"Serving epubtag API at {url}")
    print("Press Ctrl+C to stop.\n")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="debug" if args.debug else "info",
        log_config=build_uvicorn_log_config(debug=bool(args.debug)),
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "serve":
        serve_args = build_serve_parser().parse_args(argv[1:])
        return _run_serve(serve_args)
    if argv and argv[0] == "keywords":
        keywords_args = build_keywords_parser().parse_args(argv[1:])
        return _run_keywords(keywords_args)
    if argv and argv[0] == "analyze":
        argv = argv[1:]

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)
    if args.top < 1:
        parser.error("--top must be at least 1")
    return _run_analyze(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
