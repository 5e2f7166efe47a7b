"""Typer-based CLI for diffintel structural diff analysis."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__, config
from .analyzer import ChangeSetAnalyzer
from .cli_config import config_app
from .config_manager import load_settings
from .extractor import DeclarationExtractor
from .git_diff import GitError, GitRepository, get_diff
from .languages import build_default_registry
from .parser import FALLBACK_GRAMMARS, SyntaxParser
from .summary import format_dependency_graph, render_markdown

console = Console()
# Status output goes to stderr so reports can be piped
err_console = Console(stderr=True)

app = typer.Typer(
    help="🔍 diffintel — structural analysis of git diffs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config_app, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"diffintel v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """diffintel: declarations, control flow and blast radius for a diff."""
    level = logging.DEBUG if (verbose or config.DEBUG) else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)


def _open_repo(repo_path: Path) -> GitRepository:
    repo = GitRepository(repo_path)
    if not repo.is_repository():
        err_console.print(f"[red]✗[/red] Not a git repository: {repo.root}")
        raise typer.Exit(code=1)
    return repo


def _emit(text: str, output: Optional[Path]) -> None:
    if output is None:
        typer.echo(text, nl=not text.endswith("\n"))
        return
    output.write_text(text, encoding="utf-8")
    err_console.print(f"[green]✓[/green] Report written to {output}")


@app.command("explain")
def explain(
    base: str = typer.Option("origin/main", "--base", "-b", help="Base ref to diff against."),
    head: str = typer.Option("HEAD", "--head", help="Head ref to analyze."),
    working_tree: bool = typer.Option(False, "--working-tree", "-w", help="Diff the working tree instead of --head."),
    repo_path: Path = typer.Option(Path("."), "--repo", "-r", file_okay=False, help="Repository root."),
    output_format: str = typer.Option("markdown", "--format", "-f", help="Output format: markdown or json."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report to a file."),
    no_deps: bool = typer.Option(False, "--no-deps", help="Skip the dependency graph."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Parallel git retrievals."),
):
    """Analyze the changes between two refs."""
    if output_format not in ("markdown", "json"):
        raise typer.BadParameter("format must be 'markdown' or 'json'", param_hint="--format")

    settings = load_settings()
    if concurrency is not None:
        settings.concurrency = concurrency

    head_ref: Optional[str] = None if working_tree else head
    repo = _open_repo(repo_path)
    err_console.print(f"[bold cyan]Analyzing diff: {base}...{head_ref or 'working tree'}[/bold cyan]")
    try:
        change_set = get_diff(
            repo,
            base,
            head_ref,
            concurrency=settings.concurrency,
            history_count=settings.history_count,
        )
    except GitError as exc:
        err_console.print(f"[red]✗[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    if not change_set.files:
        err_console.print("[yellow]No changes found.[/yellow]")
        raise typer.Exit(code=0)

    err_console.print(f"Found {len(change_set.files)} changed file(s). Analyzing...")
    analyzer = ChangeSetAnalyzer(settings=settings)
    report = analyzer.analyze(change_set, repo=None if no_deps else repo)

    if output_format == "json":
        _emit(json.dumps(report.to_dict(), indent=2) + "\n", output)
    else:
        _emit(render_markdown(report), output)


@app.command("declarations")
def declarations(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to inspect."),
):
    """List the top-level declarations of a source file."""
    parser = SyntaxParser()
    language = parser.language_for_path(str(file))
    if language is None:
        console.print(f"[red]✗[/red] Unsupported file type: {file.suffix or file.name}")
        raise typer.Exit(code=1)

    source = file.read_text(encoding="utf-8", errors="replace")
    decls = DeclarationExtractor(parser).extract(source, language)
    if not decls:
        console.print(f"No declarations found in {file} ({language}).")
        return

    table = Table(title=f"{file} ({language})", show_header=True)
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Name")
    for decl in decls:
        table.add_row(str(decl.start_line), decl.kind, decl.name)
    console.print(table)


@app.command("deps")
def deps(
    files: List[str] = typer.Argument(..., help="Repo-relative paths of the files to centre on."),
    ref: str = typer.Option("HEAD", "--ref", help="Ref to read file contents from."),
    repo_path: Path = typer.Option(Path("."), "--repo", "-r", file_okay=False, help="Repository root."),
):
    """Show importers and imports of the given files."""
    repo = _open_repo(repo_path)
    analyzer = ChangeSetAnalyzer(settings=load_settings())
    graph = analyzer.build_dependency_graph([f.replace("\\", "/") for f in files], repo, ref)
    if graph is None:
        console.print("[red]✗[/red] Could not build the dependency graph.")
        raise typer.Exit(code=1)

    typer.echo(format_dependency_graph(graph))
    console.print(
        f"\nBlast radius: [bold]{graph.blast_radius}[/bold] "
        f"({graph.repo_files_scanned} files scanned in {graph.scan_time_ms} ms)"
    )


@app.command("languages")
def languages():
    """List supported languages and whether their grammars are installed."""
    registry = build_default_registry()
    parser = SyntaxParser(registry)
    available = set(parser.available_languages())

    table = Table(title="Supported languages", show_header=True)
    table.add_column("Language", style="cyan")
    table.add_column("Extensions")
    table.add_column("Grammar")
    rows = [(cfg.id, cfg.extensions, cfg.grammar_module) for cfg in registry]
    rows.extend((lang, (ext,), module) for ext, (lang, module, _attr) in FALLBACK_GRAMMARS.items())

    seen = set()
    for lang, extensions, module in rows:
        if lang in seen:
            continue
        seen.add(lang)
        all_exts = sorted(
            {e for l, exts, _ in rows if l == lang for e in exts}
        )
        status = "[green]installed[/green]" if lang in available else f"[red]missing[/red] ({module})"
        table.add_row(lang, " ".join(all_exts), status)
    console.print(table)


if __name__ == "__main__":
    app()
