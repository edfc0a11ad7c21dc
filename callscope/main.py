"""callscope CLI - find every call site that can invoke one TypeScript method."""
import json
from typing import List, Optional

import typer
from rich.markup import escape
from rich.table import Table

from callscope.analyzer.pipeline import CallSiteAnalyzer
from callscope.analyzer.reference_classifier import CallSite, symbol_sort_key
from callscope.analyzer.tearoff import BARE_CALLBACK, TEAROFF_SAFE, TEAROFF_UNSAFE, RiskLabel
from callscope.config import DISPATCH_MODES, __version__, get_config
from callscope.errors import CallscopeError
from callscope.utils.logger import set_debug
from callscope.utils.safe_console import SafeConsole

app = typer.Typer(
    name="callscope",
    help="Find the call sites of a TypeScript method, sound under name collisions",
    add_completion=False
)
# Use SafeConsole for non-UTF-8 terminal compatibility
console = SafeConsole()

LABEL_STYLES = {
    'direct': 'green',
    'optional': 'cyan',
    'tearoff': 'yellow',
    'super': 'magenta',
    TEAROFF_SAFE: 'green',
    TEAROFF_UNSAFE: 'bold red',
    BARE_CALLBACK: 'yellow',
}

CLASS_OPTION = typer.Option(None, "--class", "-c", help="Concrete class declaring the method (env: P_CLASS)")
METHOD_OPTION = typer.Option(None, "--method", "-m", help="Method name (env: P_METHOD)")
PROJECT_OPTION = typer.Option(None, "--project", "-p", help="Project directory or tsconfig path (env: P_PROJECT)")
FILE_OPTION = typer.Option(None, "--file", "-f", help="Prefer declarations whose path contains this (env: P_FILE)")
DEBUG_OPTION = typer.Option(False, "--debug", help="Print [debug] diagnostics to stderr (env: P_DEBUG)")
LOOSE_OPTION = typer.Option(False, "--loose", help="Admit member accesses on untyped receivers by name (env: P_LOOSE)")


def _analyzer(**flags) -> CallSiteAnalyzer:
    """Merge flags with environment and build the analyzer.

    Raises:
        CallscopeError: On invalid configuration
    """
    config = get_config().resolve(**flags)
    set_debug(config.debug)
    return CallSiteAnalyzer(config)


def _fail(error: CallscopeError):
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


def _echo_json(rows: List[dict]):
    typer.echo(json.dumps(rows, indent=2))


@app.command()
def files(
    project: Optional[str] = PROJECT_OPTION,
    debug: bool = DEBUG_OPTION,
):
    """List the source files loaded for the project."""
    try:
        analyzer = _analyzer(project=project, debug=debug)
        units = analyzer.model.units()
    except CallscopeError as e:
        _fail(e)

    for unit in units:
        typer.echo(unit.path)
    console.print(f"[dim]{len(units)} files[/dim]")


@app.command()
def candidates(
    class_name: Optional[str] = CLASS_OPTION,
    method: Optional[str] = METHOD_OPTION,
    project: Optional[str] = PROJECT_OPTION,
    debug: bool = DEBUG_OPTION,
):
    """List every concrete declaration matching the class and method names."""
    try:
        analyzer = _analyzer(class_name=class_name, method_name=method, project=project, debug=debug)
        found = analyzer.candidates()
    except CallscopeError as e:
        _fail(e)

    if not found:
        console.print("[yellow]No candidates found.[/yellow]")
        return

    table = Table(title="Candidate Declarations")
    table.add_column("Declaration", style="cyan")
    table.add_column("Location", style="magenta", no_wrap=False)
    table.add_column("Exported", style="green")
    for decl in found:
        exported = 'yes' if decl.owner is not None and decl.owner.exported else 'no'
        table.add_row(escape(f"{decl.type_name}.{decl.name}"), escape(decl.location), exported)
    console.print(table)


@app.command()
def equivalence(
    class_name: Optional[str] = CLASS_OPTION,
    method: Optional[str] = METHOD_OPTION,
    project: Optional[str] = PROJECT_OPTION,
    file_hint: Optional[str] = FILE_OPTION,
    debug: bool = DEBUG_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print a JSON array instead of a table"),
):
    """Print the equivalence set of the resolved method."""
    try:
        analyzer = _analyzer(class_name=class_name, method_name=method, project=project,
                             file_hint=file_hint, debug=debug)
        decl = analyzer.resolve()
        symbols = sorted(analyzer.equivalence(decl), key=symbol_sort_key)
    except CallscopeError as e:
        _fail(e)

    rows = []
    for symbol in symbols:
        for member in symbol.declarations:
            rows.append({
                'symbol': symbol.qualified_name,
                'kind': member.kind,
                'static': member.is_static,
                'location': member.location,
            })

    if as_json:
        _echo_json(rows)
        return

    console.print(f"[bold]Target:[/bold] {escape(decl.type_name)}.{escape(decl.name)} "
                  f"[dim]({escape(decl.location)})[/dim]")
    table = Table(title=f"Equivalence Set ({len(symbols)} symbols)")
    table.add_column("Symbol", style="cyan")
    table.add_column("Kind", style="yellow")
    table.add_column("Location", style="magenta", no_wrap=False)
    for row in rows:
        table.add_row(escape(row['symbol']), row['kind'], escape(row['location']))
    console.print(table)


@app.command()
def calls(
    class_name: Optional[str] = CLASS_OPTION,
    method: Optional[str] = METHOD_OPTION,
    project: Optional[str] = PROJECT_OPTION,
    file_hint: Optional[str] = FILE_OPTION,
    debug: bool = DEBUG_OPTION,
    loose: bool = LOOSE_OPTION,
    strict: bool = typer.Option(False, "--strict", help="Keep only sites whose resolved signature is in the set"),
    skip_super: bool = typer.Option(False, "--skip-super", help="Drop super.m(...) calls (env: P_SKIP_SUPER)"),
    dispatch: Optional[str] = typer.Option(
        None, "--dispatch",
        help=f"Which symbols to search: {' | '.join(DISPATCH_MODES)} (env: P_DISPATCH)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print a JSON array instead of a table"),
):
    """Find and classify every call site of the resolved method."""
    try:
        analyzer = _analyzer(class_name=class_name, method_name=method, project=project,
                             file_hint=file_hint, debug=debug, loose=loose,
                             skip_super=skip_super, dispatch=dispatch)
        result = analyzer.calls(strict=strict)
    except CallscopeError as e:
        _fail(e)

    if as_json:
        _echo_json([site.to_dict() for site in result.call_sites])
        return

    decl = result.declaration
    console.print(f"[bold]Target:[/bold] {escape(decl.type_name)}.{escape(decl.name)} "
                  f"[dim]({escape(decl.location)})[/dim]")
    _print_sites(result.call_sites)
    if result.skipped:
        console.print(f"[yellow]⚠ {len(result.skipped)} declarations could not be searched "
                      f"(computed names or ambient declarations).[/yellow]")
    if strict and result.dropped:
        console.print(f"[dim]Strict verification dropped {len(result.dropped)} sites.[/dim]")


def _print_sites(sites: List[CallSite]):
    if not sites:
        console.print("[yellow]No call sites found.[/yellow]")
        return
    table = Table(title=f"Call Sites ({len(sites)})")
    table.add_column("Label")
    table.add_column("Location", style="magenta", no_wrap=False)
    table.add_column("Invocation", style="cyan", no_wrap=False)
    for site in sites:
        style = LABEL_STYLES.get(site.label, 'white')
        table.add_row(f"[{style}]{site.label}[/{style}]",
                      escape(f"{site.file_path}:{site.line}:{site.column}"),
                      escape(_one_line(site.text)))
    console.print(table)


@app.command()
def tearoff(
    class_name: Optional[str] = CLASS_OPTION,
    method: Optional[str] = METHOD_OPTION,
    project: Optional[str] = PROJECT_OPTION,
    file_hint: Optional[str] = FILE_OPTION,
    debug: bool = DEBUG_OPTION,
    loose: bool = LOOSE_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print a JSON array instead of a table"),
):
    """Assess receiver risk for every tear-off of the resolved method."""
    try:
        analyzer = _analyzer(class_name=class_name, method_name=method, project=project,
                             file_hint=file_hint, debug=debug, loose=loose)
        labels = analyzer.tearoff()
    except CallscopeError as e:
        _fail(e)

    if as_json:
        _echo_json([label.to_dict() for label in labels])
        return
    _print_risks(labels)


def _print_risks(labels: List[RiskLabel]):
    if not labels:
        console.print("[green]✓ No tear-offs found.[/green]")
        return
    table = Table(title=f"Tear-off Risk ({len(labels)})")
    table.add_column("Risk")
    table.add_column("Binding", style="cyan")
    table.add_column("Location", style="magenta", no_wrap=False)
    table.add_column("Invocation", no_wrap=False)
    for label in labels:
        style = LABEL_STYLES.get(label.label, 'white')
        table.add_row(f"[{style}]{label.label}[/{style}]",
                      escape(label.binding or '-'),
                      escape(f"{label.file_path}:{label.line}:{label.column}"),
                      escape(_one_line(label.text)))
    console.print(table)


def _one_line(text: str, limit: int = 80) -> str:
    text = ' '.join(text.split())
    return text if len(text) <= limit else text[:limit - 1] + '…'


@app.command()
def version():
    """Print the callscope version."""
    typer.echo(f"callscope {__version__}")


if __name__ == "__main__":
    app()
