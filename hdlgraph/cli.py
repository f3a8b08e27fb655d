"""CLI entry point for hdlgraph."""

import json
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from hdlgraph.config import load_config
from hdlgraph.core.exceptions import ExtractionError, HdlGraphError, StorageError
from hdlgraph.core.graph.models import FlowEndpoint, TreeNode
from hdlgraph.core.models import Symbol, SymbolKind
from hdlgraph.core.search import ResultType, SearchResult
from hdlgraph.core.storage import IndexStore
from hdlgraph.core.workspace import HdlIndex
from hdlgraph.logging import configure_logging

app = typer.Typer(
    name="hdlgraph",
    help="Symbol search and module hierarchy analysis for Verilog codebases.",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    log_file: Annotated[
        Path | None, typer.Option("--log-file", help="Also write logs to this file")
    ] = None,
) -> None:
    """Symbol search and module hierarchy analysis for Verilog codebases."""
    configure_logging(verbose=verbose, log_file=log_file)


def get_index(path: Path) -> HdlIndex:
    """Open the saved index for the given path."""
    try:
        return HdlIndex.open(path)
    except StorageError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Run 'hdlgraph index .' first.")
        raise typer.Exit(1) from e


def rel_path(file: Path, root: Path) -> str:
    try:
        return file.relative_to(root).as_posix()
    except ValueError:
        return str(file)


def symbol_to_dict(symbol: Symbol) -> dict[str, Any]:
    return {
        "id": symbol.id,
        "name": symbol.name,
        "kind": symbol.kind.value,
        "file": str(symbol.file),
        "line": symbol.line,
        "end_line": symbol.end_line,
        "node_type": symbol.node_type,
    }


def result_to_dict(result: SearchResult) -> dict[str, Any]:
    return {
        "type": result.type.value,
        "file": str(result.file),
        "line": result.line,
        "column": result.column,
        "snippet": result.snippet,
        "score": result.score,
        "symbol": symbol_to_dict(result.symbol) if result.symbol else None,
    }


def endpoint_to_dict(endpoint: FlowEndpoint) -> dict[str, Any]:
    return {"module": endpoint.module, "port": endpoint.port, "instance": endpoint.instance}


def tree_to_dict(node: TreeNode) -> dict[str, Any]:
    return {
        "module": node.module,
        "instance": node.instance,
        "depth": node.depth,
        "resolved": node.resolved,
        "children": [tree_to_dict(c) for c in node.children],
    }


def format_endpoint(endpoint: FlowEndpoint) -> str:
    if endpoint.instance:
        return f"{endpoint.instance}.{endpoint.port} [dim]({endpoint.module})[/]"
    return f"{endpoint.module}.{endpoint.port}"


def fail(error: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


@app.command()
def index(
    path: Annotated[Path, typer.Argument(help="Directory to index")] = Path("."),
    force: Annotated[bool, typer.Option("--force", "-f", help="Re-index all files")] = False,
    exclude: Annotated[
        list[str] | None, typer.Option("--exclude", "-e", help="Patterns to exclude")
    ] = None,
) -> None:
    """Index a directory and build the module graph."""
    path = path.resolve()

    try:
        config = load_config(path)
        config.exclude_patterns.extend(exclude or [])
        hdl = HdlIndex(config)
        incremental = not force and IndexStore(config.database).exists()
        if incremental:
            hdl.load()
    except HdlGraphError as e:
        fail(e)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f"Indexing [cyan]{path.name}[/]", total=None)

        def on_progress(file: Path, current: int, total: int) -> None:
            progress.update(task, total=total, completed=current)
            progress.update(task, description=f"[cyan]{rel_path(file, path)}[/]")

        if incremental:
            stats = hdl.refresh(on_progress=on_progress)
        else:
            stats = hdl.build_index(path, on_progress=on_progress)

    try:
        hdl.save()
    except HdlGraphError as e:
        fail(e)

    graph = hdl.graph
    console.print("[green]Done![/green]")
    console.print(f"  Files indexed: {stats.files}")
    console.print(f"  Symbols found: {stats.symbols}")
    console.print(f"  Modules: {stats.modules}")
    console.print(f"  Instances: {stats.instances}")
    console.print(f"  Graph: {graph.num_nodes} modules, {graph.num_edges} edges")

    if stats.skipped:
        console.print(f"  [dim]Skipped: {stats.skipped}[/]")
    if stats.unchanged:
        console.print(f"  [dim]Unchanged: {stats.unchanged}[/]")
    if stats.removed:
        console.print(f"  [dim]Removed: {stats.removed}[/]")
    if stats.errors:
        console.print(f"  [red]Errors: {len(stats.errors)}[/red]")
        for error in stats.errors:
            console.print(f"    {error}")


@app.command()
def update(
    files: Annotated[list[Path], typer.Argument(help="Files to re-index")],
) -> None:
    """Re-index individual files; files that no longer exist are removed."""
    hdl = get_index(Path(".").resolve())

    failed = False
    for file in files:
        file = file.resolve()
        if not file.exists():
            if hdl.remove_file(file):
                console.print(f"[yellow]Removed[/yellow] {rel_path(file, hdl.root)}")
            else:
                console.print(f"[dim]Not indexed: {rel_path(file, hdl.root)}[/]")
            continue
        try:
            stats = hdl.update_file(file)
        except ExtractionError as e:
            console.print(f"[red]{e}[/red]")
            failed = True
            continue
        console.print(
            f"[green]Updated[/green] {rel_path(file, hdl.root)} ({stats.symbols} symbols)"
        )

    hdl.save()
    if failed:
        raise typer.Exit(1)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Symbol name or text to search for")],
    text: Annotated[bool, typer.Option("--text", "-t", help="Search source text only")] = False,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum results to show")] = 20,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Ranked search over symbol names, falling back to source text."""
    hdl = get_index(Path(".").resolve())

    try:
        results = hdl.search(query, "text" if text else None)[:limit]
    except HdlGraphError as e:
        fail(e)

    if output_json:
        print(json.dumps([result_to_dict(r) for r in results]))
        return

    if not results:
        console.print(f"No matches for '[cyan]{query}[/cyan]'")
        return
    for result in results:
        loc = f"{rel_path(result.file, hdl.root)}:{result.line}"
        if result.type == ResultType.SYMBOL:
            console.print(f"[cyan]{result.snippet}[/cyan] [dim]{loc}[/] [yellow]{result.score}[/]")
        else:
            console.print(f"[dim]{loc}:{result.column}[/] {result.snippet}")


@app.command()
def find(
    name: Annotated[str, typer.Argument(help="Exact symbol name")],
    kind: Annotated[
        str | None,
        typer.Option("--kind", "-k", help="Filter by kind: module, port, signal, instance, ..."),
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Find symbols by exact name."""
    hdl = get_index(Path(".").resolve())

    try:
        kind_filter = SymbolKind(kind) if kind else None
    except ValueError:
        fail(ValueError(f"Unknown kind '{kind}'"))

    symbols = [s for s in hdl.find_by_name(name) if kind_filter is None or s.kind == kind_filter]

    if output_json:
        print(json.dumps([symbol_to_dict(s) for s in symbols]))
        return

    if not symbols:
        console.print(f"No matches for '[cyan]{name}[/cyan]'")
        return
    for symbol in symbols:
        console.print(f"[cyan]{symbol.name}[/cyan] ({symbol.kind.value})")
        console.print(f"  {rel_path(symbol.file, hdl.root)}:{symbol.line}")


@app.command()
def stats(
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show index statistics."""
    config = load_config(Path(".").resolve())
    store = IndexStore(config.database)
    if not store.exists():
        fail(StorageError(f"No index found at {config.database}"))

    with store:
        result = store.get_stats()

    if output_json:
        print(json.dumps(result, default=str))
    else:
        console.print(f"Files indexed: {result['files']}")
        console.print(f"Symbols: {result['symbols']}")
        console.print(f"Modules: {result['modules']}")
        console.print(f"Instances: {result['instances']}")
        console.print(f"Graph: {result['graph_nodes']} nodes, {result['graph_edges']} edges")
        if result["saved_at"]:
            console.print(f"Last indexed: {result['saved_at']}")


@app.command()
def hierarchy(
    root: Annotated[
        str | None, typer.Argument(help="Module to start from (default: all top-level modules)")
    ] = None,
    max_depth: Annotated[int, typer.Option("--depth", "-d", help="Maximum tree depth")] = 10,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the instance hierarchy as a tree."""
    hdl = get_index(Path(".").resolve())

    roots = [root] if root else hdl.get_top_level_modules()
    trees = [t for t in (hdl.get_instance_tree(r, max_depth) for r in roots) if t is not None]
    if root and not trees:
        fail(ValueError(f"Unknown module '{root}'"))

    if output_json:
        print(json.dumps([tree_to_dict(t) for t in trees]))
        return

    def print_tree(node: TreeNode, prefix: str = "", is_last: bool = True) -> None:
        child_prefix = prefix + ("   " if is_last else "│  ")
        for i, child in enumerate(node.children):
            is_child_last = i == len(node.children) - 1
            branch = "└─" if is_child_last else "├─"
            style = "cyan" if child.resolved else "red"
            suffix = "" if child.resolved else " [red](undefined)[/]"
            console.print(
                f"{child_prefix}{branch} {child.instance} [{style}]{child.module}[/]{suffix}"
            )
            print_tree(child, child_prefix, is_child_last)

    if not trees:
        console.print("No modules indexed")
    for tree in trees:
        console.print(f"[bold cyan]{tree.module}[/]")
        print_tree(tree, "", True)


@app.command("path")
def module_path(
    from_module: Annotated[str, typer.Argument(help="Ancestor module")],
    to_module: Annotated[str, typer.Argument(help="Descendant module")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Find an instantiation path between two modules."""
    hdl = get_index(Path(".").resolve())
    found = hdl.find_module_path(from_module, to_module)

    if output_json:
        print(json.dumps({"from": from_module, "to": to_module, "path": found}))
        return

    if found is None:
        console.print(f"No path from [cyan]{from_module}[/] to [cyan]{to_module}[/]")
        return
    console.print(" → ".join(f"[cyan]{name}[/]" for name in found))


@app.command("critical-path")
def critical_path(
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the deepest instantiation chain."""
    hdl = get_index(Path(".").resolve())
    chain = hdl.get_critical_path()

    if output_json:
        print(json.dumps({"path": chain, "depth": len(chain)}))
        return

    if not chain:
        console.print("No modules indexed")
        return
    console.print(" → ".join(f"[cyan]{name}[/]" for name in chain))
    console.print(f"[dim]Depth: {len(chain)}[/]")


@app.command()
def impact(
    signal: Annotated[str, typer.Argument(help="Signal name at an instantiation site")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show where a signal comes from and where it goes."""
    hdl = get_index(Path(".").resolve())
    result = hdl.get_signal_impact(signal)

    if output_json:
        print(
            json.dumps(
                {
                    "signal": result.signal,
                    "sources": [endpoint_to_dict(e) for e in result.sources],
                    "sinks": [endpoint_to_dict(e) for e in result.sinks],
                    "affected_modules": result.affected_modules,
                }
            )
        )
        return

    if not result.found:
        console.print(f"No connections carry '[cyan]{signal}[/cyan]'")
        return
    console.print(f"[bold]Signal [cyan]{signal}[/cyan][/]")
    console.print("  [green]Sources:[/]")
    for endpoint in result.sources:
        console.print(f"    {format_endpoint(endpoint)}")
    console.print("  [green]Sinks:[/]")
    for endpoint in result.sinks:
        console.print(f"    {format_endpoint(endpoint)}")
    console.print(f"  [dim]Modules: {', '.join(result.affected_modules)}[/]")


@app.command()
def complexity(
    module: Annotated[str, typer.Argument(help="Module name")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show size and depth metrics for a module."""
    hdl = get_index(Path(".").resolve())
    metrics = hdl.get_module_complexity(module)
    if metrics is None:
        fail(ValueError(f"Unknown module '{module}'"))

    if output_json:
        print(
            json.dumps(
                {
                    "module": metrics.module,
                    "instance_count": metrics.instance_count,
                    "port_count": metrics.port_count,
                    "connection_count": metrics.connection_count,
                    "hierarchy_depth": metrics.hierarchy_depth,
                }
            )
        )
        return

    console.print(f"[bold cyan]{metrics.module}[/]")
    console.print(f"  Instances: {metrics.instance_count}")
    console.print(f"  Ports: {metrics.port_count}")
    console.print(f"  Connections: {metrics.connection_count}")
    console.print(f"  Hierarchy depth: {metrics.hierarchy_depth}")


@app.command()
def show(
    module: Annotated[str, typer.Argument(help="Module name")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Describe a module: ports, parameters, instances, parents and children."""
    hdl = get_index(Path(".").resolve())
    info = hdl.describe_module(module)
    if info is None:
        fail(ValueError(f"Unknown module '{module}'"))

    if output_json:
        print(json.dumps(info))
        return

    console.print(f"\n[bold cyan]{info['name']}[/]")
    console.print(f"  [dim]{rel_path(Path(info['file']), hdl.root)}:{info['line']}[/]")
    if info["parameters"]:
        params = ", ".join(f"{k}={v}" for k, v in info["parameters"].items())
        console.print(f"  Parameters: {params}")
    console.print("  [green]Ports:[/]")
    for port in info["ports"]:
        console.print(f"    {port['direction']:<6} {port['name']} [dim]({port['type']})[/]")
    if info["instances"]:
        console.print("  [green]Instances:[/]")
        for instance in info["instances"]:
            console.print(
                f"    {instance['name']} [cyan]{instance['module_type']}[/] "
                f"[dim](line {instance['line']})[/]"
            )
    if info["parents"]:
        console.print(f"  Instantiated by: {', '.join(info['parents'])}")
    if info["unresolved_children"]:
        console.print(f"  [red]Undefined children: {', '.join(info['unresolved_children'])}[/]")


@app.command()
def dot(
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write to file instead of stdout")
    ] = None,
    unresolved: Annotated[
        bool, typer.Option("--unresolved", "-u", help="Include undefined module types")
    ] = False,
) -> None:
    """Export the module hierarchy as Graphviz DOT."""
    hdl = get_index(Path(".").resolve())
    text = hdl.export_dot(include_unresolved=unresolved)

    if output is None:
        print(text, end="")
        return
    output.write_text(text, encoding="utf-8")
    console.print(f"Wrote {output}")


if __name__ == "__main__":
    app()
