"""CLI entry point for the GraphRAG gateway."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from graphrag_gateway.app import build_service, serve_grpc, serve_http
from graphrag_gateway.config import DEFAULT_CONFIG_TEMPLATE, GatewayConfig, load_config
from graphrag_gateway.errors import GatewayError
from graphrag_gateway.graph.sample import SAMPLE_GRAPH_ID
from graphrag_gateway.harness import ComparisonHarness, ComparisonReport, probes_from_settings
from graphrag_gateway.logging_setup import configure_logging

app = typer.Typer(
    name="graphrag-gateway",
    help="GraphRAG over REST, GraphQL, gRPC, gRPC-Web, WebSocket and SSE.",
)

config_app = typer.Typer(help="Manage gateway configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: GatewayConfig | None = None


def _get_config() -> GatewayConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to graphrag-gateway.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


# ---------------------------------------------------------------------------
# Servers
# ---------------------------------------------------------------------------


@app.command("serve-http")
def serve_http_cmd(
    port: Annotated[int | None, typer.Option("--port", "-p", help="Override HTTP port")] = None,
) -> None:
    """Serve REST, GraphQL, gRPC-Web, WebSocket and SSE on one HTTP port."""
    cfg = _get_config()
    if port:
        cfg = cfg.model_copy(update={"server": cfg.server.model_copy(update={"http_port": port})})
    rprint(f"[bold]GraphRAG gateway[/bold] on http://{cfg.server.host}:{cfg.server.http_port}")
    asyncio.run(serve_http(cfg))


@app.command("serve-grpc")
def serve_grpc_cmd(
    port: Annotated[int | None, typer.Option("--port", "-p", help="Override gRPC port")] = None,
) -> None:
    """Serve the native gRPC service plus its HTTP health endpoint."""
    cfg = _get_config()
    if port:
        cfg = cfg.model_copy(update={"server": cfg.server.model_copy(update={"grpc_port": port})})
    rprint(
        f"[bold]GraphRAG gRPC[/bold] on {cfg.server.host}:{cfg.server.grpc_port} "
        f"(health on :{cfg.server.grpc_health_port})"
    )
    asyncio.run(serve_grpc(cfg))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@app.command()
def query(
    text: str = typer.Argument(..., help="Natural-language question"),
    graph: Annotated[str, typer.Option("--graph", "-g", help="Graph id")] = SAMPLE_GRAPH_ID,
    model: Annotated[str | None, typer.Option("--model", "-m", help="Model name")] = None,
    baseline: bool = typer.Option(False, "--baseline", help="Also generate an ungrounded answer"),
    format: Annotated[
        str, typer.Option("--format", "-f", help="Output format: text or json")
    ] = "text",
) -> None:
    """Answer a question in-process against the configured graph store."""
    service = build_service(_get_config())
    try:
        result = asyncio.run(
            service.answer(text, graph, model, compare_baseline=True if baseline else None)
        )
    except GatewayError as e:
        rprint(f"[red]Query failed:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if format == "json":
        print(result.to_wire_json())
        return

    table = Table(title="Graph context")
    table.add_column("Type", style="cyan")
    table.add_column("Description")
    table.add_column("Relevance", justify="right", style="green")
    for item in result.context:
        table.add_row(item.type, item.description, f"{item.relevance_score:.2f}")
    rprint(table)
    rprint(Panel(result.response_text, title=f"Answer ({result.model})", border_style="green"))
    if result.baseline:
        rprint(Panel(
            result.baseline.error or result.baseline.response_text,
            title="Baseline (no graph context)",
            border_style="red" if result.baseline.error else "yellow",
        ))
    perf = result.performance
    rprint(
        f"[dim]retrieval {perf.context_retrieval_time_ms:.1f} ms, "
        f"generation {perf.generation_time_ms:.1f} ms, total {perf.processing_time_ms:.1f} ms[/dim]"
    )


def _display_report(report: ComparisonReport) -> None:
    table = Table(title=f"Protocol comparison: {report.status}")
    table.add_column("Protocol", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Latency (ms)", justify="right")
    table.add_column("Payload (bytes)", justify="right")
    table.add_column("Error", style="red")
    for r in report.results:
        status = "[green]OK[/green]" if r.status == "success" else "[red]FAIL[/red]"
        marks = []
        if r.protocol == report.fastest:
            marks.append("fastest")
        if r.protocol == report.most_efficient:
            marks.append("smallest")
        name = f"{r.protocol} ({', '.join(marks)})" if marks else r.protocol
        table.add_row(
            name,
            status,
            str(r.latency_ms),
            str(r.payload_size_bytes) if r.status == "success" else "-",
            escape(r.error or ""),
        )
    rprint(table)
    for line in report.recommendations:
        rprint(f"  - {line}")


@app.command()
def compare(
    text: str = typer.Argument(..., help="Natural-language question"),
    graph: Annotated[str, typer.Option("--graph", "-g", help="Graph id")] = SAMPLE_GRAPH_ID,
    model: Annotated[str | None, typer.Option("--model", "-m", help="Model name")] = None,
    format: Annotated[
        str, typer.Option("--format", "-f", help="Output format: table or json")
    ] = "table",
) -> None:
    """Send one query through every protocol of running servers and rank them."""
    settings = _get_config().harness
    harness = ComparisonHarness(
        probes_from_settings(settings), settings.adapter_timeout, settings.budget
    )
    report = asyncio.run(harness.compare(text, graph, model))

    if format == "json":
        print(report.to_wire_json())
    else:
        _display_report(report)
    if report.status == "error":
        raise typer.Exit(1)


@app.command()
def health() -> None:
    """Report graph store and generation backend health."""
    status = asyncio.run(build_service(_get_config()).health())
    table = Table(title=f"Health: {status.status} (v{status.version})")
    table.add_column("Component", style="cyan")
    table.add_column("State", justify="center")
    for name, state in status.services.items():
        color = "green" if state == "SERVING" else "red"
        table.add_row(name, f"[{color}]{state}[/{color}]")
    for name, ok in status.backends.items():
        table.add_row(f"backend:{name}", "[green]reachable[/green]" if ok else "[yellow]unreachable[/yellow]")
    rprint(table)
    if status.status != "healthy":
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default graphrag-gateway.yaml in current directory."""
    target = Path("graphrag-gateway.yaml")
    if target.exists() and not force:
        rprint("[yellow]graphrag-gateway.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
