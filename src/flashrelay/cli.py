from __future__ import annotations
from pathlib import Path
from typing import Optional
import time

import typer

from .bootstrap import build_config, build_provider, rates_for
from .core.errors import RelayError
from .core.framing import LineFramer, frame_stream
from .core.usage import estimate_cost
from .faults import install_fault_handlers
from .logging_setup import configure_logging

app = typer.Typer(add_completion=False, help="Stream LLM-generated flashcards as NDJSON.")


def _existing(config: Optional[Path]) -> Optional[Path]:
    if config is not None and not config.exists():
        raise typer.BadParameter(f"Config file not found: {config}", param_hint="--config")
    return config


@app.command()
def serve(
    config: Optional[Path] = typer.Option(None, help="YAML config; defaults + environment when omitted."),
    host: Optional[str] = typer.Option(None, help="Bind address (server.host)."),
    port: Optional[int] = typer.Option(None, help="Bind port (server.port / PORT)."),
    provider: Optional[str] = typer.Option(None, help="openai, gemini or echo (model.provider / AI_PROVIDER)."),
    model: Optional[str] = typer.Option(None, help="Model name for the selected provider."),
):
    """Run the HTTP relay under uvicorn."""
    from .web.app import run

    cfg = build_config(_existing(config), provider=provider, model=model)
    configure_logging(cfg["logging"]["level"])
    install_fault_handlers()
    run(config=config, host=host, port=port, provider=provider, model=model)


@app.command()
def sample(
    topic: str = typer.Argument(..., help="Topic to generate cards for."),
    config: Optional[Path] = typer.Option(None, help="YAML config; defaults + environment when omitted."),
    provider: Optional[str] = typer.Option(None, help="openai, gemini or echo."),
    model: Optional[str] = typer.Option(None, help="Model name for the selected provider."),
    raw: bool = typer.Option(False, "--raw", help="Print raw fragments instead of framed cards."),
):
    """Open one stream and report first-fragment latency, total time and cost."""
    cfg = build_config(_existing(config), provider=provider, model=model)
    configure_logging(cfg["logging"]["level"])
    name = cfg["model"]["provider"]

    try:
        adapter = build_provider(cfg)
        typer.echo(f"Model: {name}/{adapter.model}")
        start = time.monotonic()
        first_at: Optional[float] = None
        fragments, usage = adapter.open_stream(topic, [])

        def timed():
            nonlocal first_at
            for fragment in fragments:
                if first_at is None:
                    first_at = time.monotonic() - start
                yield fragment

        framer = LineFramer()
        if raw:
            for fragment in timed():
                typer.echo(fragment, nl=False)
            typer.echo("")
        else:
            for line in frame_stream(timed(), framer):
                typer.echo(line, nl=False)
    except RelayError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    total = time.monotonic() - start
    if first_at is not None:
        typer.echo(f"First chunk received after: {first_at * 1000:.0f}ms")
    typer.echo(f"Total time: {total * 1000:.0f}ms")
    if not raw:
        typer.echo(f"Cards: {framer.card_count}")
    cost = estimate_cost(usage, rates_for(cfg))
    typer.echo(f"Usage: {usage.input_tokens} input, {usage.output_tokens} output tokens (${cost.total_cost:.6f})")
