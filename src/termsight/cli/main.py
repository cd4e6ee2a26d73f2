"""CLI for termsight: ask / context / providers commands."""

from __future__ import annotations

import asyncio
import dataclasses
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from termsight.config import AppSettings, LLMConfig
from termsight.context.policy import SizingMode
from termsight.context.tokenizer import usage_status
from termsight.exceptions import GatewayError
from termsight.factory import create_engine, create_gateway
from termsight.gateway.gateway import LLMGateway
from termsight.hooks.events import ContextTruncatedEvent
from termsight.hooks.logging_config import setup_logging
from termsight.models import CompletionRequest
from termsight.providers.catalog import BUILTIN_PROVIDERS
from termsight.startup_checks import validate_settings

app = typer.Typer(name="termsight", help="Ask an LLM about your terminal session")
console = Console()
err_console = Console(stderr=True)


def _build_settings(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> AppSettings:
    """Build settings, overriding env defaults with CLI flags."""
    overrides: dict = {}
    if provider:
        overrides["provider"] = provider
    if model:
        overrides["model"] = model
    if api_key:
        overrides["api_key"] = api_key
    if base_url:
        overrides["base_url"] = base_url
    if not overrides:
        return AppSettings()
    return AppSettings(llm=LLMConfig(**overrides))


def _read_terminal_output(input_file: Optional[Path]) -> list[str]:
    """Terminal output from *input_file*, else piped stdin, else nothing."""
    if input_file is not None:
        return input_file.read_text(encoding="utf-8", errors="replace").splitlines()
    if not sys.stdin.isatty():
        return sys.stdin.read().splitlines()
    return []


def _fail(message: str) -> None:
    err_console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=1)


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question about the terminal output"),
    input_file: Optional[Path] = typer.Option(None, "--input", "-i", help="File with terminal output (default: stdin)"),
    provider: Optional[str] = typer.Option(None, "--provider", help="Provider id"),
    model: Optional[str] = typer.Option(None, "--model", help="Model name"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Provider API key"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Provider base URL"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Response token limit"),
    stream: bool = typer.Option(False, "--stream", help="Stream the answer"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Send a question grounded in recent terminal output."""
    try:
        settings = _build_settings(provider, model, api_key, base_url)
    except ValueError as exc:
        _fail(str(exc))
    setup_logging(settings.observability, level_override="DEBUG" if verbose else None)

    try:
        validate_settings(settings)
        engine = create_engine(settings)
        engine.add_lines(_read_terminal_output(input_file))
        gateway = create_gateway(settings, engine=engine)
    except GatewayError as exc:
        _fail(str(exc))

    engine.hooks.add_callback(
        ContextTruncatedEvent,
        lambda event: err_console.print(
            f"[yellow]Context truncated to {event.result.truncated_tokens} tokens "
            f"({event.result.reason.value})[/yellow]"
        ),
    )

    config = gateway.active_configuration()
    request = CompletionRequest.from_prompt(
        question,
        model=config.model,
        temperature=config.temperature,
        top_p=config.top_p,
        max_tokens=max_tokens or config.max_tokens,
    )

    if stream:
        code = asyncio.run(_stream_answer(gateway, request))
        raise typer.Exit(code=code)

    try:
        response = asyncio.run(gateway.send(request))
    except GatewayError as exc:
        _fail(f"{exc} (retryable={exc.retryable})")

    console.print(response.content)
    if verbose:
        console.print(
            f"\n[dim]{response.provider}/{response.model} "
            f"tokens={response.total_tokens} finish={response.finish_reason}[/dim]"
        )


async def _stream_answer(gateway: LLMGateway, request: CompletionRequest) -> int:
    try:
        async for chunk in gateway.send_streaming(request):
            if chunk.is_restart:
                console.print(f"\n[yellow]Stream interrupted, restarting (attempt {chunk.attempt})[/yellow]")
            elif chunk.is_error:
                err_console.print(f"\n[red]{chunk.content}[/red]")
                return 1
            elif chunk.finish_reason == "cancelled":
                return 130
            elif chunk.has_data:
                console.print(chunk.content, end="")
    except GatewayError as exc:
        err_console.print(f"[red]{exc}[/red]")
        return 1
    console.print()
    return 0


@app.command()
def context(
    input_file: Optional[Path] = typer.Option(None, "--input", "-i", help="File with terminal output (default: stdin)"),
    budget: int = typer.Option(1000, "--budget", "-b", help="Request token budget"),
    max_lines: Optional[int] = typer.Option(None, "--max-lines", help="Lines of history to consider"),
    mode: Optional[SizingMode] = typer.Option(None, "--mode", help="Sizing mode"),
    percentage: Optional[float] = typer.Option(None, "--percentage", help="Fraction of the model window (percentage mode)"),
    fixed_size: Optional[int] = typer.Option(None, "--fixed-size", help="Token budget (fixed mode)"),
    model: str = typer.Option("", "--model", help="Model used for auto sizing"),
    model_max: Optional[int] = typer.Option(None, "--model-max", help="Model context window in tokens"),
    show: bool = typer.Option(False, "--show", help="Print the truncated context"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Show how terminal output would be sized and truncated for a request."""
    settings = AppSettings()
    setup_logging(settings.observability, level_override="DEBUG" if verbose else "WARNING")

    try:
        engine = create_engine(settings)
        if max_lines is not None:
            engine.set_max_lines(max_lines)
        policy = engine.policy
        if mode is not None or fixed_size is not None:
            policy = dataclasses.replace(
                policy,
                mode=mode or policy.mode,
                fixed_size=fixed_size if fixed_size is not None else policy.fixed_size,
            )
        if percentage is not None:
            policy = policy.with_percentage(percentage)
        engine.update_policy(policy)
        engine.set_model(model, model_max or settings.context.default_model_max_context)
    except GatewayError as exc:
        _fail(str(exc))

    engine.add_lines(_read_terminal_output(input_file))
    result = engine.get_truncated_context(budget)
    stats = engine.statistics()
    status = usage_status(result.truncated_tokens, budget)

    table = Table(title="Terminal Context")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Lines", str(stats.line_count))
    table.add_row("Estimated tokens", str(result.original_tokens))
    table.add_row("Policy", engine.policy.mode.value)
    table.add_row("Policy target", str(engine.target_size()))
    table.add_row("Request budget", str(budget))
    table.add_row("Truncated", "yes" if result.was_truncated else "no")
    table.add_row("Reason", result.reason.value)
    table.add_row("Kept tokens", f"{result.truncated_tokens} ({result.kept_percentage:.1%})")
    table.add_row("Budget usage", status.value)
    table.add_row("Working directory", stats.working_directory or "unknown")
    console.print(table)

    if show:
        console.print(result.truncated_content, markup=False, highlight=False)


@app.command()
def providers() -> None:
    """List the built-in providers."""
    table = Table(title="Providers")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Default model")
    table.add_column("Max context", justify="right")
    table.add_column("Streaming")
    table.add_column("API key")

    for info in BUILTIN_PROVIDERS.values():
        table.add_row(
            info.id,
            info.name,
            info.default_model,
            f"{info.max_context_tokens:,}",
            "yes" if info.supports_streaming else "no",
            "required" if info.requires_api_key else "-",
        )
    console.print(table)


if __name__ == "__main__":
    app()
