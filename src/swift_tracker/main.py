"""CLI entrypoint for swift-tracker."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console

from .logger import setup_logging
from .settings import CONFIG_ENV_VAR, TrackerSettings
from .state import AppState

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Cross-chain SWIFT order lifecycle and cost analysis.",
)

err_console = Console(stderr=True)

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to a TOML config file (can include [swift_tracker] table).",
    ),
]
SolanaRpcOption = Annotated[
    str | None,
    typer.Option("--solana-rpc", help="Solana RPC endpoint; overrides config and env."),
]
LogLevelOption = Annotated[
    str | None,
    typer.Option(
        "--log-level",
        help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Print the JSON envelope instead of rich panels."),
]


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("swift_tracker")


def _build_state(
    config_path: Path | None,
    solana_rpc: str | None,
    log_level: str | None,
) -> AppState:
    if config_path:
        os.environ[CONFIG_ENV_VAR] = str(config_path)

    init_kwargs: dict[str, Any] = {}
    if solana_rpc is not None:
        init_kwargs["solana_rpc"] = solana_rpc
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = TrackerSettings(**init_kwargs)
    setup_logging(settings.log_level)
    return AppState(settings=settings, logger=_build_logger())


def _emit_envelope(success: bool, data: Any = None, error: str | None = None) -> None:
    from .report.serializer import build_envelope

    typer.echo(json.dumps(build_envelope(success, data=data, error=error), indent=2))


def _fail(message: str, as_json: bool) -> NoReturn:
    if as_json:
        _emit_envelope(False, error=message)
    else:
        err_console.print(f"[bold red]Error:[/] {message}")
    raise typer.Exit(code=1)


@app.command()
def analyze(
    order_id: Annotated[
        str, typer.Argument(help="SWIFT order id (SWIFT_0x... or bare 0x... hash).")
    ],
    as_json: JsonOption = False,
    config_path: ConfigOption = None,
    solana_rpc: SolanaRpcOption = None,
    log_level: LogLevelOption = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Investigate a SWIFT order across its source, fulfill and unlock transactions.

    Stage failures are reported alongside the partial result and do not change
    the exit code; an invalid id or an unreachable order API exits with 1.
    """
    state = _build_state(config_path, solana_rpc, log_level)

    if show_config:
        typer.echo(json.dumps(state.settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    from .pipeline.run import investigate_order

    try:
        analysis = asyncio.run(investigate_order(state, order_id))
    except Exception as exc:
        state.logger.error("Investigation failed: %s", exc)
        _fail(f"Investigation failed: {exc}", as_json)

    if as_json:
        _emit_envelope(True, data=analysis)
    else:
        from .report.formatter import print_analysis

        print_analysis(analysis)


@app.command()
def inspect(
    chain: Annotated[
        str,
        typer.Argument(help="Chain name (solana, ethereum, base, ...) or EVM chain id."),
    ],
    ref: Annotated[str, typer.Argument(help="Transaction signature or hash.")],
    as_json: JsonOption = False,
    config_path: ConfigOption = None,
    solana_rpc: SolanaRpcOption = None,
    log_level: LogLevelOption = None,
):
    """Protocol-agnostic overview of a single transaction (fees, status, transfers)."""
    state = _build_state(config_path, solana_rpc, log_level)

    from .pipeline.run import inspect_transaction

    try:
        overview = asyncio.run(inspect_transaction(state, chain, ref))
    except Exception as exc:
        state.logger.error("Inspection failed: %s", exc)
        _fail(f"Inspection failed: {exc}", as_json)

    if as_json:
        _emit_envelope(True, data=overview)
    else:
        from .report.formatter import print_overview

        print_overview(overview)


@app.command()
def chains():
    """List the SWIFT chain codes and EVM chain configs."""
    from .report.formatter import print_chains

    print_chains()


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
