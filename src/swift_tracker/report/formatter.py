"""Rich console summaries for order analyses and transaction overviews."""

from __future__ import annotations

from typing import Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..chains import SWIFT_CHAIN_MAPPING
from ..constants import EVM_CHAIN_CONFIGS
from ..domain.evm import (
    EvmFulfillParsed,
    EvmSourceParsed,
    EvmTransactionOverview,
    EvmUnlockParsed,
    TokenTransfer,
)
from ..domain.solana import (
    SolanaFulfillParsed,
    SolanaSourceParsed,
    SolanaTransactionOverview,
)
from ..pipeline.context import OrderAnalysis
from ..processors.balance_delta import BalanceChange
from ..processors.cost_aggregator import CostSummary
from ..units import format_decimal, format_lamports, format_native, format_units


def _truncate(value: str | None, head: int = 10, tail: int = 4) -> str:
    """Truncate a hash or address for display."""
    if not value:
        return "—"
    if len(value) <= head + tail + 3:
        return value
    return f"{value[:head]}...{value[-tail:]}"


def _kv_table(rows: list[tuple[str, str]], value_style: str = "cyan") -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style=value_style, overflow="fold")
    for key, value in rows:
        table.add_row(key, value)
    return table


def _status(success: bool) -> str:
    return "[green]Success[/]" if success else "[red]Failed[/]"


def _token_amount(transfer: TokenTransfer) -> str:
    if transfer.formatted_amount is None:
        return f"{transfer.amount:,} (raw)"
    return format_decimal(transfer.formatted_amount)


def _token_transfer_table(transfers: list[TokenTransfer]) -> Table:
    table = Table(expand=True)
    table.add_column("Token", style="cyan", no_wrap=True)
    table.add_column("From", style="dim")
    table.add_column("To", style="dim")
    table.add_column("Amount", justify="right", style="green")
    for transfer in transfers:
        table.add_row(
            transfer.symbol or _truncate(transfer.token_address),
            _truncate(transfer.sender),
            _truncate(transfer.recipient),
            _token_amount(transfer),
        )
    return table


def _balance_change_table(changes: list[BalanceChange]) -> Table:
    table = Table(expand=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Account", style="cyan", overflow="fold")
    table.add_column("Asset")
    table.add_column("Change", justify="right")
    for change in changes:
        asset = "SOL" if change.token_mint is None else (
            change.token_symbol or _truncate(change.token_mint, 6, 4)
        )
        style = "green" if change.raw_change > 0 else "red"
        table.add_row(
            str(change.account_index),
            _truncate(change.account_address, 8, 4),
            asset,
            f"[{style}]{format_decimal(change.formatted_change)}[/]",
        )
    return table


def _solana_source_panel(parsed: SolanaSourceParsed) -> Panel:
    rows = [
        ("Signature", _truncate(parsed.signature, 12, 6)),
        ("Slot", str(parsed.slot)),
        ("Status", _status(parsed.success)),
        ("Fee", f"{format_lamports(parsed.fee)} SOL"),
        ("Fee payer", _truncate(parsed.fee_payer, 8, 4)),
        ("Locked", f"{parsed.locked_amount or '—'} {parsed.locked_token or ''}".strip()),
        ("Detection", parsed.lock_detection),
    ]
    parts: list[Any] = [_kv_table(rows)]
    if parsed.asset_locks:
        locks = Table(expand=True)
        locks.add_column("Asset", style="cyan")
        locks.add_column("From", style="dim")
        locks.add_column("Amount", justify="right", style="green")
        for lock in parsed.asset_locks:
            locks.add_row(
                lock.display_token or "—",
                _truncate(lock.from_account, 8, 4),
                format_decimal(lock.formatted_amount),
            )
        parts += ["", locks]
    return Panel(Group(*parts), title="[bold]Source (Solana)[/]", border_style="blue")


def _evm_source_panel(parsed: EvmSourceParsed) -> Panel:
    call = parsed.swift_call
    rows = [
        ("Tx hash", _truncate(parsed.tx_hash, 12, 6)),
        ("Block", str(parsed.block_number)),
        ("Sender", _truncate(parsed.sender)),
    ]
    if call is not None:
        rows += [
            ("Method", call.method),
            ("Lock", call.kind.value),
            ("Amount", f"{call.amount:,}"),
            ("Token", call.token_symbol or _truncate(call.token_in)),
            ("Detected via", call.source.value),
        ]
    else:
        rows.append(("Lock", "[yellow]not detected[/]"))
    parts: list[Any] = [_kv_table(rows)]
    for warning in parsed.warnings:
        parts.append(Text(f"! {warning}", style="yellow"))
    return Panel(Group(*parts), title="[bold]Source (EVM)[/]", border_style="blue")


def _solana_fulfill_panel(parsed: SolanaFulfillParsed) -> Panel:
    rows = [
        ("Signature", _truncate(parsed.signature, 12, 6)),
        ("Status", _status(parsed.success)),
        ("Solver", _truncate(parsed.solver, 8, 4)),
        ("Fee", f"{format_lamports(parsed.fee)} SOL"),
        ("Transfers", str(parsed.total_transfers)),
    ]
    table = Table(expand=True)
    table.add_column("Asset", style="cyan")
    table.add_column("From", style="dim")
    table.add_column("To", style="dim")
    table.add_column("Amount", justify="right", style="green")
    for sol in parsed.sol_transfers:
        table.add_row(
            "SOL",
            _truncate(sol.sender, 8, 4),
            _truncate(sol.recipient, 8, 4),
            format_decimal(sol.formatted_amount),
        )
    for spl in parsed.spl_transfers:
        table.add_row(
            spl.token_symbol or _truncate(spl.token_mint, 6, 4),
            _truncate(spl.sender, 8, 4),
            spl.recipient,
            format_decimal(spl.formatted_amount),
        )
    return Panel(
        Group(_kv_table(rows), "", table),
        title="[bold]Fulfill (Solana)[/]",
        border_style="green",
    )


def _evm_fulfill_panel(parsed: EvmFulfillParsed) -> Panel:
    rows = [
        ("Tx hash", _truncate(parsed.tx_hash, 12, 6)),
        ("Status", _status(parsed.success)),
        ("Solver", _truncate(parsed.solver)),
        ("Gas cost", f"{format_native(parsed.gas_cost)} {parsed.native_symbol}"),
        ("Events", ", ".join(event.event for event in parsed.fulfill_events) or "—"),
    ]
    if parsed.native_transfer is not None:
        native = parsed.native_transfer
        rows.append(("Native", f"{format_decimal(native.formatted_amount)} {native.symbol}"))
    return Panel(
        Group(_kv_table(rows), "", _token_transfer_table(parsed.token_transfers)),
        title="[bold]Fulfill (EVM)[/]",
        border_style="green",
    )


def _evm_unlock_panel(parsed: EvmUnlockParsed) -> Panel:
    rows = [
        ("Tx hash", _truncate(parsed.tx_hash, 12, 6)),
        ("Status", _status(parsed.success)),
        ("Orders unlocked", str(parsed.total_unlocked_orders)),
        ("Gas cost", f"{format_native(parsed.gas_cost)} {parsed.native_symbol}"),
        (
            "Gas per order",
            f"{format_native(parsed.gas_cost_per_order)} {parsed.native_symbol}",
        ),
    ]
    return Panel(
        Group(_kv_table(rows), "", _token_transfer_table(parsed.unlocked_assets)),
        title="[bold]Unlock (EVM)[/]",
        border_style="magenta",
    )


def _cost_panel(summary: CostSummary) -> Panel:
    unit = summary.native_unit or ""
    table = Table(expand=True)
    table.add_column("Type", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Fees", justify="right")
    table.add_column("Balance change", justify="right")
    table.add_column("Net cost", justify="right", style="yellow")
    decimals = summary.native_decimals or 0
    for label, item in summary.costs_by_type.items():
        table.add_row(
            label,
            str(item.count),
            format_units(item.total_fee, decimals),
            format_units(item.total_balance_change, decimals),
            format_units(item.net_total_cost, decimals),
        )
    table.add_row(
        "[bold]TOTAL[/]",
        f"{summary.successful_count}/{summary.transaction_count}",
        summary.total_fee_formatted,
        summary.total_balance_change_formatted,
        f"{summary.net_total_cost_formatted} {unit}",
        style="bold",
    )
    return Panel(table, title="[bold]Additional costs[/]", border_style="yellow")


def _stage_panel(data: Any) -> Panel | None:
    if isinstance(data, SolanaSourceParsed):
        return _solana_source_panel(data)
    if isinstance(data, EvmSourceParsed):
        return _evm_source_panel(data)
    if isinstance(data, SolanaFulfillParsed):
        return _solana_fulfill_panel(data)
    if isinstance(data, EvmFulfillParsed):
        return _evm_fulfill_panel(data)
    if isinstance(data, EvmUnlockParsed):
        return _evm_unlock_panel(data)
    if isinstance(data, CostSummary):
        return _cost_panel(data)
    return None


def print_analysis(analysis: OrderAnalysis, console: Console | None = None) -> None:
    """Print an order analysis as a stack of panels."""
    console = console or Console()
    info = analysis.order_info
    source = info["sourceChain"]["info"]["name"]
    dest = info["destChain"]["info"]["name"]
    header = _kv_table(
        [
            ("Order", info["orderId"]),
            ("Status", str(info.get("status") or "—")),
            ("Route", f"{source} → {dest}"),
            (
                "From",
                f"{info['tokens']['from']['amount']} {info['tokens']['from']['symbol']}",
            ),
            ("To", f"{info['tokens']['to']['amount']} {info['tokens']['to']['symbol']}"),
        ]
    )

    parts: list[Any] = [Panel(header, title="[bold]Order[/]", border_style="white")]
    onchain = analysis.onchain_data
    for data in (
        onchain.source_transaction,
        onchain.fulfill_transaction,
        onchain.additional_costs,
        onchain.unlock_transaction,
    ):
        panel = _stage_panel(data)
        if panel is not None:
            parts.append(panel)

    for error in analysis.errors:
        parts.append(Text(f"✗ {error}", style="red"))

    console.print()
    console.print(Group(*parts))
    console.print()


def print_overview(overview: Any, console: Console | None = None) -> None:
    """Print a single-transaction overview from ``inspect``."""
    console = console or Console()
    if isinstance(overview, EvmTransactionOverview):
        rows = [
            ("Tx hash", overview.tx_hash),
            ("Status", _status(overview.status == "Success")),
            ("Block", str(overview.block_number)),
            ("From", overview.sender),
            ("To", overview.to or "—"),
            ("Value", f"{format_native(overview.value)} {overview.native_symbol}"),
            ("Gas used / limit", f"{overview.gas_used:,} / {overview.gas_limit:,}"),
            ("Fee", f"{format_native(overview.fee)} {overview.native_symbol}"),
        ]
        body = Group(_kv_table(rows), "", _token_transfer_table(overview.token_transfers))
        title = "[bold]EVM transaction[/]"
    elif isinstance(overview, SolanaTransactionOverview):
        rows = [
            ("Signature", overview.signature),
            ("Status", _status(overview.success)),
            ("Slot", str(overview.slot)),
            ("Signer", overview.signer or "—"),
            ("Fee", f"{format_lamports(overview.fee)} SOL"),
            ("Compute units", str(overview.compute_units_consumed or "—")),
        ]
        body = Group(_kv_table(rows), "", _balance_change_table(overview.balance_changes))
        title = "[bold]Solana transaction[/]"
    else:
        raise TypeError(f"Cannot format overview of type {type(overview).__name__}")

    console.print(Panel(body, title=title, border_style="white"))


def print_chains(console: Console | None = None) -> None:
    """Print the SWIFT chain mapping and EVM chain configs."""
    console = console or Console()
    table = Table(title="Supported chains", expand=True)
    table.add_column("SWIFT code", justify="right", style="cyan")
    table.add_column("Name")
    table.add_column("Family")
    table.add_column("Chain ID", justify="right")
    table.add_column("Native", style="green")
    table.add_column("Default RPC", style="dim")
    for code, info in SWIFT_CHAIN_MAPPING.items():
        config = EVM_CHAIN_CONFIGS.get(info.chain_id) if info.chain_id else None
        table.add_row(
            code,
            info.name,
            info.family.value,
            str(info.chain_id) if info.chain_id is not None else "—",
            config["native_symbol"] if config else "SOL",
            config["rpc_url"] if config else "—",
        )
    console.print(table)
