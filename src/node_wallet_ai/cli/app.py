"""CLI for Node Wallet AI - manage contacts, events, communities and a Solana wallet with an AI assistant."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="node-wallet-ai",
    help="Talk to an AI assistant about your contacts, events, communities and Solana wallet.",
    no_args_is_help=True,
)
console = Console()

_base_path: Path | None = None


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"node-wallet-ai {version('node-wallet-ai')}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    directory: Path = typer.Option(
        None,
        "--dir",
        "-d",
        help="Directory holding the .node-wallet-ai folder (default: current directory)",
        envvar="NODE_WALLET_AI_DIR",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Talk to an AI assistant about your contacts, events, communities and Solana wallet."""
    global _base_path
    _base_path = directory
    _setup_logging(verbose)


def _run(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _load():
    from node_wallet_ai.assistant import Assistant
    return Assistant.load(_base_path)


def _sol(lamports: int | None) -> str:
    from node_wallet_ai.wallet.clusters import lamports_to_sol
    if lamports is None:
        return "unknown"
    return f"{lamports_to_sol(lamports):.6f} SOL"


# Provider presets: user-facing name -> (config provider, base_url, default model, env var)
PROVIDER_PRESETS = {
    "anthropic": ("anthropic", None, "claude-sonnet-4-5", "ANTHROPIC_API_KEY"),
    "openai": ("openai", None, "gpt-4o", "OPENAI_API_KEY"),
    "ollama": ("openai", "http://localhost:11434/v1", "llama3.1", None),
    "openai-compat": ("openai", None, None, None),
}


# ------------------------------------------------------------------
# init
# ------------------------------------------------------------------


@app.command()
def init(
    name: str = typer.Option("My Node Wallet", "--name", "-n", help="Display name"),
    provider: str = typer.Option(None, "--provider", "-p", help=f"LLM provider ({', '.join(PROVIDER_PRESETS)})"),
    api_key: str = typer.Option(None, "--api-key", "-k", help="API key (default: ${ENV_VAR} placeholder)"),
    model: str = typer.Option(None, "--model", "-m", help="Model name (defaults per provider)"),
    base_url: str = typer.Option(None, "--base-url", "-b", help="Base URL for OpenAI-compatible endpoints"),
    cluster: str = typer.Option("devnet", "--cluster", "-c", help="Solana cluster (devnet, testnet, mainnet-beta)"),
    backend: str = typer.Option("keypair", "--backend", help="Wallet backend (keypair, extension, mobile)"),
):
    """Initialize .node-wallet-ai/config.yaml in the current directory."""
    from node_wallet_ai.config import AppConfig, LLMProviderConfig, WalletConfig, get_app_dir, save_config
    from node_wallet_ai.wallet.clusters import list_cluster_names

    if cluster not in list_cluster_names():
        console.print(f"[red]Unknown cluster '{cluster}'.[/red] Choose from: {', '.join(list_cluster_names())}")
        raise typer.Exit(1)

    app_dir = get_app_dir(_base_path)
    config_path = app_dir / "config.yaml"
    if config_path.exists():
        typer.confirm(f"{config_path} exists. Overwrite?", abort=True)

    config = AppConfig(name=name, wallet=WalletConfig(cluster=cluster, backend=backend))
    if provider:
        if provider not in PROVIDER_PRESETS:
            console.print(f"[red]Unknown provider '{provider}'.[/red]")
            raise typer.Exit(1)
        config_provider, preset_url, preset_model, env_var = PROVIDER_PRESETS[provider]
        key = api_key or (f"${{{env_var}}}" if env_var else "not-needed")
        block = LLMProviderConfig(
            api_key=key,
            model=model or preset_model or "",
            base_url=base_url or preset_url,
        )
        config.llm.default_provider = config_provider
        setattr(config.llm, config_provider, block)

    save_config(config, config_path)
    console.print(Panel(
        f"[bold green]Initialized![/bold green]\n\n"
        f"Config: [cyan]{config_path}[/cyan]\n"
        f"Cluster: {cluster}\n"
        f"Wallet backend: {backend}\n"
        f"LLM: {provider or '[yellow]not configured[/yellow]'}\n\n"
        f"[dim]Next: 'node-wallet-ai wallet new' (keypair backend) and "
        f"'node-wallet-ai nodes add-person'.[/dim]",
        title=name,
    ))


# ------------------------------------------------------------------
# chat / ask / tools
# ------------------------------------------------------------------


@app.command()
def chat(
    no_wallet: bool = typer.Option(False, "--no-wallet", help="Do not connect the wallet"),
):
    """Start an interactive chat with the assistant."""
    from node_wallet_ai.interpreter import generate_suggestions

    async def _chat():
        assistant = await _load()
        try:
            if not no_wallet:
                try:
                    state = await assistant.connect_wallet()
                    console.print(f"[dim]Wallet {state.public_key} ({_sol(state.balance)})[/dim]")
                except Exception as e:
                    console.print(f"[yellow]Wallet not connected:[/yellow] {e}")

            console.print(f"[bold]{assistant.config.name}[/bold]")
            console.print("[dim]Try: " + " | ".join(generate_suggestions(assistant.store.nodes)[:4]) + "[/dim]")
            console.print("[dim]Type 'exit' to end the conversation.[/dim]\n")

            while True:
                try:
                    user_input = console.input("[bold blue]You>[/bold blue] ")
                except (EOFError, KeyboardInterrupt):
                    break
                if user_input.strip().lower() in ("exit", "quit", "bye"):
                    break
                if not user_input.strip():
                    continue

                try:
                    with console.status("Thinking..."):
                        reply = await assistant.handle_text(user_input)
                except Exception as e:
                    console.print(f"[red]{e}[/red]\n")
                    continue
                console.print(f"[bold green]AI>[/bold green] {reply.text}\n")
        finally:
            await assistant.shutdown()
        console.print("[dim]Chat ended.[/dim]")

    _run(_chat())


@app.command()
def ask(
    text: str = typer.Argument(help="A line of input to interpret"),
):
    """Show how a line of input is interpreted, without executing anything."""
    from node_wallet_ai.interpreter import format_response, is_actionable, parse

    async def _nodes():
        assistant = await _load()
        nodes = assistant.store.nodes
        await assistant.shutdown()
        return nodes

    command = parse(text, _run(_nodes()))
    node = getattr(command, "node", None) or getattr(command, "recipient_node", None)
    console.print(Panel(
        f"Intent: [cyan]{command.type.value}[/cyan]\n"
        f"Confidence: {command.confidence:.2f}\n"
        f"Actionable: {'yes' if is_actionable(command) else 'no'}\n"
        f"Node: {node.name + ' (' + node.id + ')' if node else '-'}\n\n"
        f"{format_response(command)}",
        title="Interpretation",
    ))


@app.command()
def tools():
    """List the tools the AI can call."""

    async def _catalogue():
        assistant = await _load()
        catalogue = assistant.bridge.catalogue()
        await assistant.shutdown()
        return catalogue

    catalogue = _run(_catalogue())
    table = Table(title=f"Tool catalogue v{catalogue['version']}")
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Parameters")
    table.add_column("Description", style="dim")
    for entry in catalogue["tools"]:
        schema = entry["inputSchema"]
        required = set(schema.get("required", []))
        params = ", ".join(
            f"[bold]{p}[/bold]" if p in required else p for p in schema.get("properties", {})
        )
        table.add_row(entry["name"], params or "-", entry["description"])
    console.print(table)


# ------------------------------------------------------------------
# nodes
# ------------------------------------------------------------------

nodes_app = typer.Typer(
    name="nodes",
    help="Manage people, events and communities, and what the AI may see.",
    no_args_is_help=True,
)
app.add_typer(nodes_app, name="nodes")


def _create_node(kind: str, data: dict, grant: bool) -> None:
    async def _create():
        assistant = await _load()
        try:
            node = assistant.store.create(kind, data)
            if grant:
                assistant.store.set_llm_accessible(node.id, True)
        finally:
            await assistant.shutdown()
        return node

    try:
        node = _run(_create())
    except ValueError as e:
        console.print(f"[red]Could not create {kind}: {e}[/red]")
        raise typer.Exit(1)
    shared = "[green]shared with AI[/green]" if grant else "[dim]private[/dim]"
    console.print(f"Created {kind} [bold]{node.name}[/bold] ([cyan]{node.id}[/cyan]) - {shared}")


@nodes_app.command("add-person")
def nodes_add_person(
    name: str = typer.Argument(help="Person's name"),
    wallet: str = typer.Option(None, "--wallet", "-w", help="Solana wallet address"),
    relationship: str = typer.Option(None, "--relationship", "-r", help="friend, family, colleague, business, other"),
    email: str = typer.Option(None, "--email"),
    phone: str = typer.Option(None, "--phone"),
    notes: str = typer.Option(None, "--notes"),
    tag: list[str] = typer.Option(None, "--tag", "-t", help="Tag (repeatable)"),
    grant: bool = typer.Option(False, "--grant", "-g", help="Share with the AI"),
):
    """Add a person (contact)."""
    data = {
        "name": name,
        "wallet_address": wallet,
        "relationship": relationship,
        "email": email,
        "phone": phone,
        "notes": notes,
        "tags": tag or [],
    }
    _create_node("person", {k: v for k, v in data.items() if v is not None}, grant)


@nodes_app.command("add-event")
def nodes_add_event(
    name: str = typer.Argument(help="Event name"),
    date: str = typer.Option(..., "--date", help="Start date/time, ISO 8601 (e.g. 2026-05-01T18:00)"),
    end_date: str = typer.Option(None, "--end-date", help="End date/time, ISO 8601"),
    location: str = typer.Option(None, "--location", "-l"),
    event_type: str = typer.Option(None, "--type", help="conference, meetup, party, business, social, other"),
    organizer: str = typer.Option(None, "--organizer"),
    tag: list[str] = typer.Option(None, "--tag", "-t", help="Tag (repeatable)"),
    grant: bool = typer.Option(False, "--grant", "-g", help="Share with the AI"),
):
    """Add an event."""
    data = {
        "name": name,
        "date": date,
        "end_date": end_date,
        "location": location,
        "event_type": event_type,
        "organizer": organizer,
        "tags": tag or [],
    }
    _create_node("event", {k: v for k, v in data.items() if v is not None}, grant)


@nodes_app.command("add-community")
def nodes_add_community(
    name: str = typer.Argument(help="Community name"),
    community_type: str = typer.Option("other", "--type", help="dao, nft, social, gaming, defi, business, other"),
    private: bool = typer.Option(False, "--private", help="Mark as not public"),
    website: str = typer.Option(None, "--website"),
    tag: list[str] = typer.Option(None, "--tag", "-t", help="Tag (repeatable)"),
    grant: bool = typer.Option(False, "--grant", "-g", help="Share with the AI"),
):
    """Add a community."""
    data = {
        "name": name,
        "community_type": community_type,
        "is_public": not private,
        "website": website,
        "tags": tag or [],
    }
    _create_node("community", {k: v for k, v in data.items() if v is not None}, grant)


@nodes_app.command("list")
def nodes_list(
    node_type: str = typer.Option(None, "--type", help="person, event or community"),
    search: str = typer.Option(None, "--search", "-s", help="Text in name or description"),
    tag: list[str] = typer.Option(None, "--tag", "-t", help="Match any of these tags"),
    shared: bool = typer.Option(False, "--shared", help="Only nodes shared with the AI"),
):
    """List nodes."""
    from node_wallet_ai.nodes import NodeFilters
    from node_wallet_ai.storage.models import PersonNode, parse_kind

    try:
        kind = parse_kind(node_type) if node_type else None
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    async def _list():
        assistant = await _load()
        store = assistant.store
        source = store.get_llm_accessible_nodes() if shared else None
        nodes = store.query(NodeFilters(kind=kind, tags=tag or None, search_term=search), nodes=source)
        rows = [(n, store.is_llm_accessible(n.id)) for n in nodes]
        await assistant.shutdown()
        return rows

    rows = _run(_list())
    if not rows:
        console.print("[dim]No nodes found.[/dim]")
        return

    table = Table(title="Nodes")
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("Name", style="cyan")
    table.add_column("Wallet")
    table.add_column("Tags")
    table.add_column("AI", justify="center")
    for node, accessible in rows:
        wallet = node.wallet_address if isinstance(node, PersonNode) and node.wallet_address else ""
        table.add_row(
            node.id,
            node.kind.value,
            node.name if node.is_active else f"[dim]{node.name}[/dim]",
            wallet[:8] + "..." if wallet else "-",
            ", ".join(node.tags) or "-",
            "[green]yes[/green]" if accessible else "-",
        )
    console.print(table)


@nodes_app.command("show")
def nodes_show(node_id: str = typer.Argument(help="Node ID")):
    """Show every field of a node."""

    async def _show():
        assistant = await _load()
        node = assistant.store.get(node_id)
        accessible = assistant.store.is_llm_accessible(node_id)
        await assistant.shutdown()
        return node, accessible

    node, accessible = _run(_show())
    if node is None:
        console.print(f"[red]No node with ID {node_id}.[/red]")
        raise typer.Exit(1)

    lines = []
    for key, value in node.model_dump(mode="json").items():
        if value in (None, [], ""):
            continue
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        lines.append(f"[bold]{key}:[/bold] {value}")
    lines.append(f"[bold]shared with AI:[/bold] {'yes' if accessible else 'no'}")
    console.print(Panel("\n".join(lines), title=node.name))


def _set_access(node_id: str, accessible: bool) -> None:
    async def _set():
        assistant = await _load()
        try:
            if node_id not in assistant.store:
                raise KeyError(node_id)
            assistant.store.set_llm_accessible(node_id, accessible)
        finally:
            await assistant.shutdown()

    try:
        _run(_set())
    except KeyError:
        console.print(f"[red]No node with ID {node_id}.[/red]")
        raise typer.Exit(1)
    verb = "now visible to" if accessible else "hidden from"
    console.print(f"Node [cyan]{node_id}[/cyan] is {verb} the AI.")


@nodes_app.command("grant")
def nodes_grant(node_id: str = typer.Argument(help="Node ID")):
    """Let the AI see a node."""
    _set_access(node_id, True)


@nodes_app.command("revoke")
def nodes_revoke(node_id: str = typer.Argument(help="Node ID")):
    """Hide a node from the AI."""
    _set_access(node_id, False)


@nodes_app.command("delete")
def nodes_delete(
    node_id: str = typer.Argument(help="Node ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a node."""
    if not yes:
        typer.confirm(f"Delete node {node_id}?", abort=True)

    async def _delete():
        assistant = await _load()
        try:
            return assistant.store.delete(node_id)
        finally:
            await assistant.shutdown()

    if not _run(_delete()):
        console.print(f"[red]No node with ID {node_id}.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted[/green] {node_id}")


# ------------------------------------------------------------------
# wallet
# ------------------------------------------------------------------

wallet_app = typer.Typer(
    name="wallet",
    help="Manage the Solana wallet.",
    no_args_is_help=True,
)
app.add_typer(wallet_app, name="wallet")


async def _connected(secret: str | None = None):
    assistant = await _load()
    try:
        await assistant.connect_wallet(secret)
    except Exception:
        await assistant.shutdown()
        raise
    return assistant


def _wallet_call(coro_factory, secret: str | None = None):
    """Connect, run ``coro_factory(assistant)``, always shut down."""

    async def _call():
        assistant = await _connected(secret)
        try:
            return await coro_factory(assistant)
        finally:
            await assistant.shutdown()

    try:
        return _run(_call())
    except (ValueError, RuntimeError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


_SECRET_OPTION = typer.Option(
    None, "--secret", help="Secret key (base58/base64/JSON) for the keypair backend", envvar="SOLANA_SECRET_KEY"
)


@wallet_app.command("new")
def wallet_new(force: bool = typer.Option(False, "--force", help="Overwrite an existing keypair file")):
    """Generate a keypair file for the keypair backend."""
    from solders.keypair import Keypair

    from node_wallet_ai.config import get_app_dir, load_config
    from node_wallet_ai.wallet.keystore import save_keypair_file

    app_dir = get_app_dir(_base_path)
    config = load_config(app_dir / "config.yaml")
    path = app_dir / config.wallet.keypair_file
    if path.exists() and not force:
        console.print(f"[yellow]Keypair already exists at {path}.[/yellow] Use --force to replace it.")
        raise typer.Exit(1)

    keypair = Keypair()
    save_keypair_file(keypair, path)
    console.print(Panel(
        f"[bold green]Keypair created![/bold green]\n\n"
        f"Address: [cyan]{keypair.pubkey()}[/cyan]\n"
        f"File: {path}\n\n"
        f"[dim]Keep this file secret. Fund the address on {config.wallet.cluster} to start transacting.[/dim]",
        title="Solana Wallet",
    ))


@wallet_app.command("connect")
def wallet_connect(secret: str = _SECRET_OPTION):
    """Connect the configured backend and show the authorized accounts."""

    async def _state(assistant):
        return assistant.executor.state

    state = _wallet_call(_state, secret)
    lines = [
        f"Backend: {state.backend.value if state.backend else '-'}",
        f"Status: [green]{state.status.value}[/green]",
        f"Balance: {_sol(state.balance)}",
        "",
        "Accounts:",
    ]
    for i, account in enumerate(state.accounts):
        marker = "*" if i == state.active_account_index else " "
        lines.append(f" {marker} [{i}] [cyan]{account}[/cyan]")
    console.print(Panel("\n".join(lines), title="Wallet"))


@wallet_app.command("balance")
def wallet_balance(secret: str = _SECRET_OPTION):
    """Show the wallet balance."""

    async def _balance(assistant):
        return assistant.executor.public_key, await assistant.executor.refresh_balance(), assistant.executor.endpoint

    pubkey, lamports, endpoint = _wallet_call(_balance, secret)
    console.print(f"[bold]{pubkey}[/bold]: {_sol(lamports)} [dim]({endpoint})[/dim]")


@wallet_app.command("address")
def wallet_address(secret: str = _SECRET_OPTION):
    """Show the wallet address."""

    async def _address(assistant):
        return assistant.executor.public_key

    console.print(Panel(f"[cyan]{_wallet_call(_address, secret)}[/cyan]", title="Wallet Address"))


@wallet_app.command("history")
def wallet_history(
    limit: int = typer.Option(10, "--limit", "-l", min=1, max=50, help="Number of transactions"),
    secret: str = _SECRET_OPTION,
):
    """Show recent transactions."""
    from datetime import datetime, timezone

    async def _history(assistant):
        return await assistant.executor.get_history(limit), assistant.cluster

    signatures, cluster = _wallet_call(_history, secret)
    if not signatures:
        console.print("[dim]No transaction history found for this wallet.[/dim]")
        return

    table = Table(title="Recent Transactions")
    table.add_column("Signature", style="cyan")
    table.add_column("Status")
    table.add_column("Time", style="dim")
    table.add_column("Slot", justify="right")
    for info in signatures:
        when = (
            datetime.fromtimestamp(info.block_time, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
            if info.block_time else "-"
        )
        table.add_row(
            info.signature[:16] + "...",
            "[red]failed[/red]" if info.failed else "[green]ok[/green]",
            when,
            str(info.slot),
        )
    console.print(table)
    console.print(f"[dim]Explorer: {cluster.explorer_url}[/dim]")


@wallet_app.command("send")
def wallet_send(
    amount: str = typer.Argument(help="Amount of SOL to send (e.g. 0.1)"),
    to: str = typer.Option(..., "--to", "-t", help="Recipient address or contact name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    secret: str = _SECRET_OPTION,
):
    """Send SOL (human-initiated). Shows the cost and asks for confirmation."""
    from decimal import Decimal, InvalidOperation

    from node_wallet_ai.storage.models import NodeKind, PersonNode
    from node_wallet_ai.wallet.clusters import lamports_to_sol, sol_to_lamports
    from node_wallet_ai.wallet.executor import parse_pubkey

    try:
        value = Decimal(amount)
    except InvalidOperation:
        value = None
    if value is None or not value.is_finite():
        console.print(f"[red]Invalid amount '{amount}'.[/red]")
        raise typer.Exit(1)
    lamports = sol_to_lamports(value)
    if lamports <= 0:
        console.print("[red]Amount must be greater than 0.[/red]")
        raise typer.Exit(1)

    async def _quote(assistant):
        try:
            recipient = parse_pubkey(to)
            person = assistant.store.find_by_wallet(str(recipient))
        except ValueError:
            person = assistant.store.find_by_name(to, NodeKind.PERSON)
            if not isinstance(person, PersonNode) or not person.wallet_address:
                raise ValueError(f"'{to}' is not an address or a contact with a wallet.") from None
            recipient = parse_pubkey(person.wallet_address)
        quote = await assistant.executor.quote_transfer(recipient, lamports)
        return recipient, person, quote

    recipient, person, quote = _wallet_call(_quote, secret)
    console.print(f"\n[bold]Send {lamports_to_sol(lamports)} SOL[/bold]")
    console.print(f"  To: {person.name + ' ' if person else ''}{recipient}")
    console.print(f"  Fee: {lamports_to_sol(quote.fee_lamports):.9f} SOL")
    console.print(f"  Balance: {_sol(quote.balance)}\n")
    if not quote.sufficient:
        console.print("[red]Insufficient balance.[/red]")
        raise typer.Exit(1)
    if not yes:
        typer.confirm("Confirm this transaction?", abort=True)

    async def _send(assistant):
        signature = await assistant.executor.transfer(recipient, lamports)
        if person is not None and assistant.store.get(person.id) is not None:
            assistant.store.record_transaction(person.id)
        return signature, assistant.cluster.explorer_tx_url(signature)

    signature, link = _wallet_call(_send, secret)
    console.print(Panel(
        f"[bold green]Transaction confirmed![/bold green]\n\n"
        f"Signature: [cyan]{signature}[/cyan]\n"
        f"Explorer: {link}",
        title="Transaction Sent",
    ))


@wallet_app.command("validate")
def wallet_validate(address: str = typer.Argument(help="Address to check")):
    """Check whether a string is a valid Solana wallet address."""
    from node_wallet_ai.wallet.executor import is_valid_address

    if is_valid_address(address):
        console.print(f"[green]Valid Solana address[/green]: {address}")
    else:
        console.print(f"[red]Invalid address format[/red]: {address}")
        raise typer.Exit(1)
