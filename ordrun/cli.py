"""
ordrun: Ordinals inscriptions via commit/reveal transactions.

Commands:
  inscribe        Inscribe file(s) or text (commit, wait, reveal)
  resume          Finish a batch whose commit was already broadcast
  brc20 deploy    Inscribe a BRC-20 deploy operation
  brc20 mint      Inscribe one or more BRC-20 mint operations
  estimate        Show reveal values and commit fee without signing
  classify        Show the output type of an address
  utxos           List the spendable outputs of an address
  tx-status       Query a transaction's confirmation status

Global flags:
  --network mainnet|testnet|signet|regtest  Override BITCOIN_NETWORK env var
  --verbose                                 Debug logging
"""

from __future__ import annotations

import json
import logging
import mimetypes
import sys
from pathlib import Path

import click
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ordrun import __version__
from ordrun.api.mempool import MempoolClient
from ordrun.config import config
from ordrun.errors import InscriptionError

console = Console()


def _indexer() -> MempoolClient:
    return MempoolClient(base_url=config.mempool_url_for(), timeout=config.http_timeout)


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _load_requests(files, text, content_type, recipient, repeat):
    """Turn CLI content arguments into inscription requests."""
    from ordrun.bitcoin.inscription import InscriptionRequest

    contents: list[tuple[str, bytes]] = []
    for file in files:
        path = Path(file)
        ctype = content_type
        if ctype is None:
            guessed, _ = mimetypes.guess_type(str(path))
            ctype = guessed or "application/octet-stream"
        contents.append((ctype, path.read_bytes()))
    if text is not None:
        contents.append((content_type or "text/plain;charset=utf-8", text.encode()))
    if not contents:
        raise click.UsageError("Provide at least one FILE or --text.")

    return [
        InscriptionRequest(ctype, content, recipient)
        for ctype, content in contents
        for _ in range(repeat)
    ]


def _inscription_config(sender, change_address, fee_rate, requests):
    from ordrun.bitcoin.inscription import InscriptionConfig
    from ordrun.bitcoin.transaction import configure_network

    try:
        configure_network(config.network)
        return InscriptionConfig(
            network=config.network,
            sender_address=sender,
            change_address=change_address or sender,
            fee_rate=fee_rate if fee_rate is not None else config.fee_rate,
            requests=requests,
        )
    except (InscriptionError, ValueError) as exc:
        _fail(f"Config error: {exc}")


def _signer(privkey: str | None):
    from bitcoinutils.keys import PrivateKey

    if not privkey:
        raise click.UsageError("Provide --privkey (WIF) or set BITCOIN_WIF_KEY to sign the commit.")
    try:
        return PrivateKey.from_wif(privkey)
    except Exception as exc:
        _fail(f"Invalid WIF key: {exc}")


def _show_plans(session) -> None:
    t = Table(title="Reveal plan")
    t.add_column("#", justify="right")
    t.add_column("content")
    t.add_column("envelope address", style="cyan")
    t.add_column("commit value (sat)", justify="right")
    for plan, request in zip(session.plans, session.config.requests):
        t.add_row(
            str(plan.index),
            f"{request.content_type} ({len(request.content):,} bytes)",
            plan.envelope_address,
            f"{plan.required_value:,}",
        )
    console.print(t)


def _report(outcomes, json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps(
            [{"index": o.index, "txid": o.txid, "error": str(o.error) if o.error else None}
             for o in outcomes],
            indent=2,
        ))
    else:
        for o in outcomes:
            if o.ok:
                console.print(f"[green]Reveal {o.index}:[/green] {o.txid}")
            else:
                console.print(f"[red]Reveal {o.index} failed:[/red] {o.error}")
    if not all(o.ok for o in outcomes):
        sys.exit(1)


def _inscribe(cfg, privkey, internal_key, dry_run, no_wait, json_output) -> None:
    """Run a full session: commit, wait for confirmation, reveal."""
    from bitcoinutils.keys import PrivateKey

    from ordrun.session import InscriptionSession

    signer = _signer(privkey)
    try:
        key = PrivateKey.from_wif(internal_key) if internal_key else None
        session = InscriptionSession(cfg, _indexer(), internal_key=key)
    except (InscriptionError, ValueError) as exc:
        _fail(f"Build error: {exc}")

    console.print(
        f"[bold yellow]Internal key (needed to resume): {session.internal_key_wif}[/bold yellow]"
    )
    _show_plans(session)

    try:
        draft = session.build_commit()
        session.sign_commit(signer)
    except InscriptionError as exc:
        _fail(f"Commit error: {exc}")

    console.print(
        f"[dim]Commit: {len(draft.tx.inputs)} inputs, change {draft.change_value:,} sat, "
        f"fee {draft.fee:,} sat[/dim]"
    )

    if dry_run:
        reveals = session.preview_reveals()
        console.print("[yellow]DRY RUN, nothing broadcast[/yellow]")
        result = {
            "commit_txid": session.signed_commit.get_txid(),
            "commit_hex": session.signed_commit.serialize(),
            "reveal_hexes": [tx.serialize() for tx in reveals],
        }
        if json_output:
            click.echo(json.dumps(result, indent=2))
        else:
            rprint(result)
        return

    try:
        commit_txid = session.broadcast_commit()
    except InscriptionError as exc:
        _fail(f"Commit broadcast error: {exc}")

    console.print(f"[green]Commit txid:[/green] {commit_txid}")
    console.print(
        f"[dim]Resume with: ordrun resume --internal-key {session.internal_key_wif} "
        f"--commit-txid {commit_txid} ...[/dim]"
    )
    if no_wait:
        return

    _wait_and_reveal(session, json_output)


def _wait_and_reveal(session, json_output: bool) -> None:
    console.print(f"[dim]Waiting for {session.commit_txid} to confirm...[/dim]")
    try:
        session.wait_for_confirmation(interval=config.poll_interval)
    except KeyboardInterrupt:
        _fail("Interrupted while waiting; use `ordrun resume` to finish the batch.")

    try:
        outcomes = session.reveal_all()
    except InscriptionError as exc:
        _fail(f"Reveal error: {exc}")
    _report(outcomes, json_output)


def request_options(f):
    """Content options shared by inscribe / resume / estimate."""
    options = [
        click.argument("files", nargs=-1, type=click.Path(exists=True, dir_okay=False)),
        click.option("--text", "-t", default=None, help="Inscribe this text instead of / besides FILES"),
        click.option("--content-type", "-c", default=None, help="MIME type (auto-detected if omitted)"),
        click.option("--recipient", "-r", required=True, help="Address receiving the inscriptions"),
        click.option("--repeat", "-n", default=1, type=click.IntRange(min=1), help="Inscribe each content N times"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def funding_options(f):
    """Funding options shared by every command that builds a commit."""
    options = [
        click.option("--sender", "-s", required=True, help="Funding address (P2WPKH or P2TR)"),
        click.option("--change-address", default=None, help="Change address (defaults to sender)"),
        click.option("--fee-rate", "-f", default=None, type=click.IntRange(min=1), help="Fee rate in sat/vByte"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def signing_options(f):
    options = [
        click.option("--privkey", "-k", default=None, envvar="BITCOIN_WIF_KEY", help="WIF key of the sender"),
        click.option("--internal-key", default=None, help="Reuse this WIF as the ephemeral internal key"),
        click.option("--dry-run", is_flag=True, help="Build and sign everything, broadcast nothing"),
        click.option("--no-wait", is_flag=True, help="Exit after broadcasting the commit"),
        click.option("--json-output", is_flag=True, help="Output raw JSON result"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


# ===========================================================================
# CLI group
# ===========================================================================

@click.group()
@click.version_option(version=__version__, prog_name="ordrun")
@click.option(
    "--network",
    type=click.Choice(["mainnet", "testnet", "signet", "regtest"]),
    default=None,
    envvar="BITCOIN_NETWORK",
    help="Bitcoin network (overrides BITCOIN_NETWORK env var).",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
def main(network: str | None, verbose: bool):
    """ordrun: Ordinals inscriptions via commit/reveal transactions."""
    if network:
        config.network = network
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# ---------------------------------------------------------------------------
# inscribe
# ---------------------------------------------------------------------------

@main.command()
@request_options
@funding_options
@signing_options
def inscribe(
    files, text, content_type, recipient, repeat, sender, change_address, fee_rate,
    privkey, internal_key, dry_run, no_wait, json_output,
):
    """
    Inscribe FILES (and/or --text) as Ordinals.

    One commit transaction funds every inscription; after it confirms, one
    reveal per inscription is broadcast.  All inscriptions of a run share
    one ephemeral internal key, printed before anything is broadcast.

    \b
    Examples:
      ordrun inscribe art.png --sender tb1q... --recipient tb1p... --privkey c...
      ordrun inscribe --text "hello world" -s tb1q... -r tb1q... -f 5 --dry-run
    """
    requests = _load_requests(files, text, content_type, recipient, repeat)
    cfg = _inscription_config(sender, change_address, fee_rate, requests)
    _inscribe(cfg, privkey, internal_key, dry_run, no_wait, json_output)


# ---------------------------------------------------------------------------
# resume
# ---------------------------------------------------------------------------

@main.command()
@request_options
@funding_options
@click.option("--internal-key", required=True, help="Ephemeral internal key WIF printed by inscribe")
@click.option("--commit-txid", required=True, help="Txid of the broadcast commit")
@click.option("--json-output", is_flag=True)
def resume(
    files, text, content_type, recipient, repeat, sender, change_address, fee_rate,
    internal_key, commit_txid, json_output,
):
    """
    Finish a batch whose commit transaction was already broadcast.

    Pass the same content, recipient, sender and fee rate as the original
    run, so the envelopes and commit values come out identical.
    """
    from bitcoinutils.keys import PrivateKey

    from ordrun.session import InscriptionSession

    requests = _load_requests(files, text, content_type, recipient, repeat)
    cfg = _inscription_config(sender, change_address, fee_rate, requests)
    try:
        PrivateKey.from_wif(internal_key)
    except Exception as exc:
        _fail(f"Invalid internal key: {exc}")
    try:
        session = InscriptionSession.resume(cfg, _indexer(), internal_key, commit_txid)
    except (InscriptionError, ValueError) as exc:
        _fail(f"Resume error: {exc}")

    _show_plans(session)
    _wait_and_reveal(session, json_output)


# ---------------------------------------------------------------------------
# brc20
# ---------------------------------------------------------------------------

@main.group()
def brc20():
    """Inscribe BRC-20 token operations."""


@brc20.command("deploy")
@click.argument("tick")
@click.option("--max", "max_supply", required=True, help="Maximum supply")
@click.option("--lim", default=None, help="Mint limit per inscription")
@click.option("--recipient", "-r", required=True, help="Address receiving the inscription")
@funding_options
@signing_options
def brc20_deploy(
    tick, max_supply, lim, recipient, sender, change_address, fee_rate,
    privkey, internal_key, dry_run, no_wait, json_output,
):
    """Deploy BRC-20 token TICK."""
    from ordrun import brc20 as ops

    try:
        request = ops.to_request(ops.deploy_payload(tick, max_supply, lim), recipient)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    cfg = _inscription_config(sender, change_address, fee_rate, [request])
    _inscribe(cfg, privkey, internal_key, dry_run, no_wait, json_output)


@brc20.command("mint")
@click.argument("tick")
@click.option("--amt", required=True, help="Amount per mint")
@click.option("--repeat", "-n", default=1, type=click.IntRange(min=1), help="Number of mints")
@click.option("--recipient", "-r", required=True, help="Address receiving the inscriptions")
@funding_options
@signing_options
def brc20_mint(
    tick, amt, repeat, recipient, sender, change_address, fee_rate,
    privkey, internal_key, dry_run, no_wait, json_output,
):
    """Mint BRC-20 token TICK, --repeat times in one commit."""
    from ordrun import brc20 as ops

    try:
        request = ops.to_request(ops.mint_payload(tick, amt), recipient)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    cfg = _inscription_config(sender, change_address, fee_rate, [request] * repeat)
    _inscribe(cfg, privkey, internal_key, dry_run, no_wait, json_output)


# ---------------------------------------------------------------------------
# estimate
# ---------------------------------------------------------------------------

@main.command()
@request_options
@funding_options
def estimate(files, text, content_type, recipient, repeat, sender, change_address, fee_rate):
    """Show reveal values and the commit fee for the sender's current UTXOs."""
    from ordrun.session import InscriptionSession

    requests = _load_requests(files, text, content_type, recipient, repeat)
    cfg = _inscription_config(sender, change_address, fee_rate, requests)
    try:
        session = InscriptionSession(cfg, _indexer())
        _show_plans(session)
        draft = session.build_commit()
    except (InscriptionError, ValueError) as exc:
        _fail(f"Estimate error: {exc}")

    table = Table(title="Commit", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("inputs", str(len(draft.tx.inputs)))
    table.add_row("input total (sat)", f"{draft.total_in:,}")
    table.add_row("reveal outputs (sat)", f"{sum(draft.reveal_values):,}")
    table.add_row("change (sat)", f"{draft.change_value:,}")
    table.add_row("fee (sat)", f"{draft.fee:,}")
    console.print(table)


# ---------------------------------------------------------------------------
# classify / utxos / tx-status
# ---------------------------------------------------------------------------

@main.command()
@click.argument("address")
def classify(address):
    """Show whether ADDRESS is P2WPKH, P2TR or unsupported."""
    from ordrun.bitcoin.transaction import classify as classify_address

    output_type = classify_address(address)
    style = "green" if output_type.supported else "red"
    console.print(f"[{style}]{output_type}[/{style}]")
    if not output_type.supported:
        sys.exit(1)


@main.command()
@click.argument("address")
@click.option("--json-output", is_flag=True)
def utxos(address, json_output):
    """List the spendable outputs of ADDRESS."""
    try:
        found = _indexer().get_utxos(address)
    except InscriptionError as exc:
        _fail(str(exc))

    if json_output:
        click.echo(json.dumps([u.__dict__ for u in found], indent=2))
        return
    if not found:
        console.print("[dim]No UTXOs found.[/dim]")
        return
    t = Table(title=f"UTXOs of {address}")
    t.add_column("txid:vout", style="dim")
    t.add_column("satoshis", justify="right")
    t.add_column("confirmed")
    for u in found:
        t.add_row(f"{u.txid[:16]}...:{u.vout}", f"{u.value:,}", "yes" if u.confirmed else "no")
    console.print(t)
    console.print(f"[bold]Total:[/bold] {sum(u.value for u in found):,} sat")


@main.command("tx-status")
@click.argument("txid")
@click.option("--json-output", is_flag=True)
def tx_status(txid, json_output):
    """Query the confirmation status of a transaction."""
    try:
        status = _indexer().get_transaction_status(txid)
    except InscriptionError as exc:
        _fail(str(exc))

    if json_output:
        click.echo(json.dumps(status.__dict__, indent=2))
    else:
        rprint(status)
