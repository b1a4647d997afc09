"""Command-line interface for fedrp operators.

Example:
    >>> # From terminal:
    >>> # fedrp --version
    >>> # fedrp check-entity-id https://op.example.com
    >>> # fedrp discover https://op.example.com --timeout 5
    >>> # fedrp credentials list --file .op-credentials.json
    >>> # fedrp credentials show https://op.example.com
    >>> # fedrp credentials clear https://op.example.com
    >>> # fedrp credentials clear --all
    >>> # fedrp credentials migrate old-credentials.json --op https://op.example.com
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Optional

import typer

from fedrp import __version__
from fedrp.config import (
    DEFAULT_CREDENTIALS_FILE,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_RP_ENTITY_ID,
    ENV_CREDENTIALS_FILE,
    ENV_RP_ENTITY_ID,
)
from fedrp.credentials import MultiOPCredentialStore
from fedrp.discovery import DiscoveryService
from fedrp.entity_id import validate_entity_id
from fedrp.errors import CredentialsStorageError, DiscoveryError
from fedrp.observability import REDACTED_PLACEHOLDER, configure_logging

app = typer.Typer(help="Federation RP trust layer CLI.")

credentials_app = typer.Typer(help="Per-OP client credentials (list, show, clear, migrate).")
app.add_typer(credentials_app, name="credentials")

FILE_OPTION = typer.Option(
    DEFAULT_CREDENTIALS_FILE,
    "--file",
    "-f",
    envvar=ENV_CREDENTIALS_FILE,
    help="Path of the multi-OP credentials file.",
)
RP_ENTITY_ID_OPTION = typer.Option(
    DEFAULT_RP_ENTITY_ID,
    "--rp-entity-id",
    envvar=ENV_RP_ENTITY_ID,
    help="Entity id of this RP (owner of the credentials file).",
)


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show fedrp version and exit.",
    callback=_version_callback,
    is_eager=True,
)


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """fedrp CLI entrypoint."""
    configure_logging(log_level="DEBUG" if verbose else "WARNING", force=True)


@app.command("check-entity-id")
def check_entity_id(
    value: Annotated[str, typer.Argument(help="Entity identifier URL to check.")],
) -> None:
    """Check that a value is a usable entity identifier."""
    result = validate_entity_id(value)
    if result.is_valid:
        typer.echo(f"Valid entity id: {value}")
        return
    for error in result.errors:
        typer.echo(f"{error.code}: {error.message}", err=True)
    raise typer.Exit(1)


def _discovery_service(timeout: float) -> DiscoveryService:
    return DiscoveryService(timeout=timeout)


@app.command("discover")
def discover(
    op_entity_id: Annotated[str, typer.Argument(help="OP entity identifier (base URL).")],
    timeout: Annotated[
        float,
        typer.Option("--timeout", "-t", min=0.1, help="HTTP timeout in seconds."),
    ] = DEFAULT_DISCOVERY_TIMEOUT,
) -> None:
    """Fetch an OP's discovery document and print it as JSON."""
    service = _discovery_service(timeout)
    try:
        metadata = asyncio.run(service.discover(op_entity_id))
    except DiscoveryError as exc:
        typer.echo(f"{exc.code}: {exc.message}", err=True)
        raise typer.Exit(1) from exc
    typer.echo(json.dumps(metadata.to_dict(), indent=2))


def _open_store(file: Path, rp_entity_id: str) -> MultiOPCredentialStore:
    return MultiOPCredentialStore(rp_entity_id, file)


@credentials_app.command("list")
def credentials_list(
    file: Path = FILE_OPTION,
    rp_entity_id: str = RP_ENTITY_ID_OPTION,
) -> None:
    """List the OPs this RP holds client credentials for."""
    store = _open_store(file, rp_entity_id)
    ops = store.get_registered_ops()
    if not ops:
        typer.echo(f"No credentials stored for {rp_entity_id}")
        return
    for op_entity_id in ops:
        record = store.get_credentials(op_entity_id)
        registered = record.registered_at.isoformat() if record else "?"
        typer.echo(f"{op_entity_id}\tregistered {registered}")


@credentials_app.command("show")
def credentials_show(
    op_entity_id: Annotated[str, typer.Argument(help="OP entity identifier.")],
    file: Path = FILE_OPTION,
    rp_entity_id: str = RP_ENTITY_ID_OPTION,
    show_secret: bool = typer.Option(False, "--show-secret", help="Print the client secret."),
) -> None:
    """Show the stored credentials for one OP."""
    record = _open_store(file, rp_entity_id).get_credentials(op_entity_id)
    if record is None:
        typer.echo(f"No credentials for {op_entity_id}", err=True)
        raise typer.Exit(1)
    payload = {
        "opEntityId": record.op_entity_id,
        "rpEntityId": record.rp_entity_id,
        "registeredAt": record.registered_at.isoformat(),
        "clientSecret": record.client_secret if show_secret else REDACTED_PLACEHOLDER,
    }
    typer.echo(json.dumps(payload, indent=2))


@credentials_app.command("clear")
def credentials_clear(
    op_entity_id: Annotated[
        Optional[str], typer.Argument(help="OP whose credentials to remove.")
    ] = None,
    all_ops: bool = typer.Option(False, "--all", help="Remove the credentials of every OP."),
    file: Path = FILE_OPTION,
    rp_entity_id: str = RP_ENTITY_ID_OPTION,
) -> None:
    """Remove stored credentials for one OP, or for all of them with --all."""
    if op_entity_id is None and not all_ops:
        raise typer.BadParameter("Give an OP entity id or --all.")
    if op_entity_id is not None and all_ops:
        raise typer.BadParameter("Give either an OP entity id or --all, not both.")
    store = _open_store(file, rp_entity_id)
    try:
        if all_ops:
            count = store.clear_all()
            typer.echo(f"Cleared credentials for {count} OP(s)")
        elif store.clear_credentials(op_entity_id or ""):
            typer.echo(f"Cleared credentials for {op_entity_id}")
        else:
            typer.echo(f"No credentials for {op_entity_id}")
    except CredentialsStorageError as exc:
        typer.echo(f"{exc.code}: {exc.message}", err=True)
        raise typer.Exit(1) from exc


@credentials_app.command("migrate")
def credentials_migrate(
    legacy_file: Annotated[Path, typer.Argument(help="Legacy single-OP credentials file.")],
    op_entity_id: str = typer.Option(..., "--op", help="OP the legacy secret belongs to."),
    file: Path = FILE_OPTION,
    rp_entity_id: str = RP_ENTITY_ID_OPTION,
) -> None:
    """Import a legacy single-OP credentials file."""
    check = validate_entity_id(op_entity_id)
    if not check.is_valid:
        raise typer.BadParameter(check.errors[0].message, param_hint="--op")
    store = _open_store(file, rp_entity_id)
    try:
        migrated = store.migrate_from_old_format(legacy_file, op_entity_id)
    except CredentialsStorageError as exc:
        typer.echo(f"{exc.code}: {exc.message}", err=True)
        raise typer.Exit(1) from exc
    if migrated:
        typer.echo(f"Migrated legacy credentials to {op_entity_id}")
    else:
        typer.echo("Nothing to migrate")


def main() -> None:
    """Run the fedrp CLI."""
    app()


if __name__ == "__main__":
    main()
