"""trustgate CLI - offline fingerprinting and trust decisions.

JPL Rule #4: CLI methods < 60 lines.
"""

from __future__ import annotations

from functools import wraps
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from trustgate import __version__
from trustgate.core.config_loaders import load_config
from trustgate.core.exceptions import MalformedCertificateError, TrustError
from trustgate.core.logging import configure_logging, get_logger
from trustgate.core.network.context import TrustContext
from trustgate.core.network.fingerprint import Fingerprint
from trustgate.core.network.mtls_policy import VerificationPolicy
from trustgate.core.network.roots import split_pem_blocks

app = typer.Typer(
    name="trustgate",
    help="Inspect certificate fingerprints and test trust decisions offline.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)


def _handle_cli_error(e: TrustError, operation_name: str) -> None:
    """Print a TrustError with its code and fix suggestions."""
    err_console.print(f"[bold red]✗ {operation_name} failed:[/bold red] {escape(str(e))}")
    err_console.print(f"  [dim]{e.error_code}: {escape(e.why_it_happened)}[/dim]")
    for suggestion in e.how_to_fix:
        err_console.print(f"  - {suggestion}", markup=False)
    logger.debug(f"[{operation_name}] {type(e).__name__}", error=str(e))


def safe_cli_command(
    operation_name: str,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator turning TrustError into a formatted message and exit code 1."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except TrustError as e:
                _handle_cli_error(e, operation_name)
                raise typer.Exit(code=1)

        return wrapper

    return decorator


def _read_certificates(path: Path) -> List[bytes]:
    """Return the DER bytes of every certificate in a PEM or DER file."""
    try:
        data = path.read_bytes()
    except OSError as e:
        raise MalformedCertificateError(f"cannot read {path.name}: {e.strerror}") from e

    if b"-----BEGIN" not in data:
        return [data]

    ders: List[bytes] = []
    for index, block in enumerate(split_pem_blocks(data)):
        try:
            cert = x509.load_pem_x509_certificate(block)
        except ValueError as e:
            raise MalformedCertificateError(f"certificate #{index} is invalid: {e}") from e
        ders.append(cert.public_bytes(serialization.Encoding.DER))
    if not ders:
        raise MalformedCertificateError(f"{path.name} contains no certificate")
    return ders


def _describe(der: bytes) -> str:
    try:
        return x509.load_der_x509_certificate(der).subject.rfc4514_string()
    except ValueError:
        return "<unparseable>"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Certificate trust decisions for TLS connections."""
    if version:
        console.print(f"trustgate {__version__}")
        raise typer.Exit()

    configure_logging(level="DEBUG" if debug else "WARNING")

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command("fingerprint")
@safe_cli_command("fingerprint")
def fingerprint_command(
    file: Path = typer.Argument(..., help="PEM or DER certificate file"),
) -> None:
    """Print the SHA-256 fingerprint of each certificate in FILE."""
    table = Table(title=f"Fingerprints: {file.name}")
    table.add_column("#", style="dim")
    table.add_column("Subject", style="cyan")
    table.add_column("SHA-256", style="green")

    for index, der in enumerate(_read_certificates(file)):
        table.add_row(str(index), _describe(der), Fingerprint.of_der(der).colon_hex())

    console.print(table)


@app.command("verify")
@safe_cli_command("verify")
def verify_command(
    chain: Path = typer.Argument(..., help="PEM file with the peer chain, leaf first"),
    fingerprint: str = typer.Option(
        "", "--fingerprint", "-f", help="Accept only this SHA-256 fingerprint"
    ),
    ca: str = typer.Option("", "--ca", help="Custom CA file for this check"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Trust configuration YAML"
    ),
) -> None:
    """Decide whether CHAIN would be trusted; exit 1 if rejected."""
    context = TrustContext.from_config(load_config(config))
    settings = VerificationPolicy(context).apply(fingerprint=fingerprint, custom_ca=ca)
    verifier = settings.verify_peer_certificate
    if verifier is None:
        err_console.print(
            "[bold red]✗ No verifier installed:[/bold red] verification is bypassed "
            "for these settings, so no trust decision can be made"
        )
        raise typer.Exit(code=1)

    outcome = verifier.evaluate(_read_certificates(chain))
    mode = settings.mode.value if settings.mode else ""

    if outcome.accepted:
        console.print(
            f"[bold green]✓ Trusted[/bold green] ({outcome.kind.value}, mode={mode})"
        )
        if outcome.fingerprint is not None:
            console.print(f"  fingerprint: {outcome.fingerprint.colon_hex()}")
        return

    console.print(f"[bold red]✗ Rejected[/bold red] (mode={mode})")
    console.print(f"  {outcome.error}", markup=False)
    raise typer.Exit(code=1)


def cli_main() -> None:
    """Entry point for console_scripts."""
    app()


if __name__ == "__main__":
    cli_main()
