"""Command-line interface for the BankID client.

Starts orders, follows them to completion and cancels them. Animated QR
codes are printed as payload strings for an external renderer.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .certs import CertificateBundle
from .client import BankIDClient
from .config import ClientConfig, load_config
from .constants import (
    CALL_INITIATORS,
    CARD_READER_CLASSES,
    DEFAULT_TIMEOUT,
    POLL_INTERVAL_SECONDS,
    PRODUCTION_URL,
    RISK_LEVELS,
    TEST_PASSPHRASE,
    TEST_URL,
)
from .exceptions import BankIDClientError, BankIDError
from .log import LOG_FORMATS, setup_logging
from .models import (
    AuthRequest,
    OrderHandle,
    OrderRequest,
    OrderStatus,
    PhoneAuthRequest,
    PhoneSignRequest,
    Requirement,
    SignRequest,
    Status,
)

console = Console()

ClientFactory = Callable[[ClientConfig], BankIDClient]


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True)
    sys.exit(1)


def _build_config(options: dict[str, Any]) -> ClientConfig:
    """Build the client configuration from the global options."""
    if options["config"]:
        config = load_config(options["config"])
    else:
        config = ClientConfig(url=TEST_URL if options["test"] else PRODUCTION_URL)

    if options["url"]:
        config.url = options["url"]
    if options["timeout"] is not None:
        config.timeout = options["timeout"]

    if options["certificate"]:
        passphrase = options["passphrase"]
        if passphrase is None:
            passphrase = TEST_PASSPHRASE if config.is_test else ""
        config.certificate = CertificateBundle.from_paths(
            options["certificate"],
            passphrase=passphrase,
            ca_path=options["ca_certificate"],
            key_path=options["key"],
        )
    return config


def _run(ctx: click.Context, coro_fn: Callable[[BankIDClient], Any]) -> Any:
    """Create a client from the context and run ``coro_fn`` with it."""
    obj = ctx.obj
    factory: ClientFactory = obj.get("client_factory", BankIDClient)

    async def runner() -> Any:
        async with factory(_build_config(obj)) as client:
            return await coro_fn(client)

    try:
        return asyncio.run(runner())
    except BankIDError as e:
        if e.user_message:
            console.print(f"[yellow]{escape(e.user_message)}[/yellow]", soft_wrap=True)
        _fail(str(e))
    except BankIDClientError as e:
        _fail(str(e))


# =============================================================================
# Output
# =============================================================================


def _print_handle(handle: OrderHandle) -> None:
    console.print(f"Order started: [bold]{handle.order_ref}[/bold]")
    if handle.auto_start_token:
        console.print(f"Auto start token: {handle.auto_start_token}")


def _print_status(status: OrderStatus) -> None:
    colour = {"pending": "cyan", "complete": "green", "failed": "red"}[status.status.value]
    hint = f" ({status.hint_code})" if status.hint_code else ""
    console.print(f"[{colour}]{status.status.value}[/{colour}]{hint}")

    data = status.completion_data
    if data is None:
        return
    table = Table(title="Completion Data")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Personal number", data.user.personal_number)
    table.add_row("Name", data.user.name)
    table.add_row("Device IP", data.device.ip_address)
    table.add_row("Issue date", data.bank_id_issue_date)
    table.add_row("Step up", "yes" if data.step_up else "no")
    if data.risk:
        table.add_row("Risk", data.risk)
    console.print(table)


async def _follow(
    client: BankIDClient, request: OrderRequest, wait: bool, interval: float
) -> Optional[OrderStatus]:
    handle = await client.start(request)
    _print_handle(handle)
    qr = client.qr_codes(handle) if handle.supports_qr else None
    if qr is not None:
        console.print(f"QR: {qr.current()}", soft_wrap=True)
    if not wait:
        return None

    last = None
    async for status in client.poll(handle.order_ref, interval=interval):
        _print_status(status)
        if qr is not None and not status.is_terminal:
            console.print(f"QR: {qr.current()}", soft_wrap=True)
        last = status
    return last


def _start_order(ctx: click.Context, request: OrderRequest, wait: bool) -> None:
    interval = ctx.obj.get("poll_interval", POLL_INTERVAL_SECONDS)
    status = _run(ctx, lambda client: _follow(client, request, wait, interval))
    if status is not None and status.status is Status.FAILED:
        sys.exit(1)


# =============================================================================
# Options
# =============================================================================


def requirement_options(f: Callable) -> Callable:
    """Add the order requirement options to a command."""
    options = [
        click.option("--pin-code", is_flag=True, help="Require the security code"),
        click.option("--mrtd", is_flag=True, help="Require a travel document check"),
        click.option(
            "--card-reader",
            type=click.Choice(sorted(CARD_READER_CLASSES)),
            help="Required card reader class",
        ),
        click.option(
            "--policy", "policies", multiple=True, help="Allowed certificate policy OID"
        ),
        click.option(
            "--require-personal-number",
            help="Only this personal number may complete the order",
        ),
        click.option(
            "--risk", type=click.Choice(sorted(RISK_LEVELS)), help="Highest accepted risk"
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def text_options(text_required: bool) -> Callable[[Callable], Callable]:
    def decorator(f: Callable) -> Callable:
        f = click.option("--format", "text_format", help="Visible text format")(f)
        f = click.option("--hidden-text", help="Non-visible data for the RP")(f)
        f = click.option(
            "-t", "--text", required=text_required, help="Text shown to the user"
        )(f)
        return f

    return decorator


def _requirement(kwargs: dict[str, Any]) -> Optional[Requirement]:
    requirement = Requirement(
        pin_code=kwargs.pop("pin_code") or None,
        mrtd=kwargs.pop("mrtd") or None,
        card_reader=kwargs.pop("card_reader"),
        certificate_policies=list(kwargs.pop("policies")),
        personal_number=kwargs.pop("require_personal_number"),
        risk=kwargs.pop("risk"),
    )
    return requirement if requirement.to_dict() else None


# =============================================================================
# Commands
# =============================================================================


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--log-format",
    type=click.Choice(LOG_FORMATS),
    default="rich",
    help="Log output format",
)
@click.option(
    "-c", "--config",
    type=click.Path(exists=True, path_type=Path),
    help="YAML configuration file",
)
@click.option(
    "--certificate",
    type=click.Path(exists=True, path_type=Path),
    help="RP certificate (PKCS#12 or PEM)",
)
@click.option(
    "--key",
    type=click.Path(exists=True, path_type=Path),
    help="PEM private key, if not included in the certificate file",
)
@click.option("--passphrase", help="Certificate passphrase")
@click.option(
    "--ca-certificate",
    type=click.Path(exists=True, path_type=Path),
    help="PEM root certificate of the service",
)
@click.option("--test", is_flag=True, help="Use the test environment")
@click.option("--url", help="API base URL")
@click.option(
    "--timeout",
    type=float,
    default=None,
    help=f"Request timeout in seconds (default {DEFAULT_TIMEOUT})",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_format: str, **options: Any) -> None:
    """BankID relying-party client.

    Starts authentication and signing orders and follows them until the
    user has completed them.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(options)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose, log_format, console=Console(stderr=True))


@cli.command()
@click.option("--ip", "end_user_ip", required=True, help="End user IP address")
@text_options(text_required=False)
@requirement_options
@click.option("--return-url", help="URL the app returns to after completion")
@click.option("--return-risk", is_flag=True, help="Return the risk indication")
@click.option("--no-wait", is_flag=True, help="Do not poll until completion")
@click.pass_context
def auth(ctx: click.Context, **kwargs: Any) -> None:
    """Start an authentication order."""
    wait = not kwargs.pop("no_wait")
    request = AuthRequest(
        end_user_ip=kwargs["end_user_ip"],
        user_visible_data=kwargs["text"],
        user_non_visible_data=kwargs["hidden_text"],
        user_visible_data_format=kwargs["text_format"],
        requirement=_requirement(kwargs),
        return_url=kwargs["return_url"],
        return_risk=kwargs["return_risk"] or None,
    )
    _start_order(ctx, request, wait)


@cli.command()
@click.option("--ip", "end_user_ip", required=True, help="End user IP address")
@text_options(text_required=True)
@requirement_options
@click.option("--return-url", help="URL the app returns to after completion")
@click.option("--return-risk", is_flag=True, help="Return the risk indication")
@click.option("--no-wait", is_flag=True, help="Do not poll until completion")
@click.pass_context
def sign(ctx: click.Context, **kwargs: Any) -> None:
    """Start a signing order."""
    wait = not kwargs.pop("no_wait")
    request = SignRequest(
        end_user_ip=kwargs["end_user_ip"],
        user_visible_data=kwargs["text"],
        user_non_visible_data=kwargs["hidden_text"],
        user_visible_data_format=kwargs["text_format"],
        requirement=_requirement(kwargs),
        return_url=kwargs["return_url"],
        return_risk=kwargs["return_risk"] or None,
    )
    _start_order(ctx, request, wait)


def _phone_command(name: str, request_type: type, text_required: bool, help_text: str):
    @cli.command(name=name, help=help_text)
    @click.option("-p", "--personal-number", required=True, help="Personal number of the user")
    @click.option(
        "--initiator",
        "call_initiator",
        type=click.Choice(sorted(CALL_INITIATORS)),
        required=True,
        help="Who initiated the phone call",
    )
    @text_options(text_required=text_required)
    @requirement_options
    @click.option("--no-wait", is_flag=True, help="Do not poll until completion")
    @click.pass_context
    def command(ctx: click.Context, **kwargs: Any) -> None:
        wait = not kwargs.pop("no_wait")
        request = request_type(
            personal_number=kwargs["personal_number"],
            call_initiator=kwargs["call_initiator"],
            user_visible_data=kwargs["text"],
            user_non_visible_data=kwargs["hidden_text"],
            user_visible_data_format=kwargs["text_format"],
            requirement=_requirement(kwargs),
        )
        _start_order(ctx, request, wait)

    return command


phone_auth = _phone_command(
    "phone-auth", PhoneAuthRequest, False, "Start an authentication order over the phone."
)
phone_sign = _phone_command(
    "phone-sign", PhoneSignRequest, True, "Start a signing order over the phone."
)


@cli.command()
@click.argument("order_ref")
@click.pass_context
def collect(ctx: click.Context, order_ref: str) -> None:
    """Show the current status of an order."""
    status = _run(ctx, lambda client: client.collect(order_ref))
    _print_status(status)


@cli.command()
@click.argument("order_ref")
@click.pass_context
def cancel(ctx: click.Context, order_ref: str) -> None:
    """Cancel an outstanding order."""
    _run(ctx, lambda client: client.cancel(order_ref))
    console.print(f"[green]Cancelled[/green] {order_ref}")


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
