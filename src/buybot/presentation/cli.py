import asyncio, logging, os
from functools import partial

import typer
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from ..adapters.console_notifier import ConsoleNotifier
from ..adapters.rpc_httpx import HttpxRPC
from ..adapters.telegram_httpx import TelegramNotifier
from ..application.metadata import resolve_metadata
from ..application.poller import SwapPoller
from ..config import Settings, classifier_from_env
from ..domain.classify import compact_label
from ..errors import ConfigError
from .messages import MessageComposer

app = typer.Typer(help="buybot — Telegram alerts for buys on a V2 pair.")
console = Console()
logger = logging.getLogger("buybot")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

def _load(env_file: str | None, dry_run: bool) -> Settings:
    load_dotenv(env_file or find_dotenv(usecwd=True))
    try:
        return Settings.from_env(os.environ, dry_run=dry_run)
    except ConfigError as e:
        console.print(f"[red]config error:[/] {e}")
        raise typer.Exit(code=2)


@app.command()
def run(
    env_file: str = typer.Option(None, help="Path to a .env file (default: ./.env if present)"),
    dry_run: bool = typer.Option(False, help="Print messages instead of sending them to Telegram"),
    log_level: str = typer.Option("INFO", envvar="LOG_LEVEL"),
):
    """Resolve pair metadata, announce startup, then poll forever."""
    _setup_logging(log_level)
    settings = _load(env_file, dry_run)

    async def main():
        rpc = HttpxRPC(settings.rpc_url)
        if settings.dry_run:
            notifier = ConsoleNotifier(console)
        else:
            notifier = TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id)
        try:
            pair, tracked_lookup, counter_lookup = await resolve_metadata(
                rpc, settings.pair_address, settings.tracked_address,
            )
            tracked, counter = tracked_lookup.info, counter_lookup.info
            composer = MessageComposer(settings.explorer_url, settings.symbol_aliases)

            logger.info("RPC: %s", settings.rpc_url)
            logger.info("Pair: %s (tracked is token%d)", pair.pair_address, 0 if pair.tracked_is_first_slot else 1)
            logger.info("Tracked: %s (%s, decimals=%d)", tracked.address, tracked.symbol, tracked.decimals)
            logger.info("Counter: %s (%s, decimals=%d)", counter.address, counter.symbol, counter.decimals)

            poller = SwapPoller(
                rpc=rpc, notifier=notifier, pair=pair,
                tracked=tracked, counter=counter,
                classifier=settings.classifier,
                render=partial(composer.render_buy, pair=pair, tracked=tracked, counter=counter),
                poll_interval_s=settings.poll_interval_s,
                confirmations=settings.confirmations,
                resolve_buyer=settings.resolve_buyer,
            )
            await poller.start()
            await notifier.send(composer.render_startup(pair, tracked, counter, settings.classifier))
            await poller.run()
        finally:
            await rpc.aclose()
            await notifier.aclose()

    try:
        asyncio.run(main())
    except ConfigError as e:
        console.print(f"[red]config error:[/] {e}")
        raise typer.Exit(code=2)
    except KeyboardInterrupt:
        console.print("[yellow]stopped[/]")


@app.command()
def check(
    env_file: str = typer.Option(None, help="Path to a .env file"),
):
    """Resolve and print pair/token metadata without polling."""
    settings = _load(env_file, dry_run=True)

    async def main():
        rpc = HttpxRPC(settings.rpc_url)
        try:
            pair, t, c = await resolve_metadata(rpc, settings.pair_address, settings.tracked_address)
            head = await rpc.latest_block()
        finally:
            await rpc.aclose()
        def row(label, lk):
            note = f"  [yellow](defaulted: {', '.join(lk.errors)})[/]" if lk.defaulted else ""
            return f"{label}: {lk.info.address}  {lk.info.symbol}  decimals={lk.info.decimals}{note}"
        console.print(Panel(
            "\n".join([
                f"pair: {pair.pair_address}",
                f"tracked slot: token{0 if pair.tracked_is_first_slot else 1}",
                row("tracked", t),
                row("counter", c),
                f"head: {head:,}  confirmations: {settings.confirmations}",
            ]),
            title="buybot check",
        ))

    try:
        asyncio.run(main())
    except ConfigError as e:
        console.print(f"[red]config error:[/] {e}")
        raise typer.Exit(code=2)


@app.command()
def preview(amount: float):
    """Show tier, indicator and label for AMOUNT (human units) with the configured scale."""
    load_dotenv(find_dotenv(usecwd=True))
    try:
        classifier = classifier_from_env(os.environ)
    except ConfigError as e:
        console.print(f"[red]config error:[/] {e}")
        raise typer.Exit(code=2)
    console.print(f"tier: {classifier.tier(amount).badge}")
    console.print(f"indicator: {classifier.indicator(amount) or '-'}")
    console.print(f"label: {compact_label(amount) or '-'}")


if __name__ == "__main__":
    app()
