from __future__ import annotations

import asyncio
import logging

import typer

from futures_flip.exchange import BinanceFuturesClient
from futures_flip.logging_utils import configure_logging
from futures_flip.runtime import build_executor
from futures_flip.settings import Settings

app = typer.Typer(no_args_is_help=True, add_completion=False)
logger = logging.getLogger("futures_flip")


@app.command()
def show_config() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    logger.info("loaded_config")
    typer.echo(settings.redacted())


@app.command()
def health() -> None:
    """
    Ping the Binance futures API.
    """
    settings = Settings()
    configure_logging(settings.log_level)

    async def _run() -> None:
        client = BinanceFuturesClient(
            api_key=settings.binance_api_key,
            api_secret=settings.binance_api_secret,
            base_url=settings.binance_futures_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )
        try:
            await client.ping()
            typer.echo({"ok": True, "base_url": settings.binance_futures_base_url})
        finally:
            await client.aclose()

    asyncio.run(_run())


@app.command()
def execute(
    symbol: str = typer.Option(..., help="Futures symbol, e.g. BTCUSDT."),
    signal: str = typer.Option(..., help="BUY or SELL."),
) -> None:
    """
    Flatten, resize and open a position for one signal, then exit.
    """
    settings = Settings()
    configure_logging(settings.log_level)

    async def _run() -> None:
        executor = build_executor(settings)
        try:
            order = await executor.handle({"symbol": symbol, "signal": signal})
            typer.echo({"ok": True, "order": order})
        finally:
            await executor.aclose()

    asyncio.run(_run())


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
) -> None:
    """
    Serve the signal webhook (POST /api/webhook).
    """
    import uvicorn

    from futures_flip.api import create_app

    settings = Settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
