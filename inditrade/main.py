"""InditradeSim — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
serving the API, printing a single quote, and resetting the account.
"""

import logging

from fastapi import FastAPI

from inditrade.api.routers import router

app = FastAPI(title="InditradeSim Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("inditrade")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── Wiring ───────────────────────────────────────────────────────────────


def build_services(config):
    """Construct the ledger, market client and poller from *config*.

    Returns:
        ``(ledger, market, poller)``.
    """
    from inditrade.ledger.engine import LedgerEngine
    from inditrade.market.poller import QuotePoller
    from inditrade.market.relay_fetcher import RelayFetcher
    from inditrade.market.yahoo_client import YahooChartClient
    from inditrade.repos.account_repo import AccountRepo
    from inditrade.repos.db import init_db

    init_db(config.db_path)
    ledger = LedgerEngine.from_config(config, AccountRepo(config.db_path))
    fetcher = RelayFetcher.from_config(config)
    market = YahooChartClient.from_config(config, fetcher)
    poller = QuotePoller(
        fetch_quotes=market.get_quotes,
        symbols=lambda: ledger.account.watchlist,
        interval=config.poll_interval_seconds,
    )
    return ledger, market, poller


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio

    from inditrade.api.routers import configure_routers
    from inditrade.config import load_config

    parser = argparse.ArgumentParser(description="InditradeSim paper trading")
    parser.add_argument(
        "--mode",
        choices=["serve", "quote", "reset"],
        default="serve",
        help="What to run (default: serve)",
    )
    parser.add_argument("--symbol", help="Ticker for --mode quote, e.g. TCS")
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    ledger, market, poller = build_services(config)

    if args.mode == "reset":
        ledger.reset_account()
        return

    if args.mode == "quote":
        if not args.symbol:
            parser.error("--mode quote requires --symbol")
        quote = asyncio.run(market.get_quote(args.symbol))
        print(
            f"{quote.symbol} {quote.price:.2f} {quote.currency} "
            f"({quote.change:+.2f}, {quote.change_percent:+.2f}%) {quote.market_state}"
        )
        return

    configure_routers(ledger=ledger, market=market, poller=poller)
    asyncio.run(_serve(poller, config.api_port))


async def _serve(poller, port: int) -> None:
    """Run the API server with the watchlist poller alongside it."""
    import uvicorn

    uvi_config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    server = uvicorn.Server(uvi_config)

    poller.start()
    logger.info("API available at http://localhost:%d", port)
    try:
        await server.serve()
    finally:
        await poller.stop()
        logger.info("InditradeSim stopped.")


if __name__ == "__main__":
    _run_cli()
