"""
Main entrypoint: serve the gasless relay API with uvicorn.

Env: API_HOST, API_PORT, FEE_PAYER_SECRET (or PRIVY_* managed wallet),
SOLANA_RPC_URL / SOLANA_NETWORK, RELAY_TOKENS, RATE_LIMIT, etc.

Equivalent: uvicorn gasless_relay.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

import uvicorn

from gasless_relay.relay_logging import get_logger

logger = get_logger("main")


def main() -> None:
    api_host = os.getenv("API_HOST", "0.0.0.0").strip()
    api_port = int(os.getenv("API_PORT", "8000").strip() or "8000")
    logger.info("main_api_starting", host=api_host, port=api_port)
    uvicorn.run(
        "gasless_relay.api_server.app:app",
        host=api_host,
        port=api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
