"""
Block height and gas price lookups over JSON-RPC, rendered into the menu text.
"""
import asyncio
import logging
import time
from typing import Dict, Iterable, Tuple

import httpx

from .config import config as app_config
from .errors import QuoteError
from .models import ChainQuote

logger = logging.getLogger(__name__)

ETHEREUM = 1
POLYGON = 137

# network id -> (display name, config attribute holding the RPC url)
NETWORKS: Dict[int, Tuple[str, str]] = {
    ETHEREUM: ("Ethereum", "ETH_RPC_URL"),
    POLYGON: ("Polygon", "POLYGON_RPC_URL"),
}

MENU_NETWORKS = (ETHEREUM, POLYGON)

# Simple in-memory cache: network id -> (quote, timestamp)
_quote_cache: Dict[int, Tuple[ChainQuote, float]] = {}


def clear_quote_cache():
    _quote_cache.clear()


async def _rpc_call(client: httpx.AsyncClient, url: str, method: str) -> int:
    response = await client.post(
        url,
        json={"jsonrpc": "2.0", "id": 1, "method": method, "params": []},
        timeout=10.0,
    )
    if response.status_code != 200:
        raise QuoteError(f"{method} returned HTTP {response.status_code}")

    data = response.json()
    if "error" in data:
        raise QuoteError(f"{method} failed: {data['error']}")
    try:
        return int(data["result"], 16)
    except (KeyError, TypeError, ValueError) as e:
        raise QuoteError(f"{method} returned an unreadable result: {data!r}") from e


async def get_quote(network_id: int) -> ChainQuote:
    """
    Get the latest block height and gas price for a network.

    Args:
        network_id: EVM chain id (1 = Ethereum, 137 = Polygon)

    Returns:
        ChainQuote with the gas price in wei

    Raises:
        QuoteError: unsupported network, missing RPC url, or RPC failure
    """
    if network_id not in NETWORKS:
        raise QuoteError(f"Unsupported chain id: {network_id}")

    cached = _quote_cache.get(network_id)
    if cached and time.time() - cached[1] < app_config.QUOTE_CACHE_TTL_SECONDS:
        return cached[0]

    name, url_setting = NETWORKS[network_id]
    rpc_url = getattr(app_config, url_setting)
    if not rpc_url:
        raise QuoteError(f"{url_setting} is not configured")

    try:
        async with httpx.AsyncClient() as client:
            block_height = await _rpc_call(client, rpc_url, "eth_blockNumber")
            gas_price = await _rpc_call(client, rpc_url, "eth_gasPrice")
    except httpx.TimeoutException as e:
        logger.warning(f"Timeout querying {name} RPC")
        raise QuoteError(f"Timeout querying {name}") from e
    except httpx.HTTPError as e:
        logger.error(f"Error querying {name} RPC: {e}")
        raise QuoteError(f"Error querying {name}: {e}") from e

    quote = ChainQuote(
        network_id=network_id,
        name=name,
        block_height=block_height,
        gas_price=gas_price,
    )
    _quote_cache[network_id] = (quote, time.time())
    return quote


def format_quote(quote: ChainQuote) -> str:
    return (
        f"<b>{quote.name}</b>\n"
        f"<b>Gas:</b> {quote.gas_price_gwei} Gwei  ═  <b>Block:</b> {quote.block_height}"
    )


async def get_on_chain_info(networks: Iterable[int] = MENU_NETWORKS) -> str:
    """Menu body: one gas/block section per network."""
    quotes = await asyncio.gather(*(get_quote(network_id) for network_id in networks))
    return "\n\n".join(format_quote(quote) for quote in quotes)


async def get_on_chain_info_start() -> str:
    info = await get_on_chain_info()
    return (
        "👋 <b>Welcome to Koi Bot!</b>\n\n"
        "Trade tokens straight from this chat. Pick an action below.\n\n"
        f"{info}"
    )
