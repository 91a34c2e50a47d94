"""
Tests for the on-chain quote lookups that fill the menu text.
"""
import pytest
from unittest.mock import patch, AsyncMock, MagicMock
import httpx

from koi_bot.errors import QuoteError
from koi_bot.models import ChainQuote
from koi_bot.on_chain import (
    ETHEREUM,
    POLYGON,
    clear_quote_cache,
    format_quote,
    get_on_chain_info,
    get_on_chain_info_start,
    get_quote,
)


def _rpc_response(result=None, status_code=200, error=None):
    response = MagicMock()
    response.status_code = status_code
    body = {"jsonrpc": "2.0", "id": 1}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    response.json.return_value = body
    return response


def _rpc_post(block="0x121eac0", gas="0x2cb417800"):
    """Answer eth_blockNumber / eth_gasPrice by method name."""
    async def post(url, json=None, timeout=None):
        if json["method"] == "eth_blockNumber":
            return _rpc_response(block)
        return _rpc_response(gas)
    return AsyncMock(side_effect=post)


@pytest.fixture(autouse=True)
def rpc_config():
    clear_quote_cache()
    with patch("koi_bot.on_chain.app_config") as mock_config:
        mock_config.ETH_RPC_URL = "https://eth.example"
        mock_config.POLYGON_RPC_URL = "https://polygon.example"
        mock_config.QUOTE_CACHE_TTL_SECONDS = 5
        yield mock_config
    clear_quote_cache()


@pytest.fixture
def mock_client():
    with patch('httpx.AsyncClient') as mock_client:
        mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_client.return_value)
        mock_client.return_value.__aexit__ = AsyncMock(return_value=False)
        mock_client.return_value.post = _rpc_post()
        yield mock_client


class TestGetQuote:
    """Test fetching a quote for one network."""

    @pytest.mark.asyncio
    async def test_parses_hex_results(self, mock_client):
        quote = await get_quote(ETHEREUM)

        assert quote.name == "Ethereum"
        assert quote.block_height == 19000000
        assert quote.gas_price == 12_000_000_000
        assert quote.gas_price_gwei == 12

    @pytest.mark.asyncio
    async def test_uses_network_rpc_url(self, mock_client):
        await get_quote(POLYGON)

        urls = {c.args[0] for c in mock_client.return_value.post.await_args_list}
        assert urls == {"https://polygon.example"}

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self, mock_client):
        first = await get_quote(ETHEREUM)
        second = await get_quote(ETHEREUM)

        assert first == second
        assert mock_client.return_value.post.await_count == 2

    @pytest.mark.asyncio
    async def test_cache_expires(self, mock_client, rpc_config):
        rpc_config.QUOTE_CACHE_TTL_SECONDS = 0

        await get_quote(ETHEREUM)
        await get_quote(ETHEREUM)

        assert mock_client.return_value.post.await_count == 4

    @pytest.mark.asyncio
    async def test_unsupported_network(self, mock_client):
        with pytest.raises(QuoteError):
            await get_quote(56)
        mock_client.return_value.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_rpc_url(self, mock_client, rpc_config):
        rpc_config.ETH_RPC_URL = None

        with pytest.raises(QuoteError, match="ETH_RPC_URL"):
            await get_quote(ETHEREUM)

    @pytest.mark.asyncio
    async def test_http_status_error(self, mock_client):
        mock_client.return_value.post = AsyncMock(return_value=_rpc_response(status_code=502))

        with pytest.raises(QuoteError):
            await get_quote(ETHEREUM)

    @pytest.mark.asyncio
    async def test_rpc_error_body(self, mock_client):
        mock_client.return_value.post = AsyncMock(
            return_value=_rpc_response(error={"code": -32000, "message": "header not found"})
        )

        with pytest.raises(QuoteError, match="header not found"):
            await get_quote(ETHEREUM)

    @pytest.mark.asyncio
    async def test_unreadable_result(self, mock_client):
        mock_client.return_value.post = AsyncMock(return_value=_rpc_response("latest"))

        with pytest.raises(QuoteError):
            await get_quote(ETHEREUM)

    @pytest.mark.asyncio
    async def test_timeout(self, mock_client):
        mock_client.return_value.post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))

        with pytest.raises(QuoteError, match="Timeout"):
            await get_quote(ETHEREUM)

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_client):
        mock_client.return_value.post = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(QuoteError):
            await get_quote(ETHEREUM)

    @pytest.mark.asyncio
    async def test_failure_not_cached(self, mock_client):
        mock_client.return_value.post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))
        with pytest.raises(QuoteError):
            await get_quote(ETHEREUM)

        mock_client.return_value.post = _rpc_post()
        quote = await get_quote(ETHEREUM)
        assert quote.block_height == 19000000


class TestMenuText:
    """Test the rendered menu body."""

    def test_format_quote(self):
        quote = ChainQuote(network_id=1, name="Ethereum", block_height=19000000, gas_price=12_400_000_000)
        assert format_quote(quote) == (
            "<b>Ethereum</b>\n<b>Gas:</b> 12 Gwei  ═  <b>Block:</b> 19000000"
        )

    @pytest.mark.asyncio
    async def test_on_chain_info_lists_both_networks(self, mock_client):
        text = await get_on_chain_info()

        sections = text.split("\n\n")
        assert len(sections) == 2
        assert sections[0].startswith("<b>Ethereum</b>")
        assert sections[1].startswith("<b>Polygon</b>")

    @pytest.mark.asyncio
    async def test_start_text_has_welcome(self, mock_client):
        text = await get_on_chain_info_start()

        assert "Welcome" in text
        assert text.endswith(await get_on_chain_info())

    @pytest.mark.asyncio
    async def test_one_failing_network_fails_the_menu(self, mock_client, rpc_config):
        rpc_config.POLYGON_RPC_URL = ""

        with pytest.raises(QuoteError):
            await get_on_chain_info()
