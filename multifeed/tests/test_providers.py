"""Unit tests for price providers."""

from typing import Callable
from unittest.mock import MagicMock

import httpx
import pytest

from multifeed.src.providers import (
    CoinbaseProvider,
    HttpJsonProvider,
    PriceProvider,
    ProviderConfigError,
    ProviderError,
    ProviderHTTPError,
    RoundContractProvider,
    StaticProvider,
    get_available_providers,
    get_provider,
    register_provider,
)
from multifeed.src.providers.http_json import extract_path
from multifeed.src.providers.timestamps import parse_timestamp


@pytest.fixture()
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], list]:
    """Route the shared client through an httpx.MockTransport.

    Returns a function installing a handler; the list it returns collects
    the requests made.
    """

    def _install(handler: Callable[[httpx.Request], httpx.Response]) -> list:
        requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        PriceProvider.set_shared_client(
            httpx.AsyncClient(transport=httpx.MockTransport(_record))
        )
        return requests

    yield _install
    PriceProvider.set_shared_client(None)


class TestRegistry:
    """Test provider registration."""

    def test_available(self) -> None:
        available = get_available_providers()
        for name in ["coinbase", "http_json", "round_contract", "static"]:
            assert name in available

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown provider 'nope'"):
            get_provider("nope")

    def test_bad_options(self) -> None:
        with pytest.raises(ProviderConfigError, match="Invalid options"):
            get_provider("static", bogus=1)

    def test_register_requires_name(self) -> None:
        class Nameless(PriceProvider):
            async def read(self, sender: str, key: str) -> tuple[int, int]:
                return 0, 0

        with pytest.raises(ValueError, match="must define a 'name'"):
            register_provider(Nameless)

    def test_api_key_flag(self) -> None:
        assert get_provider("coinbase", api_key="k").has_api_key
        assert not get_provider("coinbase").has_api_key
        assert get_provider("coinbase", api_key="k").describe() == "coinbase[key]"


class TestStaticProvider:
    """Test the in-memory provider."""

    @pytest.mark.asyncio
    async def test_read(self) -> None:
        provider = StaticProvider({("s", "k"): (5, 10)})
        assert await provider.read("s", "k") == (5, 10)

    @pytest.mark.asyncio
    async def test_entries(self) -> None:
        provider = StaticProvider(
            entries=[{"sender": "s", "key": "k", "price": "7", "timestamp": 11}]
        )
        assert await provider.read("s", "k") == (7, 11)

    def test_bad_entry(self) -> None:
        with pytest.raises(ProviderConfigError):
            StaticProvider(entries=[{"sender": "s", "key": "k"}])

    @pytest.mark.asyncio
    async def test_missing_feed(self) -> None:
        with pytest.raises(ProviderError, match="No observation"):
            await StaticProvider().read("s", "k")

    @pytest.mark.asyncio
    async def test_error_and_clear(self) -> None:
        provider = StaticProvider()
        provider.set_error("s", "k", ProviderError("boom"))
        with pytest.raises(ProviderError, match="boom"):
            await provider.read("s", "k")
        provider.clear("s", "k")
        with pytest.raises(ProviderError, match="No observation"):
            await provider.read("s", "k")


class TestTimestamps:
    """Test timestamp parsing."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1_700_000_000, 1_700_000_000),
            (1_700_000_000_123, 1_700_000_000),
            (1_700_000_000.9, 1_700_000_000),
            ("1700000000", 1_700_000_000),
            ("2023-11-14T22:13:20Z", 1_700_000_000),
            ("2023-11-14T22:13:20.123456Z", 1_700_000_000),
            ("2023-11-14T22:13:20", 1_700_000_000),
        ],
    )
    def test_valid(self, value: object, expected: int) -> None:
        assert parse_timestamp(value) == expected

    @pytest.mark.parametrize("value", ["yesterday", None, True, [1]])
    def test_invalid(self, value: object) -> None:
        with pytest.raises(ProviderError, match="Invalid timestamp"):
            parse_timestamp(value)


class TestHttpJsonProvider:
    """Test the generic JSON provider."""

    def test_extract_path(self) -> None:
        doc = {"result": [{"price": "1.5"}]}
        assert extract_path(doc, "result.0.price") == "1.5"
        with pytest.raises(ProviderError, match="not found"):
            extract_path(doc, "result.1.price")

    def test_requires_url_and_path(self) -> None:
        with pytest.raises(ProviderConfigError, match="url"):
            HttpJsonProvider(url="", price_path="p")
        with pytest.raises(ProviderConfigError, match="price_path"):
            HttpJsonProvider(url="https://x", price_path="")

    def test_api_key_header_requires_key(self) -> None:
        with pytest.raises(ProviderConfigError, match="API key"):
            HttpJsonProvider(url="https://x", price_path="p", api_key_header="X-Key")

    @pytest.mark.asyncio
    async def test_read(self, mock_http) -> None:
        requests = mock_http(
            lambda request: httpx.Response(
                200, json={"data": {"last": "42123.57", "ts": 1_700_000_000_000}}
            )
        )
        provider = HttpJsonProvider(
            url="https://api.example.com/{sender}/{key}",
            price_path="data.last",
            timestamp_path="data.ts",
            decimals=8,
            api_key_header="X-Api-Key",
            api_key="secret",
        )

        assert await provider.read("desk", "btc") == (4_212_357_000_000, 1_700_000_000)
        assert str(requests[0].url) == "https://api.example.com/desk/btc"
        assert requests[0].headers["X-Api-Key"] == "secret"

    @pytest.mark.asyncio
    async def test_http_error(self, mock_http) -> None:
        mock_http(lambda request: httpx.Response(503, text="maintenance"))
        provider = HttpJsonProvider(url="https://x/{key}", price_path="p")

        with pytest.raises(ProviderHTTPError, match="HTTP 503") as exc_info:
            await provider.read("", "btc")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_network_error(self, mock_http) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        mock_http(handler)
        provider = HttpJsonProvider(url="https://x/{key}", price_path="p")
        with pytest.raises(ProviderError, match="Request failed"):
            await provider.read("", "btc")

    @pytest.mark.asyncio
    async def test_timeout(self, mock_http) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        mock_http(handler)
        provider = HttpJsonProvider(url="https://x/{key}", price_path="p")
        with pytest.raises(ProviderError, match="Request timeout"):
            await provider.read("", "btc")

    @pytest.mark.asyncio
    async def test_malformed_price(self, mock_http) -> None:
        mock_http(lambda request: httpx.Response(200, json={"p": "n/a"}))
        provider = HttpJsonProvider(url="https://x/{key}", price_path="p")
        with pytest.raises(ProviderError, match="Malformed price"):
            await provider.read("", "btc")

    @pytest.mark.asyncio
    async def test_malformed_json(self, mock_http) -> None:
        mock_http(lambda request: httpx.Response(200, text="<html>"))
        provider = HttpJsonProvider(url="https://x/{key}", price_path="p")
        with pytest.raises(ProviderError, match="Malformed JSON"):
            await provider.read("", "btc")


class TestCoinbaseProvider:
    """Test the Coinbase ticker provider."""

    def test_product_id(self) -> None:
        assert CoinbaseProvider.product_id("btc/usd") == "BTC-USD"
        assert CoinbaseProvider.product_id("ETH-USD") == "ETH-USD"

    @pytest.mark.asyncio
    async def test_read(self, mock_http) -> None:
        requests = mock_http(
            lambda request: httpx.Response(
                200,
                json={"price": "101.5", "time": "2023-11-14T22:13:20.000000Z"},
            )
        )
        provider = CoinbaseProvider(decimals=6)

        assert await provider.read("", "btc/usd") == (101_500_000, 1_700_000_000)
        assert requests[0].url.path == "/products/BTC-USD/ticker"

    @pytest.mark.asyncio
    async def test_missing_price(self, mock_http) -> None:
        mock_http(lambda request: httpx.Response(200, json={"message": "NotFound"}))
        with pytest.raises(ProviderError, match="No price"):
            await CoinbaseProvider().read("", "XYZ-USD")

    @pytest.mark.asyncio
    async def test_missing_time(self, mock_http) -> None:
        mock_http(lambda request: httpx.Response(200, json={"price": "1"}))
        with pytest.raises(ProviderError, match="No time"):
            await CoinbaseProvider().read("", "BTC-USD")


class TestRoundContractProvider:
    """Test the on-chain round-style provider."""

    @staticmethod
    def _contract(round_data=None, error: Exception | None = None) -> MagicMock:
        contract = MagicMock()
        contract.address = "0x0000000000000000000000000000000000000001"
        call = contract.functions.latestRoundData.return_value.call
        if error is not None:
            call.side_effect = error
        else:
            call.return_value = round_data
        return contract

    def test_requires_address_and_rpc(self) -> None:
        with pytest.raises(ProviderConfigError, match="address"):
            RoundContractProvider(address="0x1")

    @pytest.mark.asyncio
    async def test_read(self) -> None:
        contract = self._contract((7, 4_200_000_000_000, 1_699_999_990, 1_700_000_000, 7))
        provider = RoundContractProvider(contract=contract)
        assert await provider.read("", "") == (4_200_000_000_000, 1_700_000_000)

    @pytest.mark.asyncio
    async def test_negative_answer_passed_through(self) -> None:
        """Negative answers are rejected later by the collector."""
        provider = RoundContractProvider(contract=self._contract((1, -5, 0, 1, 1)))
        assert await provider.read("", "") == (-5, 1)

    @pytest.mark.asyncio
    async def test_call_failure(self) -> None:
        provider = RoundContractProvider(
            contract=self._contract(error=RuntimeError("execution reverted"))
        )
        with pytest.raises(ProviderError, match="execution reverted"):
            await provider.read("", "")

    @pytest.mark.asyncio
    async def test_malformed_round(self) -> None:
        provider = RoundContractProvider(contract=self._contract((1, 2)))
        with pytest.raises(ProviderError, match="Malformed round data"):
            await provider.read("", "")
