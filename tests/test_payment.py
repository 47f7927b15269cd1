"""
Tests for quoting, converting and sending payments.
"""

import asyncio
import json
import re
from decimal import Decimal

import pytest
import pytest_asyncio

from conftest import BOB, PATHFIND_URI, settle
from ilpwallet.client import WalletClient
from ilpwallet.core.events import PaymentEvent
from ilpwallet.core.exceptions import (
    ExecutionError,
    NoPathFoundError,
    QuoteError,
    ValidationError,
    WalletConnectionError,
)
from ilpwallet.core.types import ConnectionState, PaymentParams, PaymentState
from ilpwallet.payment import Payment
from ilpwallet.rates.cache import RateCache

PAYMENT_URL = re.compile(r"https://wallet\.example/payments/[0-9a-f-]{36}")


def hop_path(source_amount: str, destination_amount: str) -> list:
    """A two-hop path-finder response."""
    return [
        {
            "source_transfers": [{"debits": [{"account": "alice", "amount": source_amount}]}],
            "destination_transfers": [{"credits": [{"account": "hold", "amount": "41"}]}],
        },
        {
            "source_transfers": [{"debits": [{"account": "hold", "amount": "41"}]}],
            "destination_transfers": [
                {"credits": [{"account": "bob", "amount": destination_amount}]}
            ],
        },
    ]


def request_body(request) -> dict:
    return json.loads(request.content)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestQuote:
    """Tests for Payment.quote()."""

    @pytest.mark.asyncio
    async def test_quote_fills_source_amount(self, connected_client, httpx_mock):
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("42", "10"))
        payment = connected_client.payment({"destinationAccount": BOB, "destinationAmount": "10"})
        quotes = []
        payment.on(PaymentEvent.QUOTE, quotes.append)

        params = await payment.quote()

        assert params.source_amount == Decimal("42")
        assert params.destination_amount == Decimal("10")
        assert params.path == hop_path("42", "10")
        assert payment.state == PaymentState.QUOTED
        assert quotes == [params]

        request = httpx_mock.get_request()
        assert request_body(request) == {"destination": BOB, "destination_amount": "10"}
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_quote_fills_destination_amount(self, connected_client, httpx_mock):
        httpx_mock.add_response(
            method="POST",
            url=PATHFIND_URI,
            json={"source_amount": "5", "destination_amount": "4.8", "path": ["hop"]},
        )
        payment = connected_client.payment(PaymentParams(destination_account=BOB, source_amount=5))

        params = await payment.quote()

        assert params.destination_amount == Decimal("4.8")
        assert params.source_amount == Decimal("5")
        assert params.path == ["hop"]
        assert request_body(httpx_mock.get_request()) == {"destination": BOB, "source_amount": "5"}

    @pytest.mark.asyncio
    async def test_requote_updates_quoted_amount(self, connected_client, httpx_mock):
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("42", "10"))
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("43", "10"))
        payment = connected_client.payment({"destinationAccount": BOB, "destinationAmount": "10"})
        quotes = []
        payment.on(PaymentEvent.QUOTE, quotes.append)

        await payment.quote()
        params = await payment.quote()

        assert params.source_amount == Decimal("43")
        assert len(quotes) == 2
        second = httpx_mock.get_requests()[1]
        assert "source_amount" not in request_body(second)

    @pytest.mark.asyncio
    async def test_quote_without_amount_fails(self, connected_client):
        payment = connected_client.payment({"destinationAccount": BOB})

        with pytest.raises(ValidationError):
            await payment.quote()
        assert payment.state == PaymentState.CREATED

    @pytest.mark.asyncio
    async def test_empty_path_raises_no_path_found(self, connected_client, httpx_mock):
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=[])
        payment = connected_client.payment({"destinationAccount": BOB, "destinationAmount": "10"})

        with pytest.raises(NoPathFoundError) as exc_info:
            await payment.quote()

        assert exc_info.value.destination_account == BOB
        assert payment.quoted is False

    @pytest.mark.asyncio
    async def test_server_error_raises_quote_error(self, connected_client, httpx_mock):
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, status_code=500)
        payment = connected_client.payment({"destinationAccount": BOB, "destinationAmount": "10"})

        with pytest.raises(QuoteError) as exc_info:
            await payment.quote()

        assert exc_info.value.status_code == 500
        assert not isinstance(exc_info.value, NoPathFoundError)


class TestSend:
    """Tests for Payment.send()."""

    @pytest.mark.asyncio
    async def test_send_after_quote(self, connected_client, httpx_mock):
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("42", "10"))
        httpx_mock.add_response(method="PUT", url=PAYMENT_URL, json={"state": "completed"})
        payment = connected_client.payment(
            {"destinationAccount": BOB, "destinationAmount": "10", "message": "lunch"}
        )
        sent = []
        payment.on(PaymentEvent.SENT, sent.append)

        await payment.quote()
        result = await payment.send()

        assert result is payment
        assert payment.sent is True
        assert payment.result.data == {"state": "completed"}
        assert sent == [payment.result]
        body = request_body(httpx_mock.get_requests()[1])
        assert body["source_amount"] == "42"
        assert body["destination_amount"] == "10"
        assert body["message"] == "lunch"
        assert body["path"] == hop_path("42", "10")

    @pytest.mark.asyncio
    async def test_send_without_quote(self, connected_client, httpx_mock):
        httpx_mock.add_response(method="PUT", url=PAYMENT_URL, json={})
        payment = connected_client.payment({"destinationAccount": BOB, "sourceAmount": "3"})

        await payment.send()

        body = request_body(httpx_mock.get_request())
        assert body == {"destination_account": BOB, "source_amount": "3"}

    @pytest.mark.asyncio
    async def test_second_send_rejected(self, connected_client, httpx_mock):
        httpx_mock.add_response(method="PUT", url=PAYMENT_URL, json={})
        payment = connected_client.payment({"destinationAccount": BOB, "sourceAmount": "3"})
        await payment.send()

        with pytest.raises(ValidationError):
            await payment.send()
        with pytest.raises(ValidationError):
            await payment.quote()
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_rejected_payment_can_be_retried(self, connected_client, httpx_mock):
        httpx_mock.add_response(method="PUT", url=PAYMENT_URL, status_code=422, json={"id": "Invalid"})
        httpx_mock.add_response(method="PUT", url=PAYMENT_URL, json={})
        payment = connected_client.payment({"destinationAccount": BOB, "sourceAmount": "3"})

        with pytest.raises(ExecutionError) as exc_info:
            await payment.send()
        assert exc_info.value.status_code == 422
        assert payment.state == PaymentState.CREATED

        await payment.send()

        first, second = httpx_mock.get_requests()
        assert first.url != second.url
        assert payment.result.payment_id == second.url.path.rsplit("/", 1)[1]

    @pytest.mark.asyncio
    async def test_payment_from_client_is_bound(self, client):
        payment = client.payment({"destinationAccount": BOB, "sourceAmount": "1"})

        assert isinstance(payment, Payment)
        assert payment.state == PaymentState.CREATED
        assert payment.result is None


class TestConvertAmount:
    """Tests for WalletClient.convert_amount()."""

    @pytest_asyncio.fixture
    async def cached_client(self, config, resolver, channels):
        clock = FakeClock()
        client = WalletClient(
            config=config,
            resolver=resolver,
            channel_factory=channels,
            rate_cache=RateCache(clock=clock),
        )
        await client.connect()
        yield client, clock
        await client.close()

    @pytest.mark.asyncio
    async def test_repeat_conversion_served_from_cache(self, cached_client, httpx_mock):
        client, _ = cached_client
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("10.5", "10"))

        first = await client.convert_amount({"destinationAccount": BOB, "destinationAmount": "10"})
        second = await client.convert_amount({"destinationAccount": BOB, "destinationAmount": "10"})

        assert first == second == Decimal("10.5")
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_distant_amount_goes_to_path_finder(self, cached_client, httpx_mock):
        client, _ = cached_client
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("10.5", "10"))
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("520", "500"))

        await client.convert_amount({"destinationAccount": BOB, "destinationAmount": "10"})
        amount = await client.convert_amount({"destinationAccount": BOB, "destinationAmount": "500"})

        assert amount == Decimal("520")
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_expired_rate_is_refetched(self, cached_client, httpx_mock):
        client, clock = cached_client
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("10.5", "10"))
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("10.7", "10"))

        await client.convert_amount({"destinationAccount": BOB, "destinationAmount": "10"})
        clock.now += 61
        amount = await client.convert_amount({"destinationAccount": BOB, "destinationAmount": "10"})

        assert amount == Decimal("10.7")

    @pytest.mark.asyncio
    async def test_source_amount_conversion_is_not_cached(self, connected_client, httpx_mock):
        httpx_mock.add_response(
            method="POST", url=PATHFIND_URI, json={"source_amount": "5", "destination_amount": "4.8"}
        )
        httpx_mock.add_response(
            method="POST", url=PATHFIND_URI, json={"source_amount": "5", "destination_amount": "4.7"}
        )

        first = await connected_client.convert_amount({"destinationAccount": BOB, "sourceAmount": "5"})
        second = await connected_client.convert_amount({"destinationAccount": BOB, "sourceAmount": "5"})

        assert first == Decimal("4.8")
        assert second == Decimal("4.7")
        assert len(connected_client.rate_cache) == 0

    @pytest.mark.asyncio
    async def test_conversion_without_amount_fails(self, connected_client):
        with pytest.raises(ValidationError):
            await connected_client.convert_amount({"destinationAccount": BOB})

    @pytest.mark.asyncio
    async def test_non_finite_amount_rejected(self, connected_client, httpx_mock):
        connected_client.rate_cache.store(BOB, Decimal("10"), Decimal("12"))

        with pytest.raises(ValidationError):
            await connected_client.convert_amount({"destinationAccount": BOB, "destinationAmount": "NaN"})
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_never_connected_fails_fast(self, client, resolver):
        with pytest.raises(WalletConnectionError, match="call connect"):
            await asyncio.wait_for(
                client.convert_amount({"destinationAccount": BOB, "destinationAmount": "10"}),
                timeout=1,
            )

        resolver.resolve.assert_not_awaited()
        assert client.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_never_connected_quote_fails_fast(self, client):
        payment = client.payment({"destinationAccount": BOB, "destinationAmount": "10"})

        with pytest.raises(WalletConnectionError):
            await asyncio.wait_for(payment.quote(), timeout=1)
        assert payment.state == PaymentState.CREATED

    @pytest.mark.asyncio
    async def test_auto_connect_connects_before_quoting(self, config, resolver, channels, httpx_mock):
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("10.5", "10"))
        client = WalletClient(
            config=config.with_updates(auto_connect=True),
            resolver=resolver,
            channel_factory=channels,
        )
        try:
            amount = await asyncio.wait_for(
                client.convert_amount({"destinationAccount": BOB, "destinationAmount": "10"}),
                timeout=1,
            )

            assert amount == Decimal("10.5")
            assert client.is_connected()
            resolver.resolve.assert_awaited_once()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_waits_for_connect_in_flight(self, client, resolver, httpx_mock):
        httpx_mock.add_response(method="POST", url=PATHFIND_URI, json=hop_path("10.5", "10"))
        resolved = resolver.resolve.return_value
        release = asyncio.Event()

        async def slow_resolve(address):
            await release.wait()
            return resolved

        resolver.resolve.side_effect = slow_resolve
        connecting = asyncio.create_task(client.connect())
        await settle()
        converting = asyncio.create_task(
            client.convert_amount({"destinationAccount": BOB, "destinationAmount": "10"})
        )
        await settle()
        assert not converting.done()

        release.set()
        await connecting

        assert await asyncio.wait_for(converting, timeout=1) == Decimal("10.5")
