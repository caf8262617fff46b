"""
Orbiter Adapter Tests
=======================

HTTP behaviour and analysis of the Orbiter Finance client:
- Address validation before any network call
- Retry with linear backoff on transient failures
- Error classification (timeout, network, rate limit, 5xx, 4xx, bad body)
- Read-through cache per address
- Summary, distribution and activity-pattern derivation

Run: python -m pytest backend/tests/test_orbiter_adapter.py -v --tb=short
"""

import httpx
import pytest

from data_sources.orbiter import OrbiterClient
from services.bridge_transform import parse_orbiter_transactions
from services.errors import AnalysisError

from conftest import ADDRESS, DAY_MS, NOW_MS, OTHER_ADDRESS, Upstream

HISTORY = [
    {
        "id": "a1", "hash": "0xaa", "fromChain": 1, "toChain": 42161,
        "fromToken": "ETH", "toToken": "ETH", "fromAmount": "1000.50", "toAmount": "999.00",
        "timestamp": NOW_MS - 10 * DAY_MS, "status": "completed", "fee": "1.25",
    },
    {
        "id": "a2", "hash": "0xbb", "fromChain": 42161, "toChain": 10,
        "fromToken": "USDC", "toToken": "USDC", "fromAmount": "2000", "toAmount": "1998",
        "timestamp": NOW_MS - 5 * DAY_MS, "status": "completed", "fee": "0.75",
    },
    {
        "id": "a3", "hash": "0xcc", "fromChain": 10, "toChain": 1,
        "fromToken": "USDC", "toToken": "USDC", "fromAmount": "500", "toAmount": "499",
        "timestamp": NOW_MS - 40 * DAY_MS, "status": "completed", "fee": "0.50",
    },
    {
        "id": "a4", "hash": "0xdd", "fromChain": 1, "toChain": 324,
        "fromToken": "ETH", "fromAmount": "99999", "timestamp": NOW_MS - DAY_MS,
        "status": "failed", "fee": "0",
    },
]


def make_client(upstream, clock, sleep, store, metrics, **kwargs) -> OrbiterClient:
    return OrbiterClient(
        base_url="https://orbiter.test",
        transport=httpx.MockTransport(upstream),
        store=store,
        metrics=metrics,
        clock=clock,
        sleep=sleep,
        max_retries=3,
        retry_delay=1.0,
        **kwargs,
    )


# =============================================================================
# TEST: ADDRESS VALIDATION
# =============================================================================

class TestAddressValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", ["not-an-address", "0x123", "", None, "742d35Cc6634C0532925a3b844Bc454e4438f44e"])
    async def test_invalid_address_never_hits_network(self, address, clock, sleep, store, metrics):
        upstream = Upstream(HISTORY)
        client = make_client(upstream, clock, sleep, store, metrics)

        with pytest.raises(AnalysisError) as exc:
            await client.fetch(address)

        assert exc.value.code == "INVALID_ADDRESS"
        assert exc.value.retryable is False
        assert upstream.calls == 0, "❌ No request may be sent for a malformed address"
        assert client.fetch_count == 0


# =============================================================================
# TEST: RETRIES AND CLASSIFICATION
# =============================================================================

class TestRetries:

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, clock, sleep, store, metrics):
        upstream = Upstream(httpx.Response(503), httpx.Response(502), HISTORY)
        client = make_client(upstream, clock, sleep, store, metrics)

        result = await client.fetch(ADDRESS)

        assert result.total_transactions == 3
        assert upstream.calls == 3
        assert sleep.delays == [1.0, 2.0], "❌ Backoff must be linear in the attempt number"

        stats = metrics.get_service_stats("orbiter")
        assert stats["success_count"] == 1
        assert stats["error_count"] == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, clock, sleep, store, metrics):
        upstream = Upstream(httpx.Response(500))
        client = make_client(upstream, clock, sleep, store, metrics)

        with pytest.raises(AnalysisError) as exc:
            await client.fetch(ADDRESS)

        assert exc.value.code == "ORBITER_UPSTREAM_ERROR"
        assert exc.value.retryable is True
        assert exc.value.service == "orbiter"
        assert upstream.calls == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self, clock, sleep, store, metrics):
        upstream = Upstream(httpx.ReadTimeout("read timed out"))
        client = make_client(upstream, clock, sleep, store, metrics)

        with pytest.raises(AnalysisError) as exc:
            await client.fetch(ADDRESS)

        assert exc.value.code == "ORBITER_TIMEOUT"
        assert exc.value.retryable is True
        assert upstream.calls == 3
        assert metrics.get_service_stats("orbiter")["timeout_count"] == 3

    @pytest.mark.asyncio
    async def test_network_error(self, clock, sleep, store, metrics):
        upstream = Upstream(httpx.ConnectError("connection refused"))
        client = make_client(upstream, clock, sleep, store, metrics)

        with pytest.raises(AnalysisError) as exc:
            await client.fetch(ADDRESS)

        assert exc.value.code == "ORBITER_NETWORK_ERROR"
        assert exc.value.retryable is True

    @pytest.mark.asyncio
    async def test_rate_limited(self, clock, sleep, store, metrics):
        upstream = Upstream(httpx.Response(429))
        client = make_client(upstream, clock, sleep, store, metrics)

        with pytest.raises(AnalysisError) as exc:
            await client.fetch(ADDRESS)

        assert exc.value.code == "ORBITER_RATE_LIMITED"
        assert exc.value.retryable is True
        assert metrics.get_service_stats("orbiter")["rate_limit_count"] == 3

    @pytest.mark.asyncio
    async def test_unsupported_address_is_not_retried(self, clock, sleep, store, metrics):
        upstream = Upstream(httpx.Response(404, json={"error": "unknown address"}))
        client = make_client(upstream, clock, sleep, store, metrics)

        with pytest.raises(AnalysisError) as exc:
            await client.fetch(ADDRESS)

        assert exc.value.code == "ORBITER_ADDRESS_UNSUPPORTED"
        assert exc.value.retryable is False
        assert upstream.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_other_client_error(self, clock, sleep, store, metrics):
        upstream = Upstream(httpx.Response(403))
        client = make_client(upstream, clock, sleep, store, metrics)

        with pytest.raises(AnalysisError) as exc:
            await client.fetch(ADDRESS)

        assert exc.value.code == "ORBITER_API_ERROR"
        assert upstream.calls == 1

    @pytest.mark.asyncio
    async def test_non_json_body(self, clock, sleep, store, metrics):
        upstream = Upstream(httpx.Response(200, text="<html>maintenance</html>"))
        client = make_client(upstream, clock, sleep, store, metrics)

        with pytest.raises(AnalysisError) as exc:
            await client.fetch(ADDRESS)

        assert exc.value.code == "ORBITER_MALFORMED_RESPONSE"
        assert exc.value.retryable is False
        assert upstream.calls == 1


# =============================================================================
# TEST: CACHE
# =============================================================================

class TestCache:

    @pytest.mark.asyncio
    async def test_second_fetch_is_served_from_cache(self, clock, sleep, store, metrics):
        upstream = Upstream(HISTORY)
        client = make_client(upstream, clock, sleep, store, metrics)

        first = await client.fetch(ADDRESS)
        second = await client.fetch(ADDRESS)

        assert upstream.calls == 1
        assert first.model_dump(by_alias=True) == second.model_dump(by_alias=True)
        assert client.fetch_count == 2

    @pytest.mark.asyncio
    async def test_cache_is_keyed_by_address(self, clock, sleep, store, metrics):
        upstream = Upstream(HISTORY)
        client = make_client(upstream, clock, sleep, store, metrics)

        await client.fetch(ADDRESS)
        await client.fetch(OTHER_ADDRESS)
        await client.fetch(ADDRESS.lower())

        assert upstream.calls == 2

    @pytest.mark.asyncio
    async def test_cache_expires(self, clock, sleep, store, metrics):
        upstream = Upstream(HISTORY)
        client = make_client(upstream, clock, sleep, store, metrics, cache_ttl=300)

        await client.fetch(ADDRESS)
        clock.advance(301)
        await client.fetch(ADDRESS)

        assert upstream.calls == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, clock, sleep, store, metrics):
        upstream = Upstream(httpx.Response(404), HISTORY)
        client = make_client(upstream, clock, sleep, store, metrics)

        with pytest.raises(AnalysisError):
            await client.fetch(ADDRESS)
        result = await client.fetch(ADDRESS)

        assert result.total_transactions == 3


# =============================================================================
# TEST: ANALYSIS
# =============================================================================

class TestAnalysis:

    @pytest.mark.asyncio
    async def test_request_shape(self, clock, sleep, store, metrics):
        upstream = Upstream({"data": HISTORY})
        client = make_client(upstream, clock, sleep, store, metrics)

        await client.fetch(ADDRESS)

        request = upstream.requests[0]
        assert request.url.path == "/bridge/history"
        assert request.url.params["address"] == ADDRESS
        assert request.url.params["limit"] == "1000"
        assert request.url.params["offset"] == "0"

    @pytest.mark.asyncio
    async def test_summary(self, clock, sleep, store, metrics):
        client = make_client(Upstream(HISTORY), clock, sleep, store, metrics)

        result = await client.fetch(ADDRESS)

        assert result.address == ADDRESS
        assert result.total_transactions == 3, "❌ Failed transactions must be excluded"
        assert result.total_volume == "3500.50"
        assert result.total_fees == "2.50"
        assert result.unique_chains == 3
        assert result.unique_tokens == 2
        assert result.first_transaction == NOW_MS - 40 * DAY_MS
        assert result.last_transaction == NOW_MS - 5 * DAY_MS
        assert result.average_transaction_size == "1166.83"
        assert result.eligibility_score == 35
        assert result.tier == "none"
        assert result.percentile_rank == 42

    @pytest.mark.asyncio
    async def test_huge_amounts_keep_every_digit(self, clock, sleep, store, metrics):
        history = [
            {**HISTORY[0], "fromAmount": "999999999999999999999999999999.995"},
            {**HISTORY[1], "fromAmount": "0.01"},
        ]
        client = make_client(Upstream(history), clock, sleep, store, metrics)

        result = await client.fetch(ADDRESS)

        assert result.total_volume == "1000000000000000000000000000000.01"
        assert result.chain_distribution["ethereum"].volume == "1000000000000000000000000000000.00"
        assert result.chain_distribution["arbitrum"].percentage == 0
        assert result.tier == "none"

    @pytest.mark.asyncio
    async def test_distributions(self, clock, sleep, store, metrics):
        client = make_client(Upstream(HISTORY), clock, sleep, store, metrics)

        result = await client.fetch(ADDRESS)

        chains = result.chain_distribution
        assert set(chains) == {"ethereum", "arbitrum", "optimism"}
        assert chains["arbitrum"].percentage == 57
        assert chains["ethereum"].volume == "1000.50"
        assert sum(entry.percentage for entry in chains.values()) <= 101

        tokens = result.token_distribution
        assert tokens["USDC"].count == 2
        assert tokens["USDC"].volume == "2500.00"

        assert len(result.route_patterns) == 3
        route = next(r for r in result.route_patterns if r.from_chain == "ethereum")
        assert route.to_chain == "arbitrum"
        assert route.avg_fee == "1.25"

        months = [m.month for m in result.monthly_activity]
        assert months == sorted(months)
        assert sum(m.count for m in result.monthly_activity) == 3

    @pytest.mark.asyncio
    async def test_activity_patterns(self, clock, sleep, store, metrics):
        client = make_client(Upstream(HISTORY), clock, sleep, store, metrics)

        patterns = (await client.fetch(ADDRESS)).activity_patterns

        assert patterns.average_frequency == 2.25
        assert 0.0 <= patterns.volume_consistency <= 1.0
        assert patterns.chain_diversity == 0.375
        assert patterns.recent_activity is True
        assert patterns.is_regular_user is False, "❌ Volume below 5000 is not a regular user"

    @pytest.mark.asyncio
    async def test_empty_history(self, clock, sleep, store, metrics):
        client = make_client(Upstream([]), clock, sleep, store, metrics)

        result = await client.fetch(ADDRESS)

        assert result.total_transactions == 0
        assert result.eligibility_score == 0
        assert result.tier == "none"
        assert result.percentile_rank == 0

    def test_unknown_chain_name(self, clock, sleep, store, metrics):
        client = make_client(Upstream([]), clock, sleep, store, metrics)
        tx = {"fromChain": 999999, "toChain": 1, "fromAmount": "10", "timestamp": NOW_MS}

        result = client.analyze(ADDRESS, parse_orbiter_transactions([tx], NOW_MS), NOW_MS)

        assert "Unknown" in result.chain_distribution
