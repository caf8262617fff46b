"""
Bridge Analysis Aggregator Tests
==================================

Fan-out/fan-in over both protocol adapters under partial failure:
- Both adapters succeed -> mean score, overall tier
- One adapter fails or times out -> degraded result with one error + warning
- Both adapters fail -> score 0, comparison skipped
- Downstream stage failures become low-severity errors
- Completeness / reliability bookkeeping

Run: python -m pytest backend/tests/test_aggregator.py -v --tb=short
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from services.aggregator import (
    BridgeAnalysisAggregator,
    completeness,
    reliability,
)
from services.errors import AnalysisError
from services.models import (
    ActivityPatterns,
    BridgeActivitySummary,
    BridgeAndLPActivityResult,
    HopEligibilityMetrics,
    LPActivitySummary,
    ProtocolActivityResult,
)

from conftest import ADDRESS, DAY_MS, NOW_MS, NOW_S, Upstream
from test_hop_adapter import POSITIONS, TRANSFERS, HopUpstream
from test_hop_adapter import make_client as make_hop_client
from test_orbiter_adapter import make_client as make_orbiter_client


def orbiter_result(score: int = 80) -> ProtocolActivityResult:
    return ProtocolActivityResult(
        address=ADDRESS,
        total_transactions=60,
        total_volume="60000.00",
        unique_chains=6,
        unique_tokens=3,
        first_transaction=NOW_MS - 180 * DAY_MS,
        last_transaction=NOW_MS - 2 * DAY_MS,
        eligibility_score=score,
        tier="gold",
        percentile_rank=82,
    )


def hop_result(score: int = 90) -> BridgeAndLPActivityResult:
    return BridgeAndLPActivityResult(
        address=ADDRESS,
        bridge_activity=BridgeActivitySummary(
            total_transactions=40,
            total_volume="40000.00",
            unique_chains=4,
            unique_tokens=2,
            first_transaction=NOW_MS - 120 * DAY_MS,
            last_transaction=NOW_MS - 10 * DAY_MS,
            activity_patterns=ActivityPatterns(average_frequency=10.0, recent_activity=True),
        ),
        lp_activity=LPActivitySummary(
            total_positions=2,
            active_positions=2,
            total_liquidity_provided="25000.00",
            average_position_duration=95,
        ),
        eligibility_metrics=HopEligibilityMetrics(
            bridge_score=70,
            lp_score=60,
            combined_score=score,
            tier="gold",
            percentile_rank=91,
            lp_bonus_multiplier=1.73,
        ),
    )


class FakeAdapter:
    """Adapter stand-in with call-count instrumentation"""

    def __init__(self, result=None, error=None, delay: float = 0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.fetch_count = 0

    async def fetch(self, address: str):
        self.fetch_count += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


def adapter_error(service: str, code: str, retryable: bool) -> AnalysisError:
    return AnalysisError(code=code, message=f"{service} is down", service=service, retryable=retryable)


def make_aggregator(orbiter, hop, **kwargs) -> BridgeAnalysisAggregator:
    kwargs.setdefault("adapter_timeout", 5.0)
    return BridgeAnalysisAggregator(orbiter=orbiter, hop=hop, clock=lambda: NOW_S, **kwargs)


# =============================================================================
# TEST: BOTH ADAPTERS SUCCEED
# =============================================================================

class TestFullSuccess:

    @pytest.mark.asyncio
    async def test_mean_score_and_overall_tier(self):
        aggregator = make_aggregator(FakeAdapter(orbiter_result(80)), FakeAdapter(hop_result(90)))

        outcome = await aggregator.aggregate(ADDRESS)
        metrics = outcome.analysis.overall_metrics

        assert metrics.combined_eligibility_score == 85
        assert metrics.overall_tier == "gold"
        assert outcome.errors == []
        assert outcome.warnings == []
        assert outcome.all_sources_failed is False

    @pytest.mark.asyncio
    async def test_overall_metrics_and_metadata(self):
        aggregator = make_aggregator(FakeAdapter(orbiter_result()), FakeAdapter(hop_result()))

        analysis = (await aggregator.aggregate(ADDRESS)).analysis

        assert analysis.address == ADDRESS
        assert analysis.timestamp == NOW_MS
        assert analysis.overall_metrics.total_bridge_volume == "100000.00"
        assert analysis.overall_metrics.total_bridge_transactions == 100
        assert analysis.overall_metrics.total_lp_volume == "25000.00"
        assert analysis.overall_metrics.total_lp_duration == 95
        assert analysis.metadata.completeness == 100
        assert analysis.metadata.reliability == 100
        assert analysis.metadata.analysis_version == "2.0.0"
        assert analysis.metadata.data_freshness == 0

    @pytest.mark.asyncio
    async def test_benchmark_and_recommendations_attached(self):
        aggregator = make_aggregator(FakeAdapter(orbiter_result()), FakeAdapter(hop_result()))

        analysis = (await aggregator.aggregate(ADDRESS)).analysis

        assert analysis.historical_comparison is not None
        assert analysis.recommendations is not None
        assert analysis.overall_metrics.percentile_rank == analysis.historical_comparison.overall_percentile.combined

    @pytest.mark.asyncio
    async def test_adapters_run_concurrently(self):
        orbiter = FakeAdapter(orbiter_result(), delay=0.2)
        hop = FakeAdapter(hop_result(), delay=0.2)
        aggregator = make_aggregator(orbiter, hop)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await aggregator.aggregate(ADDRESS)

        assert loop.time() - started < 0.35, "❌ Adapters must not run sequentially"
        assert orbiter.fetch_count == 1
        assert hop.fetch_count == 1

    @pytest.mark.asyncio
    async def test_percentiles(self):
        aggregator = make_aggregator(FakeAdapter(orbiter_result(50)), FakeAdapter(hop_result(50)))

        analysis = (await aggregator.aggregate(ADDRESS)).analysis
        history = analysis.historical_comparison
        plan = analysis.recommendations

        assert history.overall_percentile.combined == 50, "❌ Combined percentile is the combined score"
        assert analysis.overall_metrics.percentile_rank == 50
        assert plan.cost_benefit_analysis.estimated_score_improvement == 50
        assert plan.personalized_insights.opportunity_score == 50
        assert history.historical_comparisons.arbitrum.percentile_rank == 87  # mean(82, 91)
        assert history.historical_comparisons.hop.percentile_rank == 91


# =============================================================================
# TEST: MERGED METRICS
# =============================================================================

class TestMerge:

    def test_merge_sums_protocols(self):
        aggregator = make_aggregator(FakeAdapter(), FakeAdapter())

        merged = aggregator.merge(ADDRESS, orbiter_result(), hop_result(), 85)

        assert merged.total_bridge_volume == "100000.00"
        assert merged.unique_chains == 10
        assert merged.unique_tokens == 5
        assert merged.lp_positions == 2
        assert merged.bridge_percentile == 76  # mean(82, 70)
        assert merged.lp_percentile == 60
        assert merged.protocol_percentile == 87  # mean(82, 91)
        assert merged.hop_percentile == 91
        assert merged.has_orbiter and merged.has_hop

    def test_merge_hop_only_frequency(self):
        aggregator = make_aggregator(FakeAdapter(), FakeAdapter())

        merged = aggregator.merge(ADDRESS, None, hop_result(), 90)

        assert merged.average_frequency == 10.0, "❌ Hop-only frequency comes from the Hop result"
        assert merged.recent_activity is True
        assert merged.orbiter_volume == "0.00"
        assert merged.has_orbiter is False

    def test_merge_huge_volumes(self):
        aggregator = make_aggregator(FakeAdapter(), FakeAdapter())
        orbiter = orbiter_result().model_copy(update={"total_volume": "999999999999999999999999999999.99"})
        hop = hop_result()
        hop = hop.model_copy(update={
            "bridge_activity": hop.bridge_activity.model_copy(update={"total_volume": "0.02"}),
        })

        merged = aggregator.merge(ADDRESS, orbiter, hop, 85)

        assert merged.total_bridge_volume == "1000000000000000000000000000000.01"
        assert merged.orbiter_volume == "999999999999999999999999999999.99"

    @pytest.mark.asyncio
    async def test_aggregate_huge_volumes(self):
        orbiter = orbiter_result().model_copy(update={"total_volume": "123456789012345678901234567890.50"})
        aggregator = make_aggregator(FakeAdapter(orbiter), FakeAdapter(hop_result()))

        outcome = await aggregator.aggregate(ADDRESS)

        assert outcome.errors == []
        assert outcome.analysis.overall_metrics.total_bridge_volume == "123456789012345678901234607890.50"
        assert outcome.analysis.recommendations.protocol_recommendations.orbiter.target_volume == (
            "185185183518518518351851851835.75"
        )


# =============================================================================
# TEST: PARTIAL FAILURE
# =============================================================================

class TestPartialFailure:

    @pytest.mark.asyncio
    async def test_orbiter_timeout_hop_succeeds(self):
        orbiter = FakeAdapter(orbiter_result(), delay=1.0)
        aggregator = make_aggregator(orbiter, FakeAdapter(hop_result(70)), adapter_timeout=0.05)

        outcome = await aggregator.aggregate(ADDRESS)
        analysis = outcome.analysis

        assert analysis.overall_metrics.combined_eligibility_score == 70
        assert analysis.orbiter_analysis is None
        assert analysis.hop_analysis is not None

        assert len(outcome.errors) == 1
        error = outcome.errors[0]
        assert error.service == "orbiter"
        assert error.retryable is True
        assert error.code == "ORBITER_ANALYSIS_FAILED"
        assert error.context["cause"] == "ORBITER_TIMEOUT"

        assert outcome.warnings == ["Orbiter Finance analysis unavailable - results may be incomplete"]
        assert analysis.metadata.completeness == 50
        assert analysis.metadata.reliability == 75
        assert outcome.all_sources_failed is False

    @pytest.mark.asyncio
    async def test_hop_failure_keeps_cause_retryability(self):
        hop = FakeAdapter(error=adapter_error("hop", "HOP_ADDRESS_UNSUPPORTED", retryable=False))
        aggregator = make_aggregator(FakeAdapter(orbiter_result(62)), hop)

        outcome = await aggregator.aggregate(ADDRESS)

        assert outcome.analysis.overall_metrics.combined_eligibility_score == 62
        assert outcome.analysis.overall_metrics.overall_tier == "silver"
        assert outcome.errors[0].code == "HOP_ANALYSIS_FAILED"
        assert outcome.errors[0].retryable is False
        assert outcome.errors[0].message == "Hop analysis failed: hop is down"
        assert outcome.warnings == ["Hop Protocol analysis unavailable - results may be incomplete"]

    @pytest.mark.asyncio
    async def test_unexpected_adapter_exception_is_contained(self):
        orbiter = FakeAdapter(error=RuntimeError("boom"))
        aggregator = make_aggregator(orbiter, FakeAdapter(hop_result(70)))

        outcome = await aggregator.aggregate(ADDRESS)

        assert outcome.analysis.overall_metrics.combined_eligibility_score == 70
        assert outcome.errors[0].service == "orbiter"
        assert outcome.errors[0].context["cause"] == "ORBITER_UNEXPECTED_ERROR"


# =============================================================================
# TEST: TOTAL FAILURE
# =============================================================================

class TestTotalFailure:

    @pytest.mark.asyncio
    async def test_both_adapters_fail(self):
        aggregator = make_aggregator(
            FakeAdapter(error=adapter_error("orbiter", "ORBITER_NETWORK_ERROR", retryable=True)),
            FakeAdapter(error=adapter_error("hop", "HOP_RATE_LIMITED", retryable=True)),
        )

        outcome = await aggregator.aggregate(ADDRESS)
        analysis = outcome.analysis

        assert outcome.all_sources_failed is True
        assert analysis.overall_metrics.combined_eligibility_score == 0
        assert analysis.overall_metrics.overall_tier == "none"
        assert analysis.overall_metrics.percentile_rank == 0
        assert analysis.historical_comparison is None
        assert analysis.recommendations is None

        assert [e.service for e in outcome.errors] == ["orbiter", "hop"]
        assert "Historical comparison skipped - no protocol data available" in outcome.warnings
        assert len(outcome.warnings) == 3
        assert analysis.metadata.completeness == 0
        assert analysis.metadata.reliability == 45


# =============================================================================
# TEST: DOWNSTREAM STAGE FAILURES
# =============================================================================

class TestStageFailures:

    @pytest.mark.asyncio
    async def test_historical_failure_is_low_severity(self):
        comparator = MagicMock()
        comparator.compare.side_effect = RuntimeError("benchmark data missing")
        aggregator = make_aggregator(
            FakeAdapter(orbiter_result()), FakeAdapter(hop_result()), comparator=comparator
        )

        outcome = await aggregator.aggregate(ADDRESS)

        assert outcome.analysis.historical_comparison is None
        assert outcome.analysis.recommendations is not None, "❌ Recommendations still run without a benchmark"
        assert outcome.errors[0].code == "HISTORICAL_COMPARISON_FAILED"
        assert outcome.errors[0].severity == "low"
        assert outcome.warnings == ["Historical comparison unavailable - basic analysis provided"]
        assert outcome.analysis.overall_metrics.percentile_rank == 85, "❌ Falls back to the combined score"

    @pytest.mark.asyncio
    async def test_recommendation_failure_is_low_severity(self):
        recommender = MagicMock()
        recommender.recommend.side_effect = ValueError("bad catalog")
        aggregator = make_aggregator(
            FakeAdapter(orbiter_result()), FakeAdapter(hop_result()), recommender=recommender
        )

        outcome = await aggregator.aggregate(ADDRESS)

        assert outcome.analysis.recommendations is None
        assert outcome.analysis.historical_comparison is not None
        assert outcome.errors[0].code == "RECOMMENDATIONS_FAILED"
        assert outcome.warnings == ["Recommendations unavailable - core analysis provided"]


# =============================================================================
# TEST: BOOKKEEPING
# =============================================================================

class TestBookkeeping:

    @pytest.mark.parametrize("succeeded,expected", [(0, 0), (1, 50), (2, 100), (3, 100)])
    def test_completeness(self, succeeded, expected):
        assert completeness(succeeded) == expected

    @pytest.mark.parametrize("errors,warnings,expected", [
        (0, 0, 100),
        (1, 1, 75),
        (2, 3, 45),
        (5, 0, 0),
        (4, 10, 0),
    ])
    def test_reliability(self, errors, warnings, expected):
        assert reliability(errors, warnings) == expected


# =============================================================================
# TEST: REPEATED ANALYSIS WITH REAL ADAPTERS
# =============================================================================

class TestRepeatedAnalysis:

    @pytest.mark.asyncio
    async def test_repeat_within_ttl_is_identical(self, clock, sleep, store, metrics):
        # Last transfer is 50s inside the 30-day recency window
        transfers = [{**TRANSFERS[0], "timestamp": NOW_MS - 30 * DAY_MS + 50_000}]
        orbiter_upstream = Upstream([])
        hop_upstream = HopUpstream(transfers, POSITIONS)
        aggregator = BridgeAnalysisAggregator(
            orbiter=make_orbiter_client(orbiter_upstream, clock, sleep, store, metrics),
            hop=make_hop_client(hop_upstream, clock, sleep, store, metrics),
            adapter_timeout=5.0,
            clock=clock,
        )

        first = (await aggregator.aggregate(ADDRESS)).analysis.model_dump(by_alias=True)
        clock.advance(100)
        second = (await aggregator.aggregate(ADDRESS)).analysis.model_dump(by_alias=True)

        for dump in (first, second):
            dump.pop("timestamp")
            dump["metadata"].pop("processingTime")

        assert second == first, "❌ Cached adapter results must produce the same analysis"
        assert orbiter_upstream.calls == 1
        assert hop_upstream.transfers.calls == 1
        assert hop_upstream.positions.calls == 1
        assert first["hopAnalysis"]["bridgeActivity"]["activityPatterns"]["recentActivity"] is True
