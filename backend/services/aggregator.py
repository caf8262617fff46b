"""
Bridge Analysis Aggregator
Runs every protocol adapter concurrently and merges whatever succeeded into one
eligibility verdict, with per-service errors and warnings attached.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, List, Optional

from config.settings import get_settings
from data_sources import hop_client, orbiter_client
from services.bridge_transform import amount_context, money, to_decimal
from services.errors import AnalysisError
from services.historical_benchmark import HistoricalBenchmarkComparator, get_benchmark_comparator
from services.models import (
    AnalysisMetadata,
    BridgeAndLPActivityResult,
    ComprehensiveBridgeAnalysis,
    MergedMetrics,
    OverallMetrics,
    ProtocolActivityResult,
)
from services.recommendation_engine import RecommendationEngine, get_recommendation_engine
from services.score_normalizer import ScoreNormalizer, get_score_normalizer, round_half_up

logger = logging.getLogger(__name__)

ANALYSIS_VERSION = "2.0.0"

SERVICE_LABELS = {
    "orbiter": "Orbiter Finance",
    "hop": "Hop Protocol",
}

HISTORICAL_FAILED_WARNING = "Historical comparison unavailable - basic analysis provided"
HISTORICAL_SKIPPED_WARNING = "Historical comparison skipped - no protocol data available"
RECOMMENDATIONS_FAILED_WARNING = "Recommendations unavailable - core analysis provided"


@dataclass
class AdapterSettlement:
    """Outcome of one adapter branch: a result or a classified error, never both"""
    service: str
    result: Optional[Any] = None
    error: Optional[AnalysisError] = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None


@dataclass
class AggregationOutcome:
    analysis: ComprehensiveBridgeAnalysis
    errors: List[AnalysisError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def all_sources_failed(self) -> bool:
        return self.analysis.orbiter_analysis is None and self.analysis.hop_analysis is None


class BridgeAnalysisAggregator:
    """
    Fan-out/fan-in over the Orbiter and Hop adapters.

    Both adapter calls start together and are awaited unconditionally. A
    failed or timed-out branch settles as an AnalysisError and the analysis
    continues with whatever succeeded.
    """

    def __init__(
        self,
        orbiter=None,
        hop=None,
        comparator: Optional[HistoricalBenchmarkComparator] = None,
        recommender: Optional[RecommendationEngine] = None,
        normalizer: Optional[ScoreNormalizer] = None,
        adapter_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.orbiter = orbiter if orbiter is not None else orbiter_client
        self.hop = hop if hop is not None else hop_client
        self.comparator = comparator or get_benchmark_comparator()
        self.recommender = recommender or get_recommendation_engine()
        self.normalizer = normalizer or get_score_normalizer()
        self.adapter_timeout = adapter_timeout if adapter_timeout is not None else get_settings().adapter_timeout_s
        self._clock = clock

    async def aggregate(self, address: str) -> AggregationOutcome:
        started = time.perf_counter()
        now_ms = int(self._clock() * 1000)

        orbiter_settled, hop_settled = await asyncio.gather(
            self._settle("orbiter", self.orbiter, address),
            self._settle("hop", self.hop, address),
        )

        errors: List[AnalysisError] = []
        warnings: List[str] = []
        for settled in (orbiter_settled, hop_settled):
            if not settled.ok:
                errors.append(self._wrap_failure(settled, address))
                warnings.append(f"{SERVICE_LABELS[settled.service]} analysis unavailable - results may be incomplete")

        orbiter: Optional[ProtocolActivityResult] = orbiter_settled.result if orbiter_settled.ok else None
        hop: Optional[BridgeAndLPActivityResult] = hop_settled.result if hop_settled.ok else None

        combined = self.normalizer.combine(
            orbiter.eligibility_score if orbiter else None,
            hop.eligibility_metrics.combined_score if hop else None,
        )
        merged = self.merge(address, orbiter, hop, combined)

        historical = None
        recommendations = None
        if orbiter or hop:
            try:
                historical = self.comparator.compare(merged)
            except Exception as e:
                logger.exception(f"[Aggregator] Historical comparison failed for {address}")
                errors.append(AnalysisError(
                    code="HISTORICAL_COMPARISON_FAILED",
                    message=f"Historical comparison failed: {e}",
                    service="historical",
                    severity="low",
                    retryable=True,
                    context={"address": address},
                ))
                warnings.append(HISTORICAL_FAILED_WARNING)

            try:
                recommendations = self.recommender.recommend(merged, historical)
            except Exception as e:
                logger.exception(f"[Aggregator] Recommendation generation failed for {address}")
                errors.append(AnalysisError(
                    code="RECOMMENDATIONS_FAILED",
                    message=f"Recommendation generation failed: {e}",
                    service="recommendations",
                    severity="low",
                    retryable=True,
                    context={"address": address},
                ))
                warnings.append(RECOMMENDATIONS_FAILED_WARNING)
        else:
            warnings.append(HISTORICAL_SKIPPED_WARNING)

        percentile = historical.overall_percentile.combined if historical is not None else combined

        succeeded = int(orbiter is not None) + int(hop is not None)
        analysis = ComprehensiveBridgeAnalysis(
            address=address,
            timestamp=now_ms,
            orbiter_analysis=orbiter,
            hop_analysis=hop,
            historical_comparison=historical,
            recommendations=recommendations,
            overall_metrics=OverallMetrics(
                total_bridge_volume=money(merged.total_bridge_volume),
                total_bridge_transactions=merged.total_bridge_transactions,
                total_lp_volume=money(merged.total_lp_volume),
                total_lp_duration=merged.average_lp_duration,
                combined_eligibility_score=combined,
                overall_tier=self.normalizer.overall_tier(combined),
                percentile_rank=percentile,
            ),
            metadata=AnalysisMetadata(
                analysis_version=ANALYSIS_VERSION,
                data_freshness=0,
                completeness=completeness(succeeded),
                reliability=reliability(len(errors), len(warnings)),
                processing_time=int((time.perf_counter() - started) * 1000),
                errors=[e.message for e in errors],
                warnings=list(warnings),
            ),
        )

        logger.info(
            f"[Aggregator] {address}: combined {combined} ({analysis.overall_metrics.overall_tier}), "
            f"{succeeded}/2 sources, {len(errors)} errors"
        )
        return AggregationOutcome(analysis=analysis, errors=errors, warnings=warnings)

    async def _settle(self, service: str, adapter, address: str) -> AdapterSettlement:
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(adapter.fetch(address), timeout=self.adapter_timeout)
            return AdapterSettlement(service, result=result, elapsed_ms=_elapsed_ms(started))
        except asyncio.TimeoutError:
            error = AnalysisError(
                code=f"{service.upper()}_TIMEOUT",
                message=f"{SERVICE_LABELS[service]} did not respond within {self.adapter_timeout}s",
                service=service,
                severity="medium",
                retryable=True,
                context={"address": address},
            )
        except AnalysisError as e:
            error = e
        except Exception as e:
            logger.exception(f"[Aggregator] Unexpected {service} adapter failure")
            error = AnalysisError(
                code=f"{service.upper()}_UNEXPECTED_ERROR",
                message=str(e) or type(e).__name__,
                service=service,
                severity="high",
                retryable=True,
                context={"address": address},
            )

        logger.warning(f"[Aggregator] {service} settled with {error.code}: {error.message}")
        return AdapterSettlement(service, error=error, elapsed_ms=_elapsed_ms(started))

    def _wrap_failure(self, settled: AdapterSettlement, address: str) -> AnalysisError:
        cause = settled.error or AnalysisError(
            code=f"{settled.service.upper()}_EMPTY_RESULT",
            message="Adapter returned no result",
            service=settled.service,
            retryable=True,
        )
        label = SERVICE_LABELS[settled.service].split()[0]
        return AnalysisError(
            code=f"{settled.service.upper()}_ANALYSIS_FAILED",
            message=f"{label} analysis failed: {cause.message}",
            service=settled.service,
            severity="medium",
            retryable=cause.retryable,
            context={"address": address, "cause": cause.code},
        )

    def merge(
        self,
        address: str,
        orbiter: Optional[ProtocolActivityResult],
        hop: Optional[BridgeAndLPActivityResult],
        combined: int,
    ) -> MergedMetrics:
        """Cross-protocol metrics derived from the adapter results alone"""
        with amount_context():
            return self._merge(address, orbiter, hop, combined)

    def _merge(
        self,
        address: str,
        orbiter: Optional[ProtocolActivityResult],
        hop: Optional[BridgeAndLPActivityResult],
        combined: int,
    ) -> MergedMetrics:
        orbiter_volume = to_decimal(orbiter.total_volume) if orbiter else Decimal(0)
        hop_volume = to_decimal(hop.bridge_activity.total_volume) if hop else Decimal(0)
        hop_bridge = hop.bridge_activity if hop else None
        lp = hop.lp_activity if hop else None

        if orbiter:
            frequency = orbiter.activity_patterns.average_frequency
        elif hop_bridge and hop_bridge.total_transactions:
            frequency = hop_bridge.activity_patterns.average_frequency
        else:
            frequency = 0.0

        recent = bool(orbiter and orbiter.activity_patterns.recent_activity)
        recent = recent or bool(hop_bridge and hop_bridge.activity_patterns.recent_activity)

        bridge_signals = []
        protocol_ranks = []
        if orbiter:
            bridge_signals.append(orbiter.percentile_rank)
            protocol_ranks.append(orbiter.percentile_rank)
        if hop:
            bridge_signals.append(hop.eligibility_metrics.bridge_score)
            protocol_ranks.append(hop.eligibility_metrics.percentile_rank)

        return MergedMetrics(
            address=address,
            combined_score=combined,
            protocol_percentile=_mean(protocol_ranks),
            hop_percentile=hop.eligibility_metrics.percentile_rank if hop else 0,
            total_bridge_volume=money(orbiter_volume + hop_volume),
            total_bridge_transactions=(orbiter.total_transactions if orbiter else 0)
            + (hop_bridge.total_transactions if hop_bridge else 0),
            total_lp_volume=money(lp.total_liquidity_provided) if lp else "0.00",
            average_lp_duration=lp.average_position_duration if lp else 0,
            lp_positions=lp.total_positions if lp else 0,
            unique_chains=(orbiter.unique_chains if orbiter else 0) + (hop_bridge.unique_chains if hop_bridge else 0),
            unique_tokens=(orbiter.unique_tokens if orbiter else 0) + (hop_bridge.unique_tokens if hop_bridge else 0),
            average_frequency=frequency,
            volume_consistency=orbiter.activity_patterns.volume_consistency if orbiter else 0.0,
            recent_activity=recent,
            bridge_percentile=_mean(bridge_signals),
            lp_percentile=hop.eligibility_metrics.lp_score if hop else 0,
            orbiter_volume=money(orbiter_volume),
            hop_bridge_volume=money(hop_volume),
            hop_bridge_transactions=hop_bridge.total_transactions if hop_bridge else 0,
            has_orbiter=orbiter is not None,
            has_hop=hop is not None,
        )


def completeness(succeeded: int) -> int:
    return 50 * max(0, min(2, succeeded))


def reliability(error_count: int, warning_count: int) -> int:
    return max(0, min(100, 100 - 20 * error_count - 5 * warning_count))


def _mean(values: List[int]) -> int:
    return round_half_up(sum(values) / len(values)) if values else 0


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


_aggregator: Optional[BridgeAnalysisAggregator] = None


def get_bridge_aggregator() -> BridgeAnalysisAggregator:
    global _aggregator
    if _aggregator is None:
        _aggregator = BridgeAnalysisAggregator()
    return _aggregator
