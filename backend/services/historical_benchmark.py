"""
Historical Benchmark Comparator
Compares merged bridge metrics against fixed historical airdrop criteria.

Pure and deterministic: no I/O, no clock, no shared state.
"""

from typing import Optional

from config.bridges import (
    AVERAGE_USER,
    DAYS_PER_IMPROVEMENT_POINT,
    DIVERSITY_CEILING_CHAINS,
    ELIGIBLE_FREQUENCY_REFERENCE,
    HISTORICAL_CONTEXTS,
    HOP_ESTIMATED_REQUIRED_SCORE,
    HOP_LIKELIHOOD_FACTOR,
    VOLUME_CEILING_USD,
)
from services.bridge_transform import to_decimal
from services.models import (
    BenchmarkInsights,
    ComparativeAnalysis,
    EcosystemBenchmark,
    HistoricalComparisonResult,
    HistoricalComparisons,
    LikelihoodBenchmark,
    MergedMetrics,
    OverallPercentile,
    VsAverageUser,
    VsEligibleUsers,
)
from services.score_normalizer import round_half_up


def ceiling_percentile(value: float, ceiling: float) -> int:
    """min(100, round(value / ceiling * 100))"""
    if ceiling <= 0 or value <= 0:
        return 0
    return min(100, round_half_up(value / ceiling * 100))


def multiplier(value: float, average: float) -> float:
    if average <= 0:
        return 0.0
    return round(value / average, 1)


class HistoricalBenchmarkComparator:
    """
    Benchmarks a wallet against past airdrop criteria.

    Three ecosystems (arbitrum, optimism, polygon) give a hard pass/fail
    against a required score; Hop gives an eligibility likelihood.
    """

    def compare(self, metrics: MergedMetrics) -> HistoricalComparisonResult:
        combined = metrics.combined_score
        total_volume = float(to_decimal(metrics.total_bridge_volume))

        comparisons = {}
        for name, criteria in HISTORICAL_CONTEXTS.items():
            eligible = combined >= criteria["required_score"]
            comparisons[name] = EcosystemBenchmark(
                user_score=combined,
                required_score=criteria["required_score"],
                eligible=eligible,
                percentile_rank=metrics.protocol_percentile,
                missing_criteria=[] if eligible else list(criteria["missing_criteria"]),
            )

        comparisons["hop"] = LikelihoodBenchmark(
            user_score=combined,
            estimated_required_score=HOP_ESTIMATED_REQUIRED_SCORE,
            eligibility_likelihood=round(min(100.0, combined * HOP_LIKELIHOOD_FACTOR), 1),
            percentile_rank=metrics.hop_percentile,
            strength_areas=["LP participation"] if metrics.lp_positions > 0 else ["Bridge activity"],
            improvement_areas=["Increase frequency"] if combined < 80 else [],
        )

        cross_chain = ceiling_percentile(metrics.unique_chains, DIVERSITY_CEILING_CHAINS)
        volume_ranking = ceiling_percentile(total_volume, VOLUME_CEILING_USD)

        overall = OverallPercentile(
            bridge_activity=metrics.bridge_percentile,
            lp_activity=metrics.lp_percentile,
            cross_chain_diversity=cross_chain,
            volume_ranking=volume_ranking,
            combined=combined,
        )

        comparative = ComparativeAnalysis(
            vs_average_user=VsAverageUser(
                volume_multiplier=multiplier(total_volume, AVERAGE_USER["volume"]),
                frequency_multiplier=multiplier(metrics.total_bridge_transactions, AVERAGE_USER["transactions"]),
                diversity_multiplier=multiplier(metrics.unique_chains, AVERAGE_USER["chains"]),
            ),
            vs_eligible_users=VsEligibleUsers(
                volume_percentile=volume_ranking,
                frequency_percentile=ceiling_percentile(metrics.average_frequency, ELIGIBLE_FREQUENCY_REFERENCE),
                diversity_percentile=cross_chain,
            ),
        )

        return HistoricalComparisonResult(
            address=metrics.address,
            historical_comparisons=HistoricalComparisons(**comparisons),
            overall_percentile=overall,
            comparative_analysis=comparative,
            benchmark_insights=self.insights(overall, combined),
        )

    def insights(self, overall: OverallPercentile, combined: int) -> BenchmarkInsights:
        ranked = sorted(
            [
                ("Bridge Activity", overall.bridge_activity),
                ("LP Activity", overall.lp_activity),
                ("Cross-chain Diversity", overall.cross_chain_diversity),
                ("Volume Ranking", overall.volume_ranking),
            ],
            key=lambda item: item[1],
            reverse=True,
        )
        potential = max(0, 100 - combined)
        return BenchmarkInsights(
            strongest_metrics=[name for name, _ in ranked[:2]],
            weakest_metrics=[name for name, _ in ranked[-2:]],
            improvement_potential=potential,
            time_to_improve=round_half_up(potential * DAYS_PER_IMPROVEMENT_POINT),
        )


_comparator: Optional[HistoricalBenchmarkComparator] = None


def get_benchmark_comparator() -> HistoricalBenchmarkComparator:
    global _comparator
    if _comparator is None:
        _comparator = HistoricalBenchmarkComparator()
    return _comparator
