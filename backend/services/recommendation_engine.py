"""
Recommendation Engine
Turns merged bridge metrics and benchmark output into a prioritised action plan.

Features:
- Independent rule checks for immediate actions, grouped high > medium > low
- Long-term target for the current tier with the point gap to its target score
- Per-protocol volume/frequency/route/pool targets
- Risk notes and a heuristic cost/benefit estimate
"""

from decimal import Decimal
from typing import Callable, List, Optional

from config.bridges import (
    BREAK_EVEN_FACTOR,
    ESTIMATED_STRATEGY_COST,
    HOP_RECOMMENDED_POOLS,
    HOP_RECOMMENDED_ROUTES,
    LONG_TERM_TIER_TARGETS,
    ORBITER_RECOMMENDED_CHAINS,
    ORBITER_RECOMMENDED_TOKENS,
    OVERALL_TIER_BREAKPOINTS,
    PRIORITY_ORDER,
    STRATEGY_ROI,
    USER_TYPE_VOLUME_BANDS,
)
from services.bridge_transform import amount_context, money, to_decimal
from services.models import (
    BridgeRecommendation,
    CostBenefitAnalysis,
    HistoricalComparisonResult,
    HopBridgeTargets,
    HopLPTargets,
    HopTargets,
    ImmediateAction,
    LongTermStrategy,
    MergedMetrics,
    Milestone,
    OrbiterTargets,
    PersonalizedInsights,
    PoolRecommendation,
    ProtocolRecommendations,
    RiskConsideration,
)
from services.score_normalizer import band_lookup, round_half_up


def classify_user(total_volume: Decimal) -> str:
    for threshold, label in USER_TYPE_VOLUME_BANDS:
        if total_volume > threshold:
            return label
    return "new"


# ============================================
# IMMEDIATE ACTION RULES
# ============================================

def _low_frequency(m: MergedMetrics) -> Optional[ImmediateAction]:
    if m.average_frequency < 2:
        return ImmediateAction(
            priority="high",
            action="Increase bridge frequency",
            description="Bridge at least 2x per month to improve activity score",
            estimated_impact=15,
            estimated_cost="100.00",
            timeframe="1-2 months",
            difficulty="easy",
        )
    return None


def _few_chains(m: MergedMetrics) -> Optional[ImmediateAction]:
    if m.unique_chains < 4:
        return ImmediateAction(
            priority="medium",
            action="Diversify chains",
            description="Use at least 4 different chains for better diversity score",
            estimated_impact=10,
            estimated_cost="200.00",
            timeframe="2-4 weeks",
            difficulty="medium",
        )
    return None


def _no_liquidity(m: MergedMetrics) -> Optional[ImmediateAction]:
    if m.lp_positions == 0:
        return ImmediateAction(
            priority="high",
            action="Start LP activity",
            description="Provide liquidity to earn LP bonus multiplier",
            estimated_impact=20,
            estimated_cost="1000.00",
            timeframe="1 week",
            difficulty="medium",
        )
    return None


def _inactive(m: MergedMetrics) -> Optional[ImmediateAction]:
    if m.total_bridge_transactions > 0 and not m.recent_activity:
        return ImmediateAction(
            priority="medium",
            action="Resume bridging activity",
            description="No bridge activity in the last 30 days; recent activity is weighted in scoring",
            estimated_impact=10,
            estimated_cost="50.00",
            timeframe="1 week",
            difficulty="easy",
        )
    return None


def _few_tokens(m: MergedMetrics) -> Optional[ImmediateAction]:
    if m.unique_tokens < 3:
        return ImmediateAction(
            priority="low",
            action="Bridge more token types",
            description="Bridge at least 3 different tokens to raise diversity",
            estimated_impact=5,
            estimated_cost="50.00",
            timeframe="2-4 weeks",
            difficulty="easy",
        )
    return None


def _short_lp(m: MergedMetrics) -> Optional[ImmediateAction]:
    if m.lp_positions > 0 and m.average_lp_duration < 30:
        return ImmediateAction(
            priority="low",
            action="Hold LP positions longer",
            description="Positions held 30+ days unlock a higher LP duration bonus",
            estimated_impact=8,
            estimated_cost="0.00",
            timeframe="1-3 months",
            difficulty="easy",
        )
    return None


ACTION_RULES: List[Callable[[MergedMetrics], Optional[ImmediateAction]]] = [
    _low_frequency,
    _few_chains,
    _no_liquidity,
    _inactive,
    _few_tokens,
    _short_lp,
]


class RecommendationEngine:
    """
    Builds a BridgeRecommendation from merged metrics and a benchmark.

    Usage:
        engine = get_recommendation_engine()
        plan = engine.recommend(metrics, benchmark)
    """

    def __init__(self, rules: Optional[List[Callable]] = None):
        self.rules = rules if rules is not None else ACTION_RULES

    def recommend(
        self,
        metrics: MergedMetrics,
        benchmark: Optional[HistoricalComparisonResult] = None,
    ) -> BridgeRecommendation:
        percentile = (
            benchmark.overall_percentile.combined if benchmark is not None else metrics.combined_score
        )
        with amount_context():
            return BridgeRecommendation(
                immediate_actions=self.immediate_actions(metrics),
                long_term_strategy=self.long_term_strategy(metrics.combined_score),
                protocol_recommendations=self.protocol_targets(metrics),
                risk_considerations=self.risks(metrics),
                cost_benefit_analysis=self.cost_benefit(percentile),
                personalized_insights=self.insights(metrics, percentile),
            )

    def immediate_actions(self, metrics: MergedMetrics) -> List[ImmediateAction]:
        actions = [action for action in (rule(metrics) for rule in self.rules) if action is not None]
        # Stable: rule order is kept inside a priority group
        return sorted(actions, key=lambda a: PRIORITY_ORDER[a.priority])

    def long_term_strategy(self, combined_score: int) -> LongTermStrategy:
        """Target the current overall tier (bronze below 40) and the points still missing for it"""
        target_tier = band_lookup(combined_score, OVERALL_TIER_BREAKPOINTS, "bronze")
        threshold = LONG_TERM_TIER_TARGETS[target_tier]

        return LongTermStrategy(
            target_tier=target_tier,
            current_gap=max(0, threshold - combined_score),
            recommended_path=[
                Milestone(
                    milestone=f"Reach {target_tier} tier",
                    target_score=threshold,
                    actions=[
                        "Increase total volume",
                        "Maintain regular activity",
                        "Diversify chains and tokens",
                    ],
                    timeframe="3-6 months",
                    estimated_cost=ESTIMATED_STRATEGY_COST,
                )
            ],
        )

    def protocol_targets(self, metrics: MergedMetrics) -> ProtocolRecommendations:
        orbiter_volume = to_decimal(metrics.orbiter_volume)
        hop_volume = to_decimal(metrics.hop_bridge_volume)
        liquidity = to_decimal(metrics.total_lp_volume)

        return ProtocolRecommendations(
            orbiter=OrbiterTargets(
                recommended_chains=list(ORBITER_RECOMMENDED_CHAINS),
                recommended_tokens=list(ORBITER_RECOMMENDED_TOKENS),
                target_volume=money(max(Decimal(100000), orbiter_volume * Decimal("1.5"))),
                target_frequency=round(max(4.0, metrics.average_frequency * 1.5), 2),
            ),
            hop=HopTargets(
                bridge_strategy=HopBridgeTargets(
                    recommended_routes=list(HOP_RECOMMENDED_ROUTES),
                    target_volume=money(max(Decimal(75000), hop_volume * Decimal("1.3"))),
                    target_frequency=max(3, round_half_up(metrics.hop_bridge_transactions / 12)),
                ),
                lp_strategy=HopLPTargets(
                    recommended_pools=[PoolRecommendation(**pool) for pool in HOP_RECOMMENDED_POOLS],
                    target_duration=max(90, round_half_up(metrics.average_lp_duration * 1.5)),
                    target_amount=money(max(Decimal(10000), liquidity * Decimal("1.2"))),
                ),
            ),
        )

    def risks(self, metrics: MergedMetrics) -> List[RiskConsideration]:
        risks = [
            RiskConsideration(
                type="financial",
                severity="medium",
                description="Bridge fees can be high during network congestion",
                mitigation="Monitor gas prices and bridge during off-peak hours",
            ),
            RiskConsideration(
                type="technical",
                severity="low",
                description="Smart contract risks in LP positions",
                mitigation="Only use audited protocols and start with small amounts",
            ),
        ]
        if metrics.lp_positions > 0:
            risks.append(RiskConsideration(
                type="financial",
                severity="medium",
                description="Impermanent loss on volatile LP pairs",
                mitigation="Prefer stablecoin pools for long-duration positions",
            ))
        return risks

    def cost_benefit(self, combined_percentile: int) -> CostBenefitAnalysis:
        score_improvement = max(10, 100 - combined_percentile)
        cost = Decimal(ESTIMATED_STRATEGY_COST)
        return CostBenefitAnalysis(
            estimated_total_cost=money(cost),
            estimated_score_improvement=score_improvement,
            estimated_percentile_improvement=round_half_up(score_improvement * 0.8),
            roi=STRATEGY_ROI,
            break_even_airdrop_value=money(cost * Decimal(BREAK_EVEN_FACTOR)),
        )

    def insights(self, metrics: MergedMetrics, combined_percentile: int) -> PersonalizedInsights:
        total_volume = to_decimal(metrics.total_bridge_volume)

        strengths = []
        if metrics.volume_consistency > 0.7:
            strengths.append("Consistent volume")
        if metrics.unique_chains >= 4:
            strengths.append("Good chain diversity")
        if metrics.lp_positions > 0:
            strengths.append("LP participation")

        weaknesses = []
        if metrics.average_frequency < 2:
            weaknesses.append("Low frequency")
        if metrics.unique_tokens < 3:
            weaknesses.append("Limited token diversity")
        if not metrics.recent_activity:
            weaknesses.append("Inactive recently")

        return PersonalizedInsights(
            user_type=classify_user(total_volume),
            strengths=strengths,
            weaknesses=weaknesses,
            opportunity_score=combined_percentile,
            competitive_advantage=["Early adopter"] if len(strengths) > len(weaknesses) else ["Room for improvement"],
        )


_engine: Optional[RecommendationEngine] = None


def get_recommendation_engine() -> RecommendationEngine:
    global _engine
    if _engine is None:
        _engine = RecommendationEngine()
    return _engine
