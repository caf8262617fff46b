"""
Bridge Analysis Models
Canonical, immutable records for protocol activity, benchmarks and recommendations.

Every model serialises with camelCase keys (`model_dump(by_alias=True)`) and
accepts either camelCase or snake_case on construction. Decimal amounts are
carried as strings with two decimal places.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Tier = Literal["none", "bronze", "silver", "gold", "platinum"]
Priority = Literal["high", "medium", "low"]
Difficulty = Literal["easy", "medium", "hard"]
Severity = Literal["low", "medium", "high"]
TimelineType = Literal["bridge", "lp_deposit", "lp_withdraw", "rewards_claim"]
UserType = Literal["whale", "regular", "casual", "new"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ============================================
# RAW TRANSACTIONS (parsed upstream records)
# ============================================

class OrbiterTransaction(CamelModel):
    id: str
    hash: str = ""
    from_chain: Any = 1
    to_chain: Any = 1
    from_token: str = "ETH"
    to_token: str = "ETH"
    from_amount: str = "0"
    to_amount: str = "0"
    timestamp: int = 0
    status: Literal["pending", "completed", "failed"] = "completed"
    fee: str = "0"
    gas_used: Optional[str] = None
    block_number: Optional[int] = None


class HopTransfer(CamelModel):
    transaction_hash: str = ""
    source_chain_id: int = 1
    destination_chain_id: int = 1
    token: str = "ETH"
    amount: str = "0"
    bonder_fee: str = "0"
    timestamp: int = 0
    sender: str = ""
    recipient: str = ""
    status: Literal["pending", "completed", "failed"] = "completed"


class HopLPPosition(CamelModel):
    chain_id: int = 1
    token: str = "ETH"
    pool_address: str = ""
    lp_token_balance: str = "0"
    underlying_token_balance: str = "0"
    h_token_balance: str = "0"
    total_supply: str = "0"
    pool_share: float = 0.0
    apr: float = 0.0
    rewards_hop: str = "0"
    deposit_timestamp: int = 0
    last_update_timestamp: int = 0


# ============================================
# PROTOCOL ACTIVITY
# ============================================

class DistributionEntry(CamelModel):
    count: int = 0
    volume: str = "0"
    percentage: int = 0


class RouteDistributionEntry(CamelModel):
    count: int = 0
    volume: str = "0"
    average_fee: str = "0"


class RoutePattern(CamelModel):
    from_chain: str = ""
    to_chain: str = ""
    count: int = 0
    volume: str = "0"
    avg_fee: str = "0"


class MonthlyActivity(CamelModel):
    month: str = ""
    count: int = 0
    volume: str = "0"
    unique_chains: int = 0


class ActivityPatterns(CamelModel):
    is_regular_user: bool = False
    average_frequency: float = 0.0
    volume_consistency: float = 0.0
    chain_diversity: float = 0.0
    recent_activity: bool = False


class ProtocolActivityResult(CamelModel):
    """Single-protocol bridge activity (Orbiter-style)"""
    address: str = ""
    total_transactions: int = 0
    total_volume: str = "0"
    total_fees: str = "0"
    unique_chains: int = 0
    unique_tokens: int = 0
    first_transaction: int = 0
    last_transaction: int = 0
    average_transaction_size: str = "0"
    chain_distribution: Dict[str, DistributionEntry] = Field(default_factory=dict)
    token_distribution: Dict[str, DistributionEntry] = Field(default_factory=dict)
    route_patterns: List[RoutePattern] = Field(default_factory=list)
    monthly_activity: List[MonthlyActivity] = Field(default_factory=list)
    eligibility_score: int = 0
    tier: Tier = "none"
    percentile_rank: int = 0
    activity_patterns: ActivityPatterns = Field(default_factory=ActivityPatterns)


class BridgeActivitySummary(CamelModel):
    total_transactions: int = 0
    total_volume: str = "0"
    total_fees: str = "0"
    unique_chains: int = 0
    unique_tokens: int = 0
    first_transaction: int = 0
    last_transaction: int = 0
    average_transaction_size: str = "0"
    route_distribution: Dict[str, RouteDistributionEntry] = Field(default_factory=dict)
    token_preferences: Dict[str, DistributionEntry] = Field(default_factory=dict)
    activity_patterns: ActivityPatterns = Field(default_factory=ActivityPatterns)


class PoolPosition(CamelModel):
    liquidity_provided: str = "0"
    duration: int = 0
    rewards_earned: str = "0"
    apr: float = 0.0


class LPPerformanceMetrics(CamelModel):
    total_time_providing: int = 0
    average_position_size: str = "0"
    best_performing_pool: str = ""
    total_impermanent_loss: str = "0"
    net_profit_loss: str = "0"


class LPActivitySummary(CamelModel):
    total_positions: int = 0
    active_positions: int = 0
    total_liquidity_provided: str = "0"
    total_rewards_earned: str = "0"
    average_position_duration: int = 0
    pool_distribution: Dict[str, PoolPosition] = Field(default_factory=dict)
    performance_metrics: LPPerformanceMetrics = Field(default_factory=LPPerformanceMetrics)


class CrossChainRoute(CamelModel):
    route: str = ""
    frequency: int = 0
    total_volume: str = "0"
    average_amount: str = "0"
    preferred_tokens: List[str] = Field(default_factory=list)


class HopEligibilityMetrics(CamelModel):
    bridge_score: int = 0
    lp_score: int = 0
    combined_score: int = 0
    tier: Tier = "none"
    percentile_rank: int = 0
    lp_bonus_multiplier: float = 1.0


class TimelineEntry(CamelModel):
    timestamp: int = 0
    type: TimelineType = "bridge"
    amount: str = "0"
    token: str = ""
    chain: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)


class BridgeAndLPActivityResult(CamelModel):
    """Bridge plus liquidity-provision activity (Hop-style)"""
    address: str = ""
    bridge_activity: BridgeActivitySummary = Field(default_factory=BridgeActivitySummary)
    lp_activity: LPActivitySummary = Field(default_factory=LPActivitySummary)
    cross_chain_routes: List[CrossChainRoute] = Field(default_factory=list)
    eligibility_metrics: HopEligibilityMetrics = Field(default_factory=HopEligibilityMetrics)
    activity_timeline: List[TimelineEntry] = Field(default_factory=list)


# ============================================
# MERGED METRICS
# ============================================

class MergedMetrics(CamelModel):
    """Cross-protocol metrics consumed by the benchmark and recommendation stages"""
    address: str = ""
    combined_score: int = 0
    protocol_percentile: int = 0
    hop_percentile: int = 0
    total_bridge_volume: str = "0"
    total_bridge_transactions: int = 0
    total_lp_volume: str = "0"
    average_lp_duration: int = 0
    lp_positions: int = 0
    unique_chains: int = 0
    unique_tokens: int = 0
    average_frequency: float = 0.0
    volume_consistency: float = 0.0
    recent_activity: bool = False
    bridge_percentile: int = 0
    lp_percentile: int = 0
    orbiter_volume: str = "0"
    hop_bridge_volume: str = "0"
    hop_bridge_transactions: int = 0
    has_orbiter: bool = False
    has_hop: bool = False


# ============================================
# HISTORICAL COMPARISON
# ============================================

class EcosystemBenchmark(CamelModel):
    user_score: int = 0
    required_score: int = 0
    eligible: bool = False
    percentile_rank: int = 0
    missing_criteria: List[str] = Field(default_factory=list)


class LikelihoodBenchmark(CamelModel):
    user_score: int = 0
    estimated_required_score: int = 0
    eligibility_likelihood: float = 0.0
    percentile_rank: int = 0
    strength_areas: List[str] = Field(default_factory=list)
    improvement_areas: List[str] = Field(default_factory=list)


class HistoricalComparisons(CamelModel):
    arbitrum: EcosystemBenchmark = Field(default_factory=EcosystemBenchmark)
    optimism: EcosystemBenchmark = Field(default_factory=EcosystemBenchmark)
    polygon: EcosystemBenchmark = Field(default_factory=EcosystemBenchmark)
    hop: LikelihoodBenchmark = Field(default_factory=LikelihoodBenchmark)


class OverallPercentile(CamelModel):
    bridge_activity: int = 0
    lp_activity: int = 0
    cross_chain_diversity: int = 0
    volume_ranking: int = 0
    combined: int = 0


class VsAverageUser(CamelModel):
    volume_multiplier: float = 0.0
    frequency_multiplier: float = 0.0
    diversity_multiplier: float = 0.0


class VsEligibleUsers(CamelModel):
    volume_percentile: int = 0
    frequency_percentile: int = 0
    diversity_percentile: int = 0


class ComparativeAnalysis(CamelModel):
    vs_average_user: VsAverageUser = Field(default_factory=VsAverageUser)
    vs_eligible_users: VsEligibleUsers = Field(default_factory=VsEligibleUsers)


class BenchmarkInsights(CamelModel):
    strongest_metrics: List[str] = Field(default_factory=list)
    weakest_metrics: List[str] = Field(default_factory=list)
    improvement_potential: int = 0
    time_to_improve: int = 0


class HistoricalComparisonResult(CamelModel):
    address: str = ""
    historical_comparisons: HistoricalComparisons = Field(default_factory=HistoricalComparisons)
    overall_percentile: OverallPercentile = Field(default_factory=OverallPercentile)
    comparative_analysis: ComparativeAnalysis = Field(default_factory=ComparativeAnalysis)
    benchmark_insights: BenchmarkInsights = Field(default_factory=BenchmarkInsights)


# ============================================
# RECOMMENDATIONS
# ============================================

class ImmediateAction(CamelModel):
    priority: Priority
    action: str
    description: str
    estimated_impact: int = 0
    estimated_cost: str = "0.00"
    timeframe: str = ""
    difficulty: Difficulty = "easy"


class Milestone(CamelModel):
    milestone: str
    target_score: int
    actions: List[str] = Field(default_factory=list)
    timeframe: str = ""
    estimated_cost: str = "0.00"


class LongTermStrategy(CamelModel):
    target_tier: Tier = "bronze"
    current_gap: int = 0
    recommended_path: List[Milestone] = Field(default_factory=list)


class OrbiterTargets(CamelModel):
    recommended_chains: List[str] = Field(default_factory=list)
    recommended_tokens: List[str] = Field(default_factory=list)
    target_volume: str = "0.00"
    target_frequency: float = 0.0


class HopBridgeTargets(CamelModel):
    recommended_routes: List[str] = Field(default_factory=list)
    target_volume: str = "0.00"
    target_frequency: int = 0


class PoolRecommendation(CamelModel):
    pool: str
    apr: float
    risk: Severity = "low"
    min_amount: str = "0.00"


class HopLPTargets(CamelModel):
    recommended_pools: List[PoolRecommendation] = Field(default_factory=list)
    target_duration: int = 0
    target_amount: str = "0.00"


class HopTargets(CamelModel):
    bridge_strategy: HopBridgeTargets = Field(default_factory=HopBridgeTargets)
    lp_strategy: HopLPTargets = Field(default_factory=HopLPTargets)


class ProtocolRecommendations(CamelModel):
    orbiter: OrbiterTargets = Field(default_factory=OrbiterTargets)
    hop: HopTargets = Field(default_factory=HopTargets)


class RiskConsideration(CamelModel):
    type: Literal["financial", "technical", "regulatory", "timing"]
    severity: Severity
    description: str
    mitigation: str


class CostBenefitAnalysis(CamelModel):
    estimated_total_cost: str = "0.00"
    estimated_score_improvement: int = 0
    estimated_percentile_improvement: int = 0
    roi: float = 0.0
    break_even_airdrop_value: str = "0.00"


class PersonalizedInsights(CamelModel):
    user_type: UserType = "new"
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    opportunity_score: int = 0
    competitive_advantage: List[str] = Field(default_factory=list)


class BridgeRecommendation(CamelModel):
    immediate_actions: List[ImmediateAction] = Field(default_factory=list)
    long_term_strategy: LongTermStrategy = Field(default_factory=LongTermStrategy)
    protocol_recommendations: ProtocolRecommendations = Field(default_factory=ProtocolRecommendations)
    risk_considerations: List[RiskConsideration] = Field(default_factory=list)
    cost_benefit_analysis: CostBenefitAnalysis = Field(default_factory=CostBenefitAnalysis)
    personalized_insights: PersonalizedInsights = Field(default_factory=PersonalizedInsights)


# ============================================
# COMPREHENSIVE ANALYSIS
# ============================================

class OverallMetrics(CamelModel):
    total_bridge_volume: str = "0.00"
    total_bridge_transactions: int = 0
    total_lp_volume: str = "0.00"
    total_lp_duration: int = 0
    combined_eligibility_score: int = 0
    overall_tier: Tier = "none"
    percentile_rank: int = 0


class AnalysisMetadata(CamelModel):
    analysis_version: str = "2.0.0"
    data_freshness: int = 0
    completeness: int = 0
    reliability: int = 0
    processing_time: int = 0
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ComprehensiveBridgeAnalysis(CamelModel):
    address: str
    timestamp: int
    orbiter_analysis: Optional[ProtocolActivityResult] = None
    hop_analysis: Optional[BridgeAndLPActivityResult] = None
    historical_comparison: Optional[HistoricalComparisonResult] = None
    recommendations: Optional[BridgeRecommendation] = None
    overall_metrics: OverallMetrics = Field(default_factory=OverallMetrics)
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)
