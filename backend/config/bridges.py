"""
Bridge Protocol Configuration
Chain maps, scoring weights, tier thresholds and recommendation catalogs
for the Orbiter and Hop adapters.
"""

from typing import Dict, List, Union

# ============================================
# TIERS
# ============================================

TIERS = ("none", "bronze", "silver", "gold", "platinum")

# Overall tier breakpoints for the combined score (highest first)
OVERALL_TIER_BREAKPOINTS = [
    (90, "platinum"),
    (75, "gold"),
    (60, "silver"),
    (40, "bronze"),
]

# Long-term target score for each overall tier; scores below 40 aim for bronze
LONG_TERM_TIER_TARGETS = {
    "bronze": 40,
    "silver": 60,
    "gold": 80,
    "platinum": 95,
}


# ============================================
# ORBITER FINANCE
# ============================================

ORBITER_CHAINS: Dict[str, Union[int, str]] = {
    "ethereum": 1,
    "arbitrum": 42161,
    "optimism": 10,
    "polygon": 137,
    "bsc": 56,
    "avalanche": 43114,
    "fantom": 250,
    "metis": 1088,
    "boba": 288,
    "zksync": 324,
    "starknet": "SN_MAIN",
    "loopring": 1101,
    "immutablex": 1002,
    "dydx": 1003,
    "zkspace": 1004,
}

ORBITER_HISTORY_ENDPOINT = "/bridge/history"
ORBITER_HISTORY_PAGE_SIZE = 1000

ORBITER_SCORING_WEIGHTS = {
    "volume": 0.40,
    "frequency": 0.25,
    "diversity": 0.20,
    "recency": 0.15,
}

# Reference constants: a sub-score reaches 100 at these values
ORBITER_VOLUME_REFERENCE = 100_000
ORBITER_FREQUENCY_REFERENCE = 5  # transactions per month
ORBITER_CHAIN_REFERENCE = 8
RECENT_ACTIVITY_DAYS = 30

# AND-gated: every metric must clear the tier threshold
ORBITER_TIER_THRESHOLDS = {
    "platinum": {"volume": 100_000, "transactions": 100, "chains": 8},
    "gold": {"volume": 50_000, "transactions": 50, "chains": 6},
    "silver": {"volume": 10_000, "transactions": 20, "chains": 4},
    "bronze": {"volume": 1_000, "transactions": 5, "chains": 2},
}

ORBITER_REGULAR_USER = {"min_monthly_frequency": 1, "min_volume": 5_000}


# ============================================
# HOP PROTOCOL
# ============================================

HOP_CHAINS: Dict[str, int] = {
    "ethereum": 1,
    "arbitrum": 42161,
    "optimism": 10,
    "polygon": 137,
    "gnosis": 100,
    "nova": 42170,
}

HOP_TOKENS = ["USDC", "USDT", "DAI", "ETH", "WBTC", "MATIC", "HOP"]

HOP_TRANSFERS_ENDPOINT = "/v1/transfers"
HOP_LP_POSITIONS_ENDPOINT = "/v1/liquidity-positions"

HOP_SCORING_WEIGHTS = {
    "bridge_volume": 0.30,
    "bridge_frequency": 0.20,
    "lp_volume": 0.25,
    "lp_duration": 0.15,
    "diversity": 0.10,
}

HOP_REFERENCES = {
    "bridge_volume": 500_000,
    "bridge_frequency": 500,
    "lp_volume": 250_000,
    "lp_duration_days": 180,
    "diversity": 10,
}

# Sub-score references for the bridge/LP split
HOP_BRIDGE_SCORE_TX_REFERENCE = 100
HOP_LP_POSITION_REFERENCE = 5

# Additive point bands, highest first: (threshold, points)
HOP_POINT_BANDS = {
    "bridge_volume": [(500_000, 30), (100_000, 25), (25_000, 20), (5_000, 15)],
    "bridge_transactions": [(500, 20), (150, 15), (50, 10), (10, 5)],
    "lp_liquidity": [(250_000, 30), (50_000, 25), (10_000, 20), (1_000, 15)],
    "lp_duration_days": [(180, 20), (90, 15), (30, 10), (7, 5)],
}

HOP_COMBINED_TIER_THRESHOLDS = [
    (95, "platinum"),
    (80, "gold"),
    (60, "silver"),
    (40, "bronze"),
]

# Highest breakpoint met applies, per bucket
HOP_LP_BONUSES = {
    "duration": [(180, 2.0), (90, 1.5), (30, 1.25), (7, 1.1)],
    "size": [(250_000, 1.5), (50_000, 1.3), (10_000, 1.15), (1_000, 1.05)],
}

# ============================================
# HISTORICAL BENCHMARKS
# ============================================

HISTORICAL_CONTEXTS = {
    "arbitrum": {
        "required_score": 60,
        "missing_criteria": ["Insufficient bridge activity"],
    },
    "optimism": {
        "required_score": 70,
        "missing_criteria": ["Higher volume needed", "More frequent bridging"],
    },
    "polygon": {
        "required_score": 50,
        "missing_criteria": ["Basic bridge activity needed"],
    },
}

HOP_ESTIMATED_REQUIRED_SCORE = 70
HOP_LIKELIHOOD_FACTOR = 1.2

DIVERSITY_CEILING_CHAINS = 8
VOLUME_CEILING_USD = 500_000

AVERAGE_USER = {"volume": 15_000, "transactions": 10, "chains": 2}

# Frequency (tx/month) at which a user matches the eligible population
ELIGIBLE_FREQUENCY_REFERENCE = 5

DAYS_PER_IMPROVEMENT_POINT = 2


# ============================================
# RECOMMENDATIONS
# ============================================

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

ORBITER_RECOMMENDED_CHAINS: List[str] = ["ethereum", "arbitrum", "optimism", "polygon"]
ORBITER_RECOMMENDED_TOKENS: List[str] = ["ETH", "USDC", "USDT"]

HOP_RECOMMENDED_ROUTES: List[str] = ["ethereum-arbitrum", "arbitrum-optimism", "ethereum-polygon"]
HOP_RECOMMENDED_POOLS = [
    {"pool": "USDC-ethereum", "apr": 12.5, "risk": "low", "min_amount": "1000.00"},
]

ESTIMATED_STRATEGY_COST = "2000.00"
STRATEGY_ROI = 5.0
BREAK_EVEN_FACTOR = "2.5"

USER_TYPE_VOLUME_BANDS = [
    (100_000, "whale"),
    (25_000, "regular"),
    (5_000, "casual"),
]


def chain_name(chain_id, chains: Dict[str, Union[int, str]] = None) -> str:
    """Reverse-lookup a chain id, 'Unknown' when unmapped"""
    chains = chains or ORBITER_CHAINS
    for name, cid in chains.items():
        if cid == chain_id or str(cid) == str(chain_id):
            return name
    return "Unknown"
