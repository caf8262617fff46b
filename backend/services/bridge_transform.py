"""
Bridge Data Transformer
Lenient parsing of untrusted upstream and cached payloads into canonical models.

Every function here is total: missing or malformed fields fall back to safe
defaults (0, "0", "", empty collections, tier "none"), numeric ranges are
clamped, and only a payload that is not a JSON object at all raises a
structural AnalysisError.
"""

import math
import time
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from typing import Any, Callable, Dict, List, Optional

from config.bridges import TIERS
from services.errors import AnalysisError
from services.models import (
    ActivityPatterns,
    BridgeActivitySummary,
    BridgeAndLPActivityResult,
    CrossChainRoute,
    DistributionEntry,
    HopEligibilityMetrics,
    HopLPPosition,
    HopTransfer,
    LPActivitySummary,
    LPPerformanceMetrics,
    MonthlyActivity,
    OrbiterTransaction,
    PoolPosition,
    ProtocolActivityResult,
    RouteDistributionEntry,
    RoutePattern,
    TimelineEntry,
)
from services.score_normalizer import round_half_up

TX_STATUSES = ("pending", "completed", "failed")
TIMELINE_TYPES = ("bridge", "lp_deposit", "lp_withdraw", "rewards_claim")

# Larger magnitudes are treated as malformed input
MAX_AMOUNT_DIGITS = 40
AMOUNT_CONTEXT = Context(prec=2 * MAX_AMOUNT_DIGITS, rounding=ROUND_HALF_UP)


# ============================================
# FIELD COERCION
# ============================================

def _pick(data: Dict, *keys: str) -> Any:
    """First present key wins (camelCase, snake_case, legacy names)"""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number.adjusted() > MAX_AMOUNT_DIGITS:
        return None
    return number


def decimal_str(value: Any, default: str = "0") -> str:
    """Non-negative decimal string; well-formed strings pass through untouched"""
    number = _to_decimal(value)
    if number is None or number < 0:
        return default
    if isinstance(value, str):
        return value.strip()
    return format(number, "f")


def to_int(value: Any, default: int = 0, minimum: Optional[int] = 0) -> int:
    number = _to_decimal(value)
    if number is None:
        return default
    result = int(number)
    if minimum is not None and result < minimum:
        return minimum
    return result


def to_float(value: Any, default: float = 0.0, minimum: Optional[float] = 0.0) -> float:
    number = _to_decimal(value)
    if number is None:
        return default
    result = float(number)
    if math.isnan(result) or math.isinf(result):
        return default
    if minimum is not None and result < minimum:
        return minimum
    return result


def to_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def clamp_score(value: Any) -> int:
    """Integer in [0, 100]"""
    return max(0, min(100, round_half_up(to_float(value, minimum=None))))


def clamp_ratio(value: Any) -> float:
    """Float in [0, 1]"""
    return max(0.0, min(1.0, to_float(value, minimum=None)))


def to_tier(value: Any) -> str:
    tier = to_str(value).lower()
    return tier if tier in TIERS else "none"


def _choice(value: Any, allowed, default: str) -> str:
    text = to_str(value).lower()
    return text if text in allowed else default


def _as_dict(value: Any) -> Dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List:
    return value if isinstance(value, list) else []


def _mapping(value: Any, parse: Callable[[Dict], Any]) -> Dict[str, Any]:
    return {
        str(label): parse(entry)
        for label, entry in _as_dict(value).items()
        if isinstance(entry, dict)
    }


def _sequence(value: Any, parse: Callable[[Dict], Any]) -> List[Any]:
    return [parse(entry) for entry in _as_list(value) if isinstance(entry, dict)]


def _chain_id(value: Any, default: Any = 1) -> Any:
    """Numeric chain ids become ints, named ids (e.g. SN_MAIN) stay strings"""
    number = _to_decimal(value)
    if number is not None:
        return int(number)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _first_last(raw: Dict) -> tuple:
    first = to_int(_pick(raw, "firstTransaction", "first_transaction"))
    last = to_int(_pick(raw, "lastTransaction", "last_transaction"))
    if first and last and first > last:
        first, last = last, first
    return first, last


def _require_object(raw: Any, service: str, label: str) -> Dict:
    if not isinstance(raw, dict):
        raise AnalysisError(
            code="INVALID_PAYLOAD",
            message=f"Invalid {label} data: not an object",
            service=service,
            severity="high",
            retryable=False,
            context={"receivedType": type(raw).__name__},
        )
    return raw


# ============================================
# SHARED SHAPES
# ============================================

def parse_distribution_entry(raw: Dict) -> DistributionEntry:
    return DistributionEntry(
        count=to_int(_pick(raw, "count", "transactionCount", "transaction_count")),
        volume=decimal_str(_pick(raw, "volume")),
        percentage=clamp_score(_pick(raw, "percentage")),
    )


def parse_route_pattern(raw: Dict) -> RoutePattern:
    return RoutePattern(
        from_chain=to_str(_pick(raw, "fromChain", "from_chain")),
        to_chain=to_str(_pick(raw, "toChain", "to_chain")),
        count=to_int(_pick(raw, "count", "transactionCount", "transaction_count")),
        volume=decimal_str(_pick(raw, "volume")),
        avg_fee=decimal_str(_pick(raw, "avgFee", "averageFee", "avg_fee")),
    )


def parse_monthly_activity(raw: Dict) -> MonthlyActivity:
    return MonthlyActivity(
        month=to_str(_pick(raw, "month")),
        count=to_int(_pick(raw, "count", "transactionCount", "transaction_count")),
        volume=decimal_str(_pick(raw, "volume")),
        unique_chains=to_int(_pick(raw, "uniqueChains", "unique_chains")),
    )


def parse_activity_patterns(raw: Dict) -> ActivityPatterns:
    return ActivityPatterns(
        is_regular_user=to_bool(_pick(raw, "isRegularUser", "is_regular_user")),
        average_frequency=to_float(_pick(raw, "averageFrequency", "average_frequency")),
        volume_consistency=clamp_ratio(_pick(raw, "volumeConsistency", "volume_consistency")),
        chain_diversity=clamp_ratio(_pick(raw, "chainDiversity", "chain_diversity")),
        recent_activity=to_bool(_pick(raw, "recentActivity", "recent_activity")),
    )


# ============================================
# ORBITER
# ============================================

def transform_orbiter_result(raw: Any) -> ProtocolActivityResult:
    """Canonicalise an Orbiter activity payload"""
    raw = _require_object(raw, "orbiter", "Orbiter")
    first, last = _first_last(raw)

    return ProtocolActivityResult(
        address=to_str(_pick(raw, "address")),
        total_transactions=to_int(_pick(raw, "totalTransactions", "total_transactions")),
        total_volume=decimal_str(_pick(raw, "totalVolume", "total_volume")),
        total_fees=decimal_str(_pick(raw, "totalFees", "total_fees")),
        unique_chains=to_int(_pick(raw, "uniqueChains", "unique_chains")),
        unique_tokens=to_int(_pick(raw, "uniqueTokens", "unique_tokens")),
        first_transaction=first,
        last_transaction=last,
        average_transaction_size=decimal_str(
            _pick(raw, "averageTransactionSize", "average_transaction_size")
        ),
        chain_distribution=_mapping(
            _pick(raw, "chainDistribution", "chain_distribution"), parse_distribution_entry
        ),
        token_distribution=_mapping(
            _pick(raw, "tokenDistribution", "token_distribution"), parse_distribution_entry
        ),
        route_patterns=_sequence(_pick(raw, "routePatterns", "route_patterns"), parse_route_pattern),
        monthly_activity=_sequence(
            _pick(raw, "monthlyActivity", "monthly_activity"), parse_monthly_activity
        ),
        eligibility_score=clamp_score(_pick(raw, "eligibilityScore", "eligibility_score")),
        tier=to_tier(_pick(raw, "tier")),
        percentile_rank=clamp_score(_pick(raw, "percentileRank", "percentile_rank")),
        activity_patterns=parse_activity_patterns(
            _as_dict(_pick(raw, "activityPatterns", "activity_patterns"))
        ),
    )


def _transaction_list(payload: Any, service: str) -> List:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "transfers", "transactions", "positions", "result"):
            if isinstance(payload.get(key), list):
                return payload[key]
    raise AnalysisError(
        code=f"{service.upper()}_MALFORMED_RESPONSE",
        message="Invalid response format: expected a list of records",
        service=service,
        severity="medium",
        retryable=False,
        context={"receivedType": type(payload).__name__},
    )


def parse_orbiter_transactions(payload: Any, now_ms: Optional[int] = None) -> List[OrbiterTransaction]:
    """Parse /bridge/history records; non-object entries are skipped"""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    transactions = []
    for index, tx in enumerate(_transaction_list(payload, "orbiter")):
        if not isinstance(tx, dict):
            continue
        block_number = _pick(tx, "blockNumber", "block_number")
        gas_used = _pick(tx, "gasUsed", "gas_used")
        transactions.append(OrbiterTransaction(
            id=to_str(_pick(tx, "id"), default=f"tx_{index}") or f"tx_{index}",
            hash=to_str(_pick(tx, "hash", "txHash")),
            from_chain=_chain_id(_pick(tx, "fromChain", "from_chain")),
            to_chain=_chain_id(_pick(tx, "toChain", "to_chain")),
            from_token=to_str(_pick(tx, "fromToken", "from_token"), "ETH") or "ETH",
            to_token=to_str(_pick(tx, "toToken", "to_token"), "ETH") or "ETH",
            from_amount=decimal_str(_pick(tx, "fromAmount", "from_amount")),
            to_amount=decimal_str(_pick(tx, "toAmount", "to_amount")),
            timestamp=to_int(_pick(tx, "timestamp"), default=now_ms) or now_ms,
            status=_choice(_pick(tx, "status"), TX_STATUSES, "completed"),
            fee=decimal_str(_pick(tx, "fee")),
            gas_used=decimal_str(gas_used) if gas_used is not None else None,
            block_number=to_int(block_number) if block_number is not None else None,
        ))
    return transactions


# ============================================
# HOP
# ============================================

def parse_route_distribution_entry(raw: Dict) -> RouteDistributionEntry:
    return RouteDistributionEntry(
        count=to_int(_pick(raw, "count", "transactionCount", "transaction_count")),
        volume=decimal_str(_pick(raw, "volume")),
        average_fee=decimal_str(_pick(raw, "averageFee", "average_fee", "avgFee")),
    )


def parse_bridge_activity(raw: Dict) -> BridgeActivitySummary:
    first, last = _first_last(raw)
    return BridgeActivitySummary(
        total_transactions=to_int(_pick(raw, "totalTransactions", "total_transactions")),
        total_volume=decimal_str(_pick(raw, "totalVolume", "total_volume")),
        total_fees=decimal_str(_pick(raw, "totalFees", "total_fees")),
        unique_chains=to_int(_pick(raw, "uniqueChains", "unique_chains")),
        unique_tokens=to_int(_pick(raw, "uniqueTokens", "unique_tokens")),
        first_transaction=first,
        last_transaction=last,
        average_transaction_size=decimal_str(
            _pick(raw, "averageTransactionSize", "average_transaction_size")
        ),
        route_distribution=_mapping(
            _pick(raw, "routeDistribution", "route_distribution"), parse_route_distribution_entry
        ),
        token_preferences=_mapping(
            _pick(raw, "tokenPreferences", "token_preferences"), parse_distribution_entry
        ),
        activity_patterns=parse_activity_patterns(
            _as_dict(_pick(raw, "activityPatterns", "activity_patterns"))
        ),
    )


def parse_pool_position(raw: Dict) -> PoolPosition:
    return PoolPosition(
        liquidity_provided=decimal_str(_pick(raw, "liquidityProvided", "liquidity_provided")),
        duration=to_int(_pick(raw, "duration")),
        rewards_earned=decimal_str(_pick(raw, "rewardsEarned", "rewards_earned")),
        apr=to_float(_pick(raw, "apr")),
    )


def parse_lp_activity(raw: Dict) -> LPActivitySummary:
    total = to_int(_pick(raw, "totalPositions", "total_positions"))
    active = min(total, to_int(_pick(raw, "activePositions", "active_positions")))
    performance = _as_dict(_pick(raw, "performanceMetrics", "performance_metrics"))
    # Net P/L may legitimately be negative
    net = _pick(performance, "netProfitLoss", "net_profit_loss")
    return LPActivitySummary(
        total_positions=total,
        active_positions=active,
        total_liquidity_provided=decimal_str(
            _pick(raw, "totalLiquidityProvided", "total_liquidity_provided")
        ),
        total_rewards_earned=decimal_str(_pick(raw, "totalRewardsEarned", "total_rewards_earned")),
        average_position_duration=to_int(
            _pick(raw, "averagePositionDuration", "average_position_duration")
        ),
        pool_distribution=_mapping(
            _pick(raw, "poolDistribution", "pool_distribution"), parse_pool_position
        ),
        performance_metrics=LPPerformanceMetrics(
            total_time_providing=to_int(_pick(performance, "totalTimeProviding", "total_time_providing")),
            average_position_size=decimal_str(
                _pick(performance, "averagePositionSize", "average_position_size")
            ),
            best_performing_pool=to_str(_pick(performance, "bestPerformingPool", "best_performing_pool")),
            total_impermanent_loss=decimal_str(
                _pick(performance, "totalImpermanentLoss", "total_impermanent_loss")
            ),
            net_profit_loss=to_str(net).strip() if _to_decimal(net) is not None else "0",
        ),
    )


def parse_cross_chain_route(raw: Dict) -> CrossChainRoute:
    tokens = [to_str(t) for t in _as_list(_pick(raw, "preferredTokens", "preferred_tokens"))]
    return CrossChainRoute(
        route=to_str(_pick(raw, "route")),
        frequency=to_int(_pick(raw, "frequency")),
        total_volume=decimal_str(_pick(raw, "totalVolume", "total_volume")),
        average_amount=decimal_str(_pick(raw, "averageAmount", "average_amount")),
        preferred_tokens=[t for t in tokens if t],
    )


def parse_eligibility_metrics(raw: Dict) -> HopEligibilityMetrics:
    return HopEligibilityMetrics(
        bridge_score=clamp_score(_pick(raw, "bridgeScore", "bridge_score")),
        lp_score=clamp_score(_pick(raw, "lpScore", "lp_score")),
        combined_score=clamp_score(_pick(raw, "combinedScore", "combined_score")),
        tier=to_tier(_pick(raw, "tier")),
        percentile_rank=clamp_score(_pick(raw, "percentileRank", "percentile_rank")),
        lp_bonus_multiplier=max(1.0, to_float(_pick(raw, "lpBonusMultiplier", "lp_bonus_multiplier"), 1.0)),
    )


def parse_timeline_entry(raw: Dict) -> TimelineEntry:
    return TimelineEntry(
        timestamp=to_int(_pick(raw, "timestamp")),
        type=_choice(_pick(raw, "type"), TIMELINE_TYPES, "bridge"),
        amount=decimal_str(_pick(raw, "amount")),
        token=to_str(_pick(raw, "token")),
        chain=to_str(_pick(raw, "chain")),
        details=_as_dict(_pick(raw, "details")),
    )


def transform_hop_result(raw: Any) -> BridgeAndLPActivityResult:
    """Canonicalise a Hop bridge + LP activity payload"""
    raw = _require_object(raw, "hop", "Hop")

    return BridgeAndLPActivityResult(
        address=to_str(_pick(raw, "address")),
        bridge_activity=parse_bridge_activity(_as_dict(_pick(raw, "bridgeActivity", "bridge_activity"))),
        lp_activity=parse_lp_activity(_as_dict(_pick(raw, "lpActivity", "lp_activity"))),
        cross_chain_routes=_sequence(
            _pick(raw, "crossChainRoutes", "cross_chain_routes"), parse_cross_chain_route
        ),
        eligibility_metrics=parse_eligibility_metrics(
            _as_dict(_pick(raw, "eligibilityMetrics", "eligibility_metrics"))
        ),
        activity_timeline=_sequence(
            _pick(raw, "activityTimeline", "activity_timeline"), parse_timeline_entry
        ),
    )


def parse_hop_transfers(payload: Any, now_ms: Optional[int] = None) -> List[HopTransfer]:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    transfers = []
    for tx in _transaction_list(payload, "hop"):
        if not isinstance(tx, dict):
            continue
        transfers.append(HopTransfer(
            transaction_hash=to_str(_pick(tx, "transactionHash", "transaction_hash", "hash")),
            source_chain_id=to_int(_pick(tx, "sourceChainId", "source_chain_id"), default=1) or 1,
            destination_chain_id=to_int(
                _pick(tx, "destinationChainId", "destination_chain_id"), default=1
            ) or 1,
            token=to_str(_pick(tx, "token"), "ETH") or "ETH",
            amount=decimal_str(_pick(tx, "amount")),
            bonder_fee=decimal_str(_pick(tx, "bonderFee", "bonder_fee")),
            timestamp=to_int(_pick(tx, "timestamp"), default=now_ms) or now_ms,
            sender=to_str(_pick(tx, "sender")),
            recipient=to_str(_pick(tx, "recipient")),
            status=_choice(_pick(tx, "status"), TX_STATUSES, "completed"),
        ))
    return transfers


def parse_hop_lp_positions(payload: Any, now_ms: Optional[int] = None) -> List[HopLPPosition]:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    positions = []
    for pos in _transaction_list(payload, "hop"):
        if not isinstance(pos, dict):
            continue
        rewards = _pick(pos, "rewards")
        rewards_hop = _pick(rewards, "hop") if isinstance(rewards, dict) else _pick(pos, "rewardsHop")
        deposit = to_int(_pick(pos, "depositTimestamp", "deposit_timestamp"), default=now_ms) or now_ms
        positions.append(HopLPPosition(
            chain_id=to_int(_pick(pos, "chainId", "chain_id"), default=1) or 1,
            token=to_str(_pick(pos, "token"), "ETH") or "ETH",
            pool_address=to_str(_pick(pos, "poolAddress", "pool_address")),
            lp_token_balance=decimal_str(_pick(pos, "lpTokenBalance", "lp_token_balance")),
            underlying_token_balance=decimal_str(
                _pick(pos, "underlyingTokenBalance", "underlying_token_balance")
            ),
            h_token_balance=decimal_str(_pick(pos, "hTokenBalance", "h_token_balance")),
            total_supply=decimal_str(_pick(pos, "totalSupply", "total_supply")),
            pool_share=clamp_ratio(_pick(pos, "poolShare", "pool_share")),
            apr=to_float(_pick(pos, "apr")),
            rewards_hop=decimal_str(rewards_hop),
            deposit_timestamp=deposit,
            last_update_timestamp=to_int(
                _pick(pos, "lastUpdateTimestamp", "last_update_timestamp"), default=deposit
            ),
        ))
    return positions


TRANSFORMERS = {
    "orbiter": transform_orbiter_result,
    "hop": transform_hop_result,
}


def transform(raw: Any, service: str):
    """Dispatch to the canonical transformer for a service"""
    try:
        transformer = TRANSFORMERS[service]
    except KeyError:
        raise AnalysisError(
            code="UNKNOWN_SERVICE",
            message=f"No transformer registered for {service}",
            service=service,
            severity="high",
            retryable=False,
        ) from None
    return transformer(raw)


# ============================================
# FORMATTING
# ============================================

CENTS = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Decimal for arithmetic; anything unparseable counts as zero"""
    number = _to_decimal(value)
    return number if number is not None else Decimal(0)


def amount_context():
    """Exact sums and ratios for any amount that parses"""
    return localcontext(AMOUNT_CONTEXT)


def money(value: Any) -> str:
    """Two-decimal string, rounded half up"""
    number = to_decimal(value)
    with localcontext() as ctx:
        ctx.prec = max(28, number.adjusted() + 4)
        return format(number.quantize(CENTS, rounding=ROUND_HALF_UP), "f")
