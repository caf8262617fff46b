"""
Score Normalizer
Protocol-specific weighted scoring and tiering.

Each sub-score divides a raw metric by a fixed reference constant, caps at 1.0
and scales to 0-100. Two tiering strategies coexist on purpose:
- AND-gated thresholds (Orbiter): every metric must clear the tier bar
- additive points (Hop): metric bands award points, the sum picks the tier
The overall tier of a combined score uses a third, separate set of breakpoints.
"""

import math
import statistics
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from config.bridges import (
    HOP_BRIDGE_SCORE_TX_REFERENCE,
    HOP_COMBINED_TIER_THRESHOLDS,
    HOP_LP_BONUSES,
    HOP_LP_POSITION_REFERENCE,
    HOP_POINT_BANDS,
    HOP_REFERENCES,
    HOP_SCORING_WEIGHTS,
    ORBITER_CHAIN_REFERENCE,
    ORBITER_FREQUENCY_REFERENCE,
    ORBITER_SCORING_WEIGHTS,
    ORBITER_TIER_THRESHOLDS,
    ORBITER_VOLUME_REFERENCE,
    OVERALL_TIER_BREAKPOINTS,
    RECENT_ACTIVITY_DAYS,
)

Number = Union[int, float, Decimal]

MS_PER_DAY = 24 * 60 * 60 * 1000


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values"""
    return int(math.floor(float(value) + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def capped_score(value: Number, reference: Number) -> float:
    """min(value / reference, 1) * 100, never negative"""
    if not reference:
        return 0.0
    return clamp(float(value) / float(reference), 0.0, 1.0) * 100


def volume_consistency(amounts: List[Number]) -> float:
    """1 - coefficient of variation / 2, clamped to [0, 1]; fewer than two amounts score 0"""
    values = [float(a) for a in amounts]
    if len(values) < 2:
        return 0.0
    mean = statistics.fmean(values)
    if mean <= 0:
        return 0.0
    return clamp(1 - statistics.pstdev(values) / mean / 2, 0.0, 1.0)


def band_lookup(value: Number, bands: List[Tuple[Number, object]], default=None):
    """Value of the highest breakpoint met; bands are ordered highest first"""
    for threshold, result in bands:
        if float(value) >= float(threshold):
            return result
    return default


class ScoreNormalizer:
    """
    Deterministic scoring rules for every supported protocol.

    Usage:
        normalizer = get_score_normalizer()
        score = normalizer.orbiter_score(volume, txs, chains, first_ms, last_ms, now_ms)
        tier = normalizer.orbiter_tier(volume, txs, chains)
    """

    # ------------------------------------------
    # Orbiter (AND-gated)
    # ------------------------------------------

    def orbiter_score(
        self,
        volume: Number,
        transactions: int,
        chains: int,
        first_transaction: int,
        last_transaction: int,
        now_ms: int,
    ) -> int:
        if transactions <= 0:
            return 0

        months_active = max((now_ms - first_transaction) / MS_PER_DAY / 30, 1)
        per_month = transactions / months_active

        volume_score = capped_score(volume, ORBITER_VOLUME_REFERENCE)
        frequency_score = capped_score(per_month, ORBITER_FREQUENCY_REFERENCE)
        diversity_score = capped_score(chains, ORBITER_CHAIN_REFERENCE)
        recent = (now_ms - last_transaction) <= RECENT_ACTIVITY_DAYS * MS_PER_DAY
        recency_score = 100 if recent else 50

        weighted = (
            volume_score * ORBITER_SCORING_WEIGHTS["volume"]
            + frequency_score * ORBITER_SCORING_WEIGHTS["frequency"]
            + diversity_score * ORBITER_SCORING_WEIGHTS["diversity"]
            + recency_score * ORBITER_SCORING_WEIGHTS["recency"]
        )
        return int(clamp(round_half_up(weighted)))

    def orbiter_tier(self, volume: Number, transactions: int, chains: int) -> str:
        for tier in ("platinum", "gold", "silver", "bronze"):
            bar = ORBITER_TIER_THRESHOLDS[tier]
            if (
                float(volume) >= bar["volume"]
                and transactions >= bar["transactions"]
                and chains >= bar["chains"]
            ):
                return tier
        return "none"

    def orbiter_percentile(self, score: int) -> int:
        return min(100, round_half_up(score * 0.9 + 10))

    # ------------------------------------------
    # Hop (additive points)
    # ------------------------------------------

    def hop_combined_score(
        self,
        bridge_volume: Number,
        bridge_transactions: int,
        lp_volume: Number,
        lp_duration_days: Number,
        chains: int,
        tokens: int,
    ) -> int:
        weighted = (
            capped_score(bridge_volume, HOP_REFERENCES["bridge_volume"]) * HOP_SCORING_WEIGHTS["bridge_volume"]
            + capped_score(bridge_transactions, HOP_REFERENCES["bridge_frequency"]) * HOP_SCORING_WEIGHTS["bridge_frequency"]
            + capped_score(lp_volume, HOP_REFERENCES["lp_volume"]) * HOP_SCORING_WEIGHTS["lp_volume"]
            + capped_score(lp_duration_days, HOP_REFERENCES["lp_duration_days"]) * HOP_SCORING_WEIGHTS["lp_duration"]
            + capped_score(chains + tokens, HOP_REFERENCES["diversity"]) * HOP_SCORING_WEIGHTS["diversity"]
        )
        return int(clamp(round_half_up(weighted)))

    def hop_bridge_score(self, bridge_volume: Number, bridge_transactions: int, chains: int, tokens: int) -> int:
        weighted = (
            capped_score(bridge_volume, HOP_REFERENCES["bridge_volume"]) * 0.5
            + capped_score(bridge_transactions, HOP_BRIDGE_SCORE_TX_REFERENCE) * 0.3
            + capped_score(chains + tokens, HOP_REFERENCES["diversity"]) * 0.2
        )
        return int(clamp(round_half_up(weighted)))

    def hop_lp_score(self, lp_volume: Number, lp_duration_days: Number, active_positions: int, total_positions: int) -> int:
        if total_positions <= 0:
            return 0
        weighted = (
            capped_score(lp_volume, HOP_REFERENCES["lp_volume"]) * 0.5
            + capped_score(lp_duration_days, HOP_REFERENCES["lp_duration_days"]) * 0.3
            + capped_score(active_positions, HOP_LP_POSITION_REFERENCE) * 0.2
        )
        return int(clamp(round_half_up(weighted)))

    def hop_points(
        self,
        bridge_volume: Number,
        bridge_transactions: int,
        lp_liquidity: Number,
        lp_duration_days: Number,
    ) -> int:
        return (
            band_lookup(bridge_volume, HOP_POINT_BANDS["bridge_volume"], 0)
            + band_lookup(bridge_transactions, HOP_POINT_BANDS["bridge_transactions"], 0)
            + band_lookup(lp_liquidity, HOP_POINT_BANDS["lp_liquidity"], 0)
            + band_lookup(lp_duration_days, HOP_POINT_BANDS["lp_duration_days"], 0)
        )

    def hop_tier(
        self,
        bridge_volume: Number,
        bridge_transactions: int,
        lp_liquidity: Number,
        lp_duration_days: Number,
    ) -> str:
        points = self.hop_points(bridge_volume, bridge_transactions, lp_liquidity, lp_duration_days)
        return band_lookup(points, HOP_COMBINED_TIER_THRESHOLDS, "none")

    def hop_percentile(self, score: int) -> int:
        return min(100, round_half_up(score * 0.9 + 10))

    def lp_bonus_multiplier(self, duration_days: Number, liquidity: Number, positions: int = 1) -> float:
        """Duration bucket x size bucket; only the highest breakpoint per bucket applies"""
        if positions <= 0:
            return 1.0
        duration_bonus = band_lookup(duration_days, HOP_LP_BONUSES["duration"], 1.0)
        size_bonus = band_lookup(liquidity, HOP_LP_BONUSES["size"], 1.0)
        return round(duration_bonus * size_bonus, 2)

    # ------------------------------------------
    # Cross-protocol
    # ------------------------------------------

    def combine(self, orbiter_score: Optional[int], hop_score: Optional[int]) -> int:
        """Mean of available scores, the single score when one failed, 0 when both failed"""
        if orbiter_score is not None and hop_score is not None:
            return int(clamp(round_half_up((orbiter_score + hop_score) / 2)))
        if orbiter_score is not None:
            return int(clamp(orbiter_score))
        if hop_score is not None:
            return int(clamp(hop_score))
        return 0

    def overall_tier(self, score: int) -> str:
        return band_lookup(score, OVERALL_TIER_BREAKPOINTS, "none")


_score_normalizer: Optional[ScoreNormalizer] = None


def get_score_normalizer() -> ScoreNormalizer:
    global _score_normalizer
    if _score_normalizer is None:
        _score_normalizer = ScoreNormalizer()
    return _score_normalizer
