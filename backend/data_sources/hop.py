"""
Hop Protocol Client
Bridge transfers and liquidity-provision positions for a wallet, scored with
additive tier points and an LP bonus multiplier.
"""

import asyncio
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional

from config.bridges import (
    HOP_CHAINS,
    HOP_LP_POSITIONS_ENDPOINT,
    HOP_TRANSFERS_ENDPOINT,
    ORBITER_REGULAR_USER,
    RECENT_ACTIVITY_DAYS,
    chain_name,
)
from config.settings import get_settings
from data_sources.base import ProtocolAdapter
from services.bridge_transform import (
    amount_context,
    money,
    parse_hop_lp_positions,
    parse_hop_transfers,
    to_decimal,
    transform_hop_result,
)
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
    PoolPosition,
    RouteDistributionEntry,
    TimelineEntry,
)
from services.score_normalizer import MS_PER_DAY, round_half_up, volume_consistency

logger = logging.getLogger(__name__)


def _hop_chain(chain_id: int) -> str:
    return chain_name(chain_id, HOP_CHAINS)


def _route(tx: HopTransfer) -> str:
    return f"{_hop_chain(tx.source_chain_id)}-{_hop_chain(tx.destination_chain_id)}"


class HopClient(ProtocolAdapter):
    """
    Hop Protocol bridge + LP adapter.

    Provides:
    - Bridge transfers (/v1/transfers) and LP positions (/v1/liquidity-positions)
    - Route distribution, token preferences and cross-chain routes
    - LP pool distribution and performance metrics
    - Bridge/LP/combined scores, additive tier and LP bonus multiplier
    - Activity timeline (newest first)
    """

    service = "hop"
    label = "Hop"

    def __init__(self, base_url: Optional[str] = None, lp_cache_ttl: Optional[float] = None, **kwargs):
        settings = get_settings()
        kwargs.setdefault("timeout", settings.hop_timeout_s)
        kwargs.setdefault("max_retries", settings.hop_max_retries)
        kwargs.setdefault("retry_delay", settings.hop_retry_delay_s)
        kwargs.setdefault("cache_ttl", settings.hop_cache_ttl_s)
        super().__init__(base_url or settings.hop_api_url, **kwargs)
        self.lp_cache_ttl = lp_cache_ttl if lp_cache_ttl is not None else settings.hop_lp_cache_ttl_s

    async def fetch(self, address: str) -> BridgeAndLPActivityResult:
        """Full Hop analysis for an address, served from cache when fresh"""
        self.validate_address(address)
        self.fetch_count += 1

        cached = await self.cached("activity", address)
        if cached is not None:
            logger.debug(f"[Hop] Cache hit for {address}")
            return transform_hop_result(cached)

        transfers, positions = await asyncio.gather(
            self.get_bridge_history(address),
            self.get_lp_positions(address),
        )
        result = self.analyze(address, transfers, positions, self.now_ms())

        await self.remember("activity", address, result.model_dump(by_alias=True))
        metrics = result.eligibility_metrics
        logger.info(
            f"[Hop] {address}: {result.bridge_activity.total_transactions} transfers, "
            f"{result.lp_activity.total_positions} LP positions, "
            f"score {metrics.combined_score} ({metrics.tier})"
        )
        return result

    async def get_bridge_history(self, address: str) -> List[HopTransfer]:
        payload = await self._request(HOP_TRANSFERS_ENDPOINT, {"account": address})
        return parse_hop_transfers(payload, self.now_ms())

    async def get_lp_positions(self, address: str) -> List[HopLPPosition]:
        """LP positions change slowly, so they keep their own longer-lived cache entry"""
        cached = await self.cached("lp_positions", address)
        if cached is not None:
            return parse_hop_lp_positions(cached, self.now_ms())

        payload = await self._request(HOP_LP_POSITIONS_ENDPOINT, {"account": address})
        positions = parse_hop_lp_positions(payload, self.now_ms())
        await self.remember(
            "lp_positions",
            address,
            [p.model_dump(by_alias=True) for p in positions],
            ttl=self.lp_cache_ttl,
        )
        return positions

    # ------------------------------------------
    # Analysis
    # ------------------------------------------

    def analyze(
        self,
        address: str,
        transfers: List[HopTransfer],
        positions: List[HopLPPosition],
        now_ms: int,
    ) -> BridgeAndLPActivityResult:
        transfers = [tx for tx in transfers if tx.status != "failed"]

        with amount_context():
            bridge_activity = self.bridge_summary(transfers, now_ms)
            lp_activity, average_days = self.lp_summary(positions, now_ms)

            return BridgeAndLPActivityResult(
                address=address,
                bridge_activity=bridge_activity,
                lp_activity=lp_activity,
                cross_chain_routes=self.cross_chain_routes(transfers),
                eligibility_metrics=self.eligibility(bridge_activity, lp_activity, average_days),
                activity_timeline=self.timeline(transfers, positions),
            )

    def bridge_summary(self, transfers: List[HopTransfer], now_ms: int) -> BridgeActivitySummary:
        if not transfers:
            return BridgeActivitySummary()

        total_volume = sum((to_decimal(tx.amount) for tx in transfers), Decimal(0))
        total_fees = sum((to_decimal(tx.bonder_fee) for tx in transfers), Decimal(0))
        chains = {tx.source_chain_id for tx in transfers} | {tx.destination_chain_id for tx in transfers}

        routes = defaultdict(lambda: {"count": 0, "volume": Decimal(0), "fees": Decimal(0)})
        tokens = defaultdict(lambda: {"count": 0, "volume": Decimal(0)})
        for tx in transfers:
            route = routes[_route(tx)]
            route["count"] += 1
            route["volume"] += to_decimal(tx.amount)
            route["fees"] += to_decimal(tx.bonder_fee)
            tokens[tx.token]["count"] += 1
            tokens[tx.token]["volume"] += to_decimal(tx.amount)

        first = min(tx.timestamp for tx in transfers)
        last = max(tx.timestamp for tx in transfers)

        token_preferences = {}
        for token, data in tokens.items():
            share = 0
            if total_volume > 0:
                share = min(100, round_half_up(float(data["volume"] / total_volume * 100)))
            token_preferences[token] = DistributionEntry(
                count=data["count"], volume=money(data["volume"]), percentage=share
            )

        return BridgeActivitySummary(
            total_transactions=len(transfers),
            total_volume=money(total_volume),
            total_fees=money(total_fees),
            unique_chains=len(chains),
            unique_tokens=len(tokens),
            first_transaction=first,
            last_transaction=last,
            average_transaction_size=money(total_volume / len(transfers)),
            route_distribution={
                route: RouteDistributionEntry(
                    count=data["count"],
                    volume=money(data["volume"]),
                    average_fee=money(data["fees"] / data["count"]),
                )
                for route, data in routes.items()
            },
            token_preferences=token_preferences,
            activity_patterns=self.activity_patterns(transfers, total_volume, len(chains), first, last, now_ms),
        )

    def activity_patterns(
        self,
        transfers: List[HopTransfer],
        total_volume: Decimal,
        unique_chains: int,
        first: int,
        last: int,
        now_ms: int,
    ) -> ActivityPatterns:
        """Frequency and recency as of the fetch, so cached results stay stable"""
        monthly_frequency = len(transfers) / max((now_ms - first) / MS_PER_DAY / 30, 1)

        return ActivityPatterns(
            is_regular_user=(
                monthly_frequency >= ORBITER_REGULAR_USER["min_monthly_frequency"]
                and total_volume >= ORBITER_REGULAR_USER["min_volume"]
            ),
            average_frequency=round(monthly_frequency, 2),
            volume_consistency=round(volume_consistency([to_decimal(tx.amount) for tx in transfers]), 4),
            chain_diversity=round(min(1.0, unique_chains / len(HOP_CHAINS)), 4),
            recent_activity=(now_ms - last) <= RECENT_ACTIVITY_DAYS * MS_PER_DAY,
        )

    def cross_chain_routes(self, transfers: List[HopTransfer]) -> List[CrossChainRoute]:
        routes: Dict[str, Dict] = defaultdict(lambda: {"frequency": 0, "volume": Decimal(0), "tokens": set()})
        for tx in transfers:
            route = routes[_route(tx)]
            route["frequency"] += 1
            route["volume"] += to_decimal(tx.amount)
            route["tokens"].add(tx.token)

        result = [
            CrossChainRoute(
                route=route,
                frequency=data["frequency"],
                total_volume=money(data["volume"]),
                average_amount=money(data["volume"] / data["frequency"]),
                preferred_tokens=sorted(data["tokens"]),
            )
            for route, data in routes.items()
        ]
        result.sort(key=lambda r: r.frequency, reverse=True)
        return result

    def lp_summary(self, positions: List[HopLPPosition], now_ms: int):
        """Returns (summary, average position duration in fractional days)"""
        if not positions:
            return LPActivitySummary(), 0.0

        durations = [max(0.0, (now_ms - p.deposit_timestamp) / MS_PER_DAY) for p in positions]
        total_liquidity = sum((to_decimal(p.underlying_token_balance) for p in positions), Decimal(0))
        total_rewards = sum((to_decimal(p.rewards_hop) for p in positions), Decimal(0))
        active = sum(1 for p in positions if to_decimal(p.lp_token_balance) > 0)
        total_days = sum(durations)
        average_days = total_days / len(positions)

        pool_distribution = self.pool_distribution(positions, durations)
        best = max(positions, key=lambda p: p.apr)

        summary = LPActivitySummary(
            total_positions=len(positions),
            active_positions=active,
            total_liquidity_provided=money(total_liquidity),
            total_rewards_earned=money(total_rewards),
            average_position_duration=round_half_up(average_days),
            pool_distribution=pool_distribution,
            performance_metrics=LPPerformanceMetrics(
                total_time_providing=round_half_up(total_days),
                average_position_size=money(total_liquidity / len(positions)),
                best_performing_pool=best.token,
                total_impermanent_loss="0.00",
                net_profit_loss=money(total_rewards),
            ),
        )
        return summary, average_days

    def pool_distribution(self, positions: List[HopLPPosition], durations: List[float]) -> Dict[str, PoolPosition]:
        """One entry per token-chain pool; APR is weighted by liquidity"""
        pools = defaultdict(lambda: {"liquidity": Decimal(0), "rewards": Decimal(0), "days": 0.0, "apr_weight": 0.0, "aprs": []})
        for p, days in zip(positions, durations):
            pool = pools[f"{p.token}-{_hop_chain(p.chain_id)}"]
            liquidity = to_decimal(p.underlying_token_balance)
            pool["liquidity"] += liquidity
            pool["rewards"] += to_decimal(p.rewards_hop)
            pool["days"] = max(pool["days"], days)
            pool["apr_weight"] += p.apr * float(liquidity)
            pool["aprs"].append(p.apr)

        distribution = {}
        for key, pool in pools.items():
            if pool["liquidity"] > 0:
                apr = pool["apr_weight"] / float(pool["liquidity"])
            else:
                apr = sum(pool["aprs"]) / len(pool["aprs"])
            distribution[key] = PoolPosition(
                liquidity_provided=money(pool["liquidity"]),
                duration=round_half_up(pool["days"]),
                rewards_earned=money(pool["rewards"]),
                apr=round(apr, 2),
            )
        return distribution

    def eligibility(
        self,
        bridge: BridgeActivitySummary,
        lp: LPActivitySummary,
        average_days: float,
    ) -> HopEligibilityMetrics:
        n = self.normalizer
        bridge_volume = to_decimal(bridge.total_volume)
        liquidity = to_decimal(lp.total_liquidity_provided)

        combined = n.hop_combined_score(
            bridge_volume,
            bridge.total_transactions,
            liquidity,
            average_days,
            bridge.unique_chains,
            bridge.unique_tokens,
        )
        return HopEligibilityMetrics(
            bridge_score=n.hop_bridge_score(
                bridge_volume, bridge.total_transactions, bridge.unique_chains, bridge.unique_tokens
            ),
            lp_score=n.hop_lp_score(liquidity, average_days, lp.active_positions, lp.total_positions),
            combined_score=combined,
            tier=n.hop_tier(bridge_volume, bridge.total_transactions, liquidity, average_days),
            percentile_rank=n.hop_percentile(combined),
            lp_bonus_multiplier=n.lp_bonus_multiplier(average_days, liquidity, lp.total_positions),
        )

    def timeline(self, transfers: List[HopTransfer], positions: List[HopLPPosition]) -> List[TimelineEntry]:
        entries = [
            TimelineEntry(
                timestamp=tx.timestamp,
                type="bridge",
                amount=tx.amount,
                token=tx.token,
                chain=_hop_chain(tx.source_chain_id),
                details={
                    "destinationChain": _hop_chain(tx.destination_chain_id),
                    "transactionHash": tx.transaction_hash,
                    "bonderFee": tx.bonder_fee,
                },
            )
            for tx in transfers
        ]
        entries.extend(
            TimelineEntry(
                timestamp=p.deposit_timestamp,
                type="lp_deposit",
                amount=p.underlying_token_balance,
                token=p.token,
                chain=_hop_chain(p.chain_id),
                details={"poolAddress": p.pool_address, "lpTokenBalance": p.lp_token_balance},
            )
            for p in positions
            if to_decimal(p.lp_token_balance) > 0
        )
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries


hop_client = HopClient()
