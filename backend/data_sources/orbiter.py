"""
Orbiter Finance Client
Fetches bridge history for a wallet and derives activity patterns and eligibility.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from config.bridges import (
    ORBITER_CHAIN_REFERENCE,
    ORBITER_CHAINS,
    ORBITER_HISTORY_ENDPOINT,
    ORBITER_HISTORY_PAGE_SIZE,
    ORBITER_REGULAR_USER,
    RECENT_ACTIVITY_DAYS,
    chain_name,
)
from config.settings import get_settings
from data_sources.base import ProtocolAdapter
from services.bridge_transform import (
    amount_context,
    money,
    parse_orbiter_transactions,
    to_decimal,
    transform_orbiter_result,
)
from services.models import (
    ActivityPatterns,
    DistributionEntry,
    MonthlyActivity,
    OrbiterTransaction,
    ProtocolActivityResult,
    RoutePattern,
)
from services.score_normalizer import MS_PER_DAY, round_half_up, volume_consistency

logger = logging.getLogger(__name__)


def _percentage(part: Decimal, total: Decimal) -> int:
    if total <= 0:
        return 0
    return min(100, round_half_up(float(part / total * 100)))


class OrbiterClient(ProtocolAdapter):
    """
    Orbiter Finance bridge adapter.

    Provides:
    - Bridge history for an address (/bridge/history)
    - Route, chain, token and monthly activity patterns
    - AND-gated tier and weighted eligibility score
    """

    service = "orbiter"
    label = "Orbiter"

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        settings = get_settings()
        kwargs.setdefault("timeout", settings.orbiter_timeout_s)
        kwargs.setdefault("max_retries", settings.orbiter_max_retries)
        kwargs.setdefault("retry_delay", settings.orbiter_retry_delay_s)
        kwargs.setdefault("cache_ttl", settings.orbiter_cache_ttl_s)
        super().__init__(base_url or settings.orbiter_api_url, **kwargs)

    async def fetch(self, address: str) -> ProtocolActivityResult:
        """Full Orbiter analysis for an address, served from cache when fresh"""
        self.validate_address(address)
        self.fetch_count += 1

        cached = await self.cached("activity", address)
        if cached is not None:
            logger.debug(f"[Orbiter] Cache hit for {address}")
            return transform_orbiter_result(cached)

        transactions = await self.get_bridge_history(address)
        result = self.analyze(address, transactions, self.now_ms())

        await self.remember("activity", address, result.model_dump(by_alias=True))
        logger.info(
            f"[Orbiter] {address}: {result.total_transactions} tx, "
            f"score {result.eligibility_score} ({result.tier})"
        )
        return result

    async def get_bridge_history(self, address: str) -> List[OrbiterTransaction]:
        payload = await self._request(
            ORBITER_HISTORY_ENDPOINT,
            {"address": address, "limit": ORBITER_HISTORY_PAGE_SIZE, "offset": 0},
        )
        return parse_orbiter_transactions(payload, self.now_ms())

    # ------------------------------------------
    # Analysis
    # ------------------------------------------

    def analyze(
        self,
        address: str,
        transactions: List[OrbiterTransaction],
        now_ms: int,
    ) -> ProtocolActivityResult:
        txs = [tx for tx in transactions if tx.status != "failed"]
        if not txs:
            return ProtocolActivityResult(address=address)

        with amount_context():
            return self._summarize(address, txs, now_ms)

    def _summarize(self, address: str, txs: List[OrbiterTransaction], now_ms: int) -> ProtocolActivityResult:
        amounts = [to_decimal(tx.from_amount) for tx in txs]
        total_volume = sum(amounts, Decimal(0))
        total_fees = sum((to_decimal(tx.fee) for tx in txs), Decimal(0))
        unique_chains = len({str(tx.from_chain) for tx in txs})
        unique_tokens = len({tx.from_token for tx in txs})
        first = min(tx.timestamp for tx in txs)
        last = max(tx.timestamp for tx in txs)

        patterns = self.analyze_patterns(txs, total_volume)
        activity = self.activity_patterns(txs, amounts, total_volume, unique_chains, first, last, now_ms)

        score = self.normalizer.orbiter_score(total_volume, len(txs), unique_chains, first, last, now_ms)
        tier = self.normalizer.orbiter_tier(total_volume, len(txs), unique_chains)

        return ProtocolActivityResult(
            address=address,
            total_transactions=len(txs),
            total_volume=money(total_volume),
            total_fees=money(total_fees),
            unique_chains=unique_chains,
            unique_tokens=unique_tokens,
            first_transaction=first,
            last_transaction=last,
            average_transaction_size=money(total_volume / len(txs)),
            eligibility_score=score,
            tier=tier,
            percentile_rank=self.normalizer.orbiter_percentile(score),
            activity_patterns=activity,
            **patterns,
        )

    def analyze_patterns(self, txs: List[OrbiterTransaction], total_volume: Decimal) -> Dict:
        routes = defaultdict(lambda: {"count": 0, "volume": Decimal(0), "fees": Decimal(0)})
        chains = defaultdict(lambda: {"count": 0, "volume": Decimal(0)})
        tokens = defaultdict(lambda: {"count": 0, "volume": Decimal(0)})
        months = defaultdict(lambda: {"count": 0, "volume": Decimal(0), "chains": set()})

        for tx in txs:
            volume = to_decimal(tx.from_amount)
            from_name = chain_name(tx.from_chain, ORBITER_CHAINS)
            to_name = chain_name(tx.to_chain, ORBITER_CHAINS)

            route = routes[(from_name, to_name)]
            route["count"] += 1
            route["volume"] += volume
            route["fees"] += to_decimal(tx.fee)

            chains[from_name]["count"] += 1
            chains[from_name]["volume"] += volume

            tokens[tx.from_token]["count"] += 1
            tokens[tx.from_token]["volume"] += volume

            month_key = datetime.fromtimestamp(tx.timestamp / 1000, tz=timezone.utc).strftime("%Y-%m")
            months[month_key]["count"] += 1
            months[month_key]["volume"] += volume
            months[month_key]["chains"].add(str(tx.from_chain))

        route_patterns = [
            RoutePattern(
                from_chain=from_name,
                to_chain=to_name,
                count=data["count"],
                volume=money(data["volume"]),
                avg_fee=money(data["fees"] / data["count"]),
            )
            for (from_name, to_name), data in routes.items()
        ]
        route_patterns.sort(key=lambda r: r.count, reverse=True)

        return {
            "route_patterns": route_patterns,
            "chain_distribution": {
                name: DistributionEntry(
                    count=data["count"],
                    volume=money(data["volume"]),
                    percentage=_percentage(data["volume"], total_volume),
                )
                for name, data in chains.items()
            },
            "token_distribution": {
                token: DistributionEntry(
                    count=data["count"],
                    volume=money(data["volume"]),
                    percentage=_percentage(data["volume"], total_volume),
                )
                for token, data in tokens.items()
            },
            "monthly_activity": [
                MonthlyActivity(
                    month=month,
                    count=data["count"],
                    volume=money(data["volume"]),
                    unique_chains=len(data["chains"]),
                )
                for month, data in sorted(months.items())
            ],
        }

    def activity_patterns(
        self,
        txs: List[OrbiterTransaction],
        amounts: List[Decimal],
        total_volume: Decimal,
        unique_chains: int,
        first: int,
        last: int,
        now_ms: int,
    ) -> ActivityPatterns:
        days_since_first = (now_ms - first) / MS_PER_DAY
        monthly_frequency = len(txs) / max(days_since_first / 30, 1)

        return ActivityPatterns(
            is_regular_user=(
                monthly_frequency >= ORBITER_REGULAR_USER["min_monthly_frequency"]
                and total_volume >= ORBITER_REGULAR_USER["min_volume"]
            ),
            average_frequency=round(monthly_frequency, 2),
            volume_consistency=round(volume_consistency(amounts), 4),
            chain_diversity=round(min(1.0, unique_chains / ORBITER_CHAIN_REFERENCE), 4),
            recent_activity=(now_ms - last) <= RECENT_ACTIVITY_DAYS * MS_PER_DAY,
        )


orbiter_client = OrbiterClient()
