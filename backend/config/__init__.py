# Config package
from config.settings import Settings, get_settings
from config.bridges import (
    TIERS,
    OVERALL_TIER_BREAKPOINTS,
    ORBITER_CHAINS,
    HOP_CHAINS,
    HOP_TOKENS,
    chain_name,
)
