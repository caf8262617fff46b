"""
Data Sources Package
Bridge protocol adapters (Orbiter Finance, Hop Protocol)
"""

from .base import ProtocolAdapter, is_valid_address
from .orbiter import orbiter_client, OrbiterClient
from .hop import hop_client, HopClient

__all__ = [
    "ProtocolAdapter",
    "is_valid_address",
    "orbiter_client",
    "OrbiterClient",
    "hop_client",
    "HopClient",
]
