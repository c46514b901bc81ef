"""
Resilience Module

Availability gating for cache tier backends.
"""

from trustcache.core.resilience.tier_health import GateState, TierHealthGate

__all__ = ["GateState", "TierHealthGate"]
