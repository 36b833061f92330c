"""
FusionSwap Resolver Registry

An authority-controlled allow-list. Fill and forced cancel are open only
to registered resolvers; the authority itself can be rotated.
"""

from fusionswap.registry.allowlist import ResolverRegistry

__all__ = ["ResolverRegistry"]
