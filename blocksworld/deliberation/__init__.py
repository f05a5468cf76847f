"""Deliberation layer: conflict detection, negotiation and per-cycle decisions."""

from blocksworld.deliberation.conflicts import ConflictDetector, detect
from blocksworld.deliberation.manager import DeliberationManager, DeliberationResult
from blocksworld.deliberation.negotiation import Negotiation, NegotiationProtocol, UtilityScore

__all__ = [
    "ConflictDetector",
    "DeliberationManager",
    "DeliberationResult",
    "Negotiation",
    "NegotiationProtocol",
    "UtilityScore",
    "detect",
]
