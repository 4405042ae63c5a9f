"""Verification engines by picking mode."""

import random
from collections.abc import Callable

from station.verification.base import (
    ScanOutcome,
    ScanResult,
    VerificationEngine,
    VerificationError,
    VerificationState,
)
from station.verification.bulk import BulkVerification
from station.verification.singles import DEFAULT_SPOT_CHECK_RATE, SinglesVerification
from station.verification.standard import StandardVerification

__all__ = [
    "BulkVerification",
    "ScanOutcome",
    "ScanResult",
    "SinglesVerification",
    "StandardVerification",
    "VerificationEngine",
    "VerificationError",
    "VerificationState",
    "engine_for",
]


def engine_for(
    chunk: dict,
    random_source: Callable[[], float] = random.random,
    spot_check_rate: float = DEFAULT_SPOT_CHECK_RATE,
) -> VerificationEngine:
    """Pick the protocol for a chunk from its picking mode.

    Personalized chunks ship order by order whatever their batch type.
    """
    mode = chunk.get("picking_mode")
    if chunk.get("is_personalized"):
        return StandardVerification(chunk)
    if mode == "SINGLES":
        return SinglesVerification(chunk, random_source=random_source, spot_check_rate=spot_check_rate)
    if mode == "BULK":
        return BulkVerification(chunk)
    return StandardVerification(chunk)
