"""Error taxonomy for provider and refresh failures."""
from __future__ import annotations


class ChainPulseError(Exception):
    """Base class for all chainpulse errors."""


class ProviderUnavailable(ChainPulseError):
    """A single provider call failed (timeout, network, non-2xx, bad body)."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class MalformedPayload(ProviderUnavailable):
    """Provider answered, but not in the shape its normalizer expects."""


class RefreshFailed(ChainPulseError):
    """Every provider in the fallback chain failed for one refresh cycle."""

    def __init__(self, failures: list[ProviderUnavailable]) -> None:
        detail = "; ".join(str(f) for f in failures) or "no providers configured"
        super().__init__(f"All providers failed: {detail}")
        self.failures = list(failures)
