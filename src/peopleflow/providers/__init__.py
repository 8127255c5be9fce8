"""Provider adapters for external HR and time-tracking services."""

from __future__ import annotations

from peopleflow.models.enums import TimeEntrySource
from peopleflow.providers.base import (
    HttpProvider,
    ProviderCapabilities,
    RemoteAbsence,
    RemotePerson,
    RemotePlanning,
    RemoteTimeRecord,
    TimeTrackingProvider,
)
from peopleflow.providers.erfasst import ErfasstProvider
from peopleflow.providers.timebutler import TimebutlerProvider

# Adapter class per provider key; a new provider only needs an entry here
PROVIDERS: dict[str, type[HttpProvider]] = {
    TimeEntrySource.PROVIDER_A.value: TimebutlerProvider,
    TimeEntrySource.PROVIDER_B.value: ErfasstProvider,
}


def create_provider(provider: str, credentials: str, timeout: float = 15.0) -> TimeTrackingProvider:
    """Instantiate the adapter registered for ``provider``."""
    try:
        adapter = PROVIDERS[provider]
    except KeyError:
        raise ValueError(f"Unknown provider: {provider}") from None
    return adapter(credentials, timeout=timeout)


__all__ = [
    "ErfasstProvider",
    "HttpProvider",
    "PROVIDERS",
    "ProviderCapabilities",
    "RemoteAbsence",
    "RemotePerson",
    "RemotePlanning",
    "RemoteTimeRecord",
    "TimeTrackingProvider",
    "TimebutlerProvider",
    "create_provider",
]
