"""Base protocol and types for time-tracking provider adapters.

All provider adapters implement the TimeTrackingProvider protocol. The
import pipeline uses them without knowing provider-specific wire formats;
adding a provider means adding an adapter and registering it.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

import httpx

from peopleflow.errors import ProviderAuthError, ProviderTransportError
from peopleflow.models.enums import AbsenceStatus, AbsenceType, TimeEntrySource


@dataclass(frozen=True)
class ProviderCapabilities:
    """Record kinds a provider can deliver."""

    people: bool = True
    times: bool = False
    absences: bool = False
    plannings: bool = False


@dataclass(frozen=True)
class RemotePerson:
    """A person as reported by a provider."""

    provider_id: str
    email: str | None
    first_name: str = ""
    last_name: str = ""
    employee_number: str | None = None
    active: bool = True
    hire_date: datetime.date | None = None
    exit_date: datetime.date | None = None

    @property
    def normalized_email(self) -> str | None:
        return self.email.strip().lower() if self.email and self.email.strip() else None


@dataclass(frozen=True)
class RemoteTimeRecord:
    """A tracked time span; ``foreign_key`` is the provider's record id."""

    foreign_key: str
    person_id: str
    person_email: str | None
    work_date: datetime.date
    start_at: datetime.datetime
    end_at: datetime.datetime
    duration_hours: Decimal
    project_ref: str = ""
    project_name: str = ""
    activity_ref: str = ""
    wage_type: str = ""


@dataclass(frozen=True)
class RemoteAbsence:
    """An absence as reported by a provider."""

    foreign_key: str
    person_id: str
    absence_type: AbsenceType
    status: AbsenceStatus
    start_date: datetime.date
    end_date: datetime.date
    half_day: bool = False
    days: Decimal | None = None
    employee_number: str | None = None
    person_email: str | None = None
    comment: str | None = None


@dataclass(frozen=True)
class RemotePlanning:
    """A project planning covering one or more people."""

    project_id: str
    project_name: str
    start_date: datetime.date
    end_date: datetime.date
    persons: tuple[RemotePerson, ...] = field(default_factory=tuple)

    def foreign_key_for(self, person: RemotePerson) -> str:
        parts = (
            self.project_id,
            self.start_date.isoformat(),
            self.end_date.isoformat(),
            person.provider_id,
        )
        return ":".join(parts)


class TimeTrackingProvider(Protocol):
    """Protocol for provider adapters."""

    source: TimeEntrySource

    def capabilities(self) -> ProviderCapabilities:
        """Return the record kinds this provider supports."""
        ...

    def test_connection(self) -> bool:
        """Check the stored credentials with a cheap request.

        Raises:
            ProviderAuthError: credentials were rejected.
            ProviderTransportError: the provider could not be reached.
        """
        ...

    def list_people(self) -> list[RemotePerson]:
        ...

    def list_times(self, date_from: datetime.date, date_to: datetime.date) -> list[RemoteTimeRecord]:
        ...

    def list_absences(self, year: int) -> list[RemoteAbsence]:
        ...

    def list_plannings(
        self, date_from: datetime.date, date_to: datetime.date
    ) -> list[RemotePlanning]:
        ...

    def close(self) -> None:
        ...


class HttpProvider:
    """Shared HTTP plumbing: one client per adapter and error mapping."""

    source: TimeEntrySource
    base_url: str = ""

    def __init__(
        self,
        timeout: float = 15.0,
        client: httpx.Client | None = None,
    ):
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout)

    @property
    def name(self) -> str:
        return self.source.value

    def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.client.post(f"{self.base_url}{path}", **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderTransportError(self.name, f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderTransportError(self.name, f"request failed: {e}") from e

        if response.status_code in (401, 403):
            raise ProviderAuthError(self.name, f"HTTP {response.status_code}")
        if response.status_code != 200:
            raise ProviderTransportError(self.name, f"HTTP {response.status_code}")
        return response

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> HttpProvider:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # Unsupported record kinds return nothing
    def list_times(self, date_from: datetime.date, date_to: datetime.date) -> list[RemoteTimeRecord]:
        return []

    def list_absences(self, year: int) -> list[RemoteAbsence]:
        return []

    def list_plannings(
        self, date_from: datetime.date, date_to: datetime.date
    ) -> list[RemotePlanning]:
        return []
