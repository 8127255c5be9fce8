"""Timebutler adapter: form-encoded REST returning semicolon-separated text."""

from __future__ import annotations

import datetime
import logging
from decimal import Decimal, InvalidOperation

import httpx

from peopleflow.models.enums import AbsenceStatus, AbsenceType, TimeEntrySource
from peopleflow.providers.base import (
    HttpProvider,
    ProviderCapabilities,
    RemoteAbsence,
    RemotePerson,
)

logger = logging.getLogger(__name__)

TIMEBUTLER_BASE_URL = "https://app.timebutler.com"

USER_MIN_FIELDS = 17
ABSENCE_MIN_FIELDS = 15


def parse_date(value: str) -> datetime.date | None:
    """Parse ``dd/mm/yyyy``; empty or malformed values yield None."""
    value = value.strip()
    if not value:
        return None
    try:
        return datetime.datetime.strptime(value, "%d/%m/%Y").date()
    except ValueError:
        return None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "ja")


def _parse_decimal(value: str) -> Decimal | None:
    value = value.strip().replace(",", ".")
    if not value:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        return None


def _rows(payload: str, min_fields: int) -> list[list[str]]:
    """Data rows of a semicolon table, header and short rows skipped."""
    rows = []
    for number, line in enumerate(payload.splitlines()):
        if number == 0 or not line.strip():
            continue
        fields = [f.strip().strip('"') for f in line.split(";")]
        if len(fields) < min_fields:
            logger.debug("Skipping row with %d fields: %r", len(fields), line)
            continue
        rows.append(fields)
    return rows


def map_absence_type(code: str) -> AbsenceType:
    lowered = code.lower()
    if "sick" in lowered or "krank" in lowered:
        return AbsenceType.SICK
    if "special" in lowered:
        return AbsenceType.SPECIAL
    return AbsenceType.VACATION


def map_absence_status(code: str) -> AbsenceStatus:
    lowered = code.strip().lower()
    if lowered == "requested":
        return AbsenceStatus.REQUESTED
    if lowered in ("rejected", "declined"):
        return AbsenceStatus.REJECTED
    if lowered == "cancelled":
        return AbsenceStatus.CANCELLED
    return AbsenceStatus.APPROVED


def parse_users(payload: str, today: datetime.date | None = None) -> list[RemotePerson]:
    """Parse the users table.

    Columns: 0 id, 1 last name, 2 first name, 3 employee number, 4 email,
    13 account locked, 15 entry date, 16 separation date.
    """
    today = today or datetime.date.today()
    people = []
    for fields in _rows(payload, USER_MIN_FIELDS):
        email = fields[4]
        if not email:
            continue
        exit_date = parse_date(fields[16])
        locked = _parse_bool(fields[13])
        people.append(
            RemotePerson(
                provider_id=fields[0],
                email=email,
                first_name=fields[2],
                last_name=fields[1],
                employee_number=fields[3] or None,
                active=not locked and (exit_date is None or exit_date > today),
                hire_date=parse_date(fields[15]),
                exit_date=exit_date,
            )
        )
    return people


def parse_absences(payload: str) -> list[RemoteAbsence]:
    """Parse the absences table.

    Columns: 0 id, 1 start, 2 end, 3 half day, 5 user id, 6 employee
    number, 7 type, 9 status, 11 workdays, 14 comment.
    """
    absences = []
    for fields in _rows(payload, ABSENCE_MIN_FIELDS):
        absence_id, user_id = fields[0], fields[5]
        start, end = parse_date(fields[1]), parse_date(fields[2])
        if not absence_id or not user_id or start is None or end is None:
            logger.debug("Skipping absence row without id, user or dates: %r", fields)
            continue
        absences.append(
            RemoteAbsence(
                foreign_key=absence_id,
                person_id=user_id,
                absence_type=map_absence_type(fields[7]),
                status=map_absence_status(fields[9]),
                start_date=start,
                end_date=end,
                half_day=_parse_bool(fields[3]),
                days=_parse_decimal(fields[11]),
                employee_number=fields[6] or None,
                comment=fields[14] or None,
            )
        )
    return absences


class TimebutlerProvider(HttpProvider):
    """Users and absences from Timebutler."""

    source = TimeEntrySource.PROVIDER_A
    base_url = TIMEBUTLER_BASE_URL

    def __init__(
        self,
        api_key: str,
        timeout: float = 15.0,
        client: httpx.Client | None = None,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        super().__init__(timeout=timeout, client=client)

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(people=True, absences=True)

    def _fetch(self, path: str, **params: str) -> str:
        return self._post(path, data={"auth": self.api_key, **params}).text

    def test_connection(self) -> bool:
        self._fetch("/api/v1/users")
        return True

    def list_people(self) -> list[RemotePerson]:
        return parse_users(self._fetch("/api/v1/users"))

    def list_absences(self, year: int) -> list[RemoteAbsence]:
        return parse_absences(
            self._fetch("/api/v1/absences", year=str(year), detailed="true")
        )
