"""123erfasst adapter: GraphQL over HTTPS with HTTP Basic authentication."""

from __future__ import annotations

import datetime
import logging
from typing import Any

import httpx

from peopleflow.calculators.types import span_hours
from peopleflow.errors import ProviderAuthError, ProviderTransportError
from peopleflow.models.enums import TimeEntrySource
from peopleflow.providers.base import (
    HttpProvider,
    ProviderCapabilities,
    RemotePerson,
    RemotePlanning,
    RemoteTimeRecord,
)

logger = logging.getLogger(__name__)

ERFASST_BASE_URL = "https://server.123erfasst.de"
GRAPHQL_PATH = "/api/graphql"

CONNECTION_QUERY = "query { persons { totalCount } }"

PERSONS_QUERY = (
    "query { persons { nodes { ident firstname lastname mail "
    "employee { isActive hireDate exitDate } } totalCount } }"
)

TIMES_QUERY = (
    "query GetStaffTimes($filter: TimeCollectionFilter) { times(filter: $filter) { "
    "nodes { fid person { ident firstname lastname mail } project { id name } "
    "date timeStart timeEnd activity { ident name } wageType { ident name } } "
    "totalCount } }"
)

PLANNINGS_QUERY = (
    "query GetPlannings($filter: PlanningFilter) { plannings(filter: $filter) { "
    "nodes { project { id name } persons { ident firstname lastname mail } "
    "dateStart dateEnd } totalCount } }"
)

DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%Y/%m/%d")
DATETIME_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S")
TIME_FORMATS = ("%H:%M:%S", "%H:%M")


def parse_date(value: str | None) -> datetime.date | None:
    """Parse ISO, German and slash dates, or an RFC 3339 timestamp."""
    if not value:
        return None
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    parsed = _parse_rfc3339(value)
    return parsed.date() if parsed else None


def _parse_rfc3339(value: str) -> datetime.datetime | None:
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    # Wall-clock time is kept; offsets are not normalized
    return parsed.replace(tzinfo=None)


def parse_timestamp(value: str | None, day: datetime.date | None) -> datetime.datetime | None:
    """Parse a full timestamp, or a clock time combined with ``day``."""
    if not value:
        return None
    value = value.strip()
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.datetime.strptime(value, fmt)
        except ValueError:
            continue
    parsed = _parse_rfc3339(value)
    if parsed is not None:
        return parsed
    if day is not None:
        for fmt in TIME_FORMATS:
            try:
                clock = datetime.datetime.strptime(value, fmt).time()
            except ValueError:
                continue
            return datetime.datetime.combine(day, clock)
    return None


def _person_from_node(node: dict[str, Any]) -> RemotePerson:
    employee = node.get("employee") or {}
    return RemotePerson(
        provider_id=str(node.get("ident") or ""),
        email=node.get("mail"),
        first_name=node.get("firstname") or "",
        last_name=node.get("lastname") or "",
        active=bool(employee.get("isActive", True)),
        hire_date=parse_date(employee.get("hireDate")),
        exit_date=parse_date(employee.get("exitDate")),
    )


def parse_time_nodes(nodes: list[dict[str, Any]]) -> list[RemoteTimeRecord]:
    """Convert ``times`` nodes; nodes without id, date or a valid span are skipped."""
    records = []
    for node in nodes:
        fid = node.get("fid")
        day = parse_date(node.get("date"))
        start = parse_timestamp(node.get("timeStart"), day)
        end = parse_timestamp(node.get("timeEnd"), day)
        if not fid or day is None or start is None or end is None:
            logger.warning("Skipping time node with unparseable fields: %s", node)
            continue
        if end <= start:
            logger.warning("Skipping time node %s with non-positive span", fid)
            continue
        person = node.get("person") or {}
        project = node.get("project") or {}
        activity = node.get("activity") or {}
        wage_type = node.get("wageType") or {}
        records.append(
            RemoteTimeRecord(
                foreign_key=str(fid),
                person_id=str(person.get("ident") or ""),
                person_email=person.get("mail"),
                work_date=day,
                start_at=start,
                end_at=end,
                duration_hours=span_hours(start, end),
                project_ref=str(project.get("id") or ""),
                project_name=project.get("name") or "",
                activity_ref=activity.get("name") or "",
                wage_type=wage_type.get("name") or "",
            )
        )
    return records


def parse_planning_nodes(nodes: list[dict[str, Any]]) -> list[RemotePlanning]:
    plannings = []
    for node in nodes:
        project = node.get("project") or {}
        start = parse_date(node.get("dateStart"))
        end = parse_date(node.get("dateEnd"))
        if not project.get("id") or start is None or end is None:
            logger.warning("Skipping planning node with missing project or dates: %s", node)
            continue
        plannings.append(
            RemotePlanning(
                project_id=str(project["id"]),
                project_name=project.get("name") or "",
                start_date=start,
                end_date=end,
                persons=tuple(_person_from_node(p) for p in node.get("persons") or []),
            )
        )
    return plannings


class ErfasstProvider(HttpProvider):
    """People, time records and project plannings from 123erfasst."""

    source = TimeEntrySource.PROVIDER_B
    base_url = ERFASST_BASE_URL

    def __init__(
        self,
        credentials: str,
        timeout: float = 15.0,
        client: httpx.Client | None = None,
    ):
        email, sep, password = credentials.partition(":")
        if not sep or not email or not password:
            raise ValueError("credentials must have the form 'email:password'")
        self.auth = httpx.BasicAuth(email, password)
        super().__init__(timeout=timeout, client=client)

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(people=True, times=True, plannings=True)

    def _query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables
        response = self._post(GRAPHQL_PATH, json=payload, auth=self.auth)
        try:
            body = response.json()
        except ValueError as e:
            raise ProviderTransportError(self.name, "response is not JSON") from e

        errors = body.get("errors")
        if errors:
            message = "; ".join(str(err.get("message", err)) for err in errors)
            if "auth" in message.lower():
                raise ProviderAuthError(self.name, message)
            raise ProviderTransportError(self.name, message)
        data = body.get("data")
        if not isinstance(data, dict):
            raise ProviderTransportError(self.name, "response has no data")
        return data

    @staticmethod
    def _nodes(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
        collection = data.get(key) or {}
        return list(collection.get("nodes") or [])

    def test_connection(self) -> bool:
        self._query(CONNECTION_QUERY)
        return True

    def list_people(self) -> list[RemotePerson]:
        return [_person_from_node(n) for n in self._nodes(self._query(PERSONS_QUERY), "persons")]

    def list_times(
        self, date_from: datetime.date, date_to: datetime.date
    ) -> list[RemoteTimeRecord]:
        variables = {
            "filter": {
                "date": {
                    "_gte": f"{date_from.isoformat()}T00:00:00Z",
                    "_lte": f"{date_to.isoformat()}T23:59:59Z",
                }
            }
        }
        return parse_time_nodes(self._nodes(self._query(TIMES_QUERY, variables), "times"))

    def list_plannings(
        self, date_from: datetime.date, date_to: datetime.date
    ) -> list[RemotePlanning]:
        variables = {
            "filter": {
                "dateFrom": {
                    "_gte": f"{date_from.isoformat()}T00:00:00Z",
                    "_lte": f"{date_to.isoformat()}T23:59:59Z",
                }
            }
        }
        return parse_planning_nodes(
            self._nodes(self._query(PLANNINGS_QUERY, variables), "plannings")
        )
