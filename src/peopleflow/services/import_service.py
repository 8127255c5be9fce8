"""Import pipeline: pulls provider data and writes it through the stores.

For each integration the pipeline fetches people first, matches them to
local employees and then imports time records, absences and project
plannings for the matched ones. Every write goes through a store keyed by
``(source, foreign_key)``, so re-running an import is safe and a run aborted
by a transport error can simply be retried on the next tick.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from peopleflow.config import Settings, get_settings
from peopleflow.errors import (
    ConflictError,
    InvalidInputError,
    ProviderAuthError,
    ProviderTransportError,
    SyncCancelledError,
)
from peopleflow.models import Employee, EmployeeStatus, Integration, TimeEntrySource
from peopleflow.providers import (
    RemoteAbsence,
    RemotePerson,
    RemotePlanning,
    RemoteTimeRecord,
    TimeTrackingProvider,
    create_provider,
)
from peopleflow.services.absence_service import AbsenceStore, ImportedAbsence
from peopleflow.services.activity_service import ActivityService, ActivityType
from peopleflow.services.assignment_service import ProjectAssignmentStore
from peopleflow.services.integration_service import IntegrationService, ProviderFactory
from peopleflow.services.locking_service import EmployeeLockRegistry, employee_locks
from peopleflow.services.time_entry_service import TimeEntryInput, TimeEntryStore

logger = logging.getLogger(__name__)

# Employee attribute holding the foreign identity per provider
EXTERNAL_ID_FIELDS = {
    TimeEntrySource.PROVIDER_A: "timebutler_user_id",
    TimeEntrySource.PROVIDER_B: "erfasst_person_id",
}


@dataclass
class ProviderSyncResult:
    """Outcome of one provider run."""

    provider: str
    started_at: datetime
    finished_at: datetime | None = None
    date_from: date | None = None
    date_to: date | None = None
    people_matched: int = 0
    people_unmatched: int = 0
    employees_updated: int = 0
    entries_created: int = 0
    entries_updated: int = 0
    entries_suppressed: int = 0
    absences_created: int = 0
    absences_updated: int = 0
    assignments_created: int = 0
    assignments_updated: int = 0
    records_skipped: int = 0
    error_code: str | None = None
    error: str | None = None
    skipped: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether the provider run completed."""
        return self.error_code is None

    def summary(self) -> dict[str, Any]:
        return {
            "people_matched": self.people_matched,
            "employees_updated": self.employees_updated,
            "entries_created": self.entries_created,
            "entries_updated": self.entries_updated,
            "entries_suppressed": self.entries_suppressed,
            "absences_created": self.absences_created,
            "absences_updated": self.absences_updated,
            "assignments_created": self.assignments_created,
            "assignments_updated": self.assignments_updated,
            "records_skipped": self.records_skipped,
        }


class EmployeeMatcher:
    """Resolves remote identities to local employees.

    Lowercased email is the primary key; the stored provider id and the
    employee number are consulted when the email does not match.
    """

    def __init__(self, employees: Iterable[Employee], source: TimeEntrySource):
        self.source = source
        id_field = EXTERNAL_ID_FIELDS.get(source)
        self.by_email: dict[str, Employee] = {}
        self.by_external_id: dict[str, Employee] = {}
        self.by_number: dict[str, Employee] = {}
        for employee in employees:
            if employee.email:
                self.by_email[employee.email.strip().lower()] = employee
            external_id = getattr(employee, id_field) if id_field else None
            if external_id:
                self.by_external_id[external_id] = employee
            if employee.employee_number:
                self.by_number[employee.employee_number] = employee

    def match(
        self,
        email: str | None = None,
        external_id: str | None = None,
        employee_number: str | None = None,
    ) -> Employee | None:
        if email and email.strip():
            employee = self.by_email.get(email.strip().lower())
            if employee is not None:
                return employee
        if external_id and external_id in self.by_external_id:
            return self.by_external_id[external_id]
        if employee_number and employee_number in self.by_number:
            return self.by_number[employee_number]
        return None

    def learn(self, person: RemotePerson, employee: Employee) -> None:
        """Remember a person id matched through another key."""
        if person.provider_id:
            self.by_external_id[person.provider_id] = employee


class ImportPipeline:
    """Runs provider imports for configured integrations."""

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        provider_factory: ProviderFactory = create_provider,
        stop_event: threading.Event | None = None,
        locks: EmployeeLockRegistry | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.stop_event = stop_event
        self.locks = locks or employee_locks
        self.today = today
        self.integrations = IntegrationService(session, self.settings, provider_factory)
        self.time_entries = TimeEntryStore(session, self.locks)
        self.absences = AbsenceStore(session, self.settings, self.locks)
        self.assignments = ProjectAssignmentStore(session, self.locks)
        self.activity = ActivityService(session)

    def checkpoint(self) -> None:
        """Abort between provider responses when a stop was requested."""
        if self.stop_event is not None and self.stop_event.is_set():
            raise SyncCancelledError("sync cancelled")

    def resolve_window(self, integration: Integration) -> tuple[date, date]:
        """``(max(sync start, configured cutoff), today)``."""
        today = self.today()
        date_from = integration.sync_start_date or date(today.year, 1, 1)
        cutoff = self.settings.sync_cutoff_date
        if cutoff is not None and cutoff > date_from:
            date_from = cutoff
        return date_from, today

    def sync_all(self, auto_sync_only: bool = False) -> list[ProviderSyncResult]:
        """Run every active integration (or only those with auto-sync)."""
        if auto_sync_only:
            integrations = self.integrations.list_auto_sync()
        else:
            integrations = [i for i in self.integrations.list_all() if i.active]
        results = []
        for integration in integrations:
            self.checkpoint()
            results.append(self.sync_integration(integration))
        return results

    def sync_provider(self, provider: str) -> ProviderSyncResult:
        """Run one provider on demand.

        Raises:
            NotFoundError: the provider is not configured.
            ConflictError: the integration is inactive.
        """
        integration = self.integrations.get(provider)
        if not integration.active:
            raise ConflictError(f"integration {provider} is inactive", provider=provider)
        return self.sync_integration(integration)

    def sync_integration(self, integration: Integration) -> ProviderSyncResult:
        """Import everything one provider offers.

        Transport errors end this provider's run and keep what was written
        so far. Authentication errors also deactivate the integration.
        Cancellation propagates as SyncCancelledError.
        """
        source = TimeEntrySource(integration.provider)
        result = ProviderSyncResult(provider=integration.provider, started_at=datetime.now())
        result.date_from, result.date_to = self.resolve_window(integration)
        logger.info(
            "Syncing %s from %s to %s", integration.provider, result.date_from, result.date_to
        )

        try:
            provider = self.integrations.build_provider(integration)
            try:
                self._run(provider, source, result)
            finally:
                provider.close()
        except ProviderAuthError as e:
            result.error_code, result.error = e.code, e.message
            self.integrations.deactivate(integration, e)
            return self._finish(integration, result)
        except ProviderTransportError as e:
            result.error_code, result.error = e.code, e.message
            self.integrations.record_failure(integration, e)
            logger.warning("Sync of %s aborted: %s", integration.provider, e.message)
            return self._finish(integration, result)

        self.integrations.mark_synced(integration, datetime.now())
        return self._finish(integration, result)

    def remove_duplicates(self) -> int:
        """Collapse duplicate time entries of every employee."""
        removed = 0
        for employee_id in self.session.scalars(select(Employee.employee_id)).all():
            removed += self.time_entries.remove_duplicates(employee_id)
        if removed:
            self.activity.record(
                ActivityType.DUPLICATES_REMOVED,
                f"Removed {removed} duplicate time entries",
                removed=removed,
            )
        return removed

    def _run(
        self,
        provider: TimeTrackingProvider,
        source: TimeEntrySource,
        result: ProviderSyncResult,
    ) -> None:
        capabilities = provider.capabilities()
        date_from, date_to = result.date_from, result.date_to
        assert date_from is not None and date_to is not None

        people = provider.list_people()
        self.checkpoint()
        matcher = EmployeeMatcher(self._local_employees(), source)
        inactive_ids = self._sync_people(people, matcher, source, result)

        if date_from > date_to:
            logger.info("Sync window for %s is empty", source.value)
            return

        if capabilities.times:
            records = provider.list_times(date_from, date_to)
            self.checkpoint()
            self._import_times(records, matcher, inactive_ids, source, result)

        if capabilities.absences:
            for year in range(date_from.year, date_to.year + 1):
                absences = provider.list_absences(year)
                self.checkpoint()
                self._import_absences(absences, matcher, inactive_ids, source, result)

        if capabilities.plannings:
            plannings = provider.list_plannings(date_from, date_to)
            self.checkpoint()
            self._import_plannings(plannings, matcher, inactive_ids, source, result)

    def _local_employees(self) -> list[Employee]:
        return list(
            self.session.scalars(
                select(Employee).where(Employee.status != EmployeeStatus.INACTIVE.value)
            )
        )

    def _sync_people(
        self,
        people: list[RemotePerson],
        matcher: EmployeeMatcher,
        source: TimeEntrySource,
        result: ProviderSyncResult,
    ) -> set[str]:
        """Set foreign identity and missing hire dates; return inactive person ids."""
        id_field = EXTERNAL_ID_FIELDS[source]
        inactive: set[str] = set()
        for person in people:
            if not person.active:
                inactive.add(person.provider_id)
                continue
            employee = matcher.match(person.normalized_email, person.provider_id, person.employee_number)
            if employee is None:
                result.people_unmatched += 1
                continue
            result.people_matched += 1
            matcher.learn(person, employee)

            with self.locks.hold(employee.employee_id):
                changed = False
                if person.provider_id and getattr(employee, id_field) != person.provider_id:
                    setattr(employee, id_field, person.provider_id)
                    changed = True
                if employee.hire_date is None and person.hire_date is not None:
                    employee.hire_date = person.hire_date
                    changed = True
                if changed:
                    result.employees_updated += 1
        self.session.flush()
        return inactive

    def _import_times(
        self,
        records: list[RemoteTimeRecord],
        matcher: EmployeeMatcher,
        inactive_ids: set[str],
        source: TimeEntrySource,
        result: ProviderSyncResult,
    ) -> None:
        for record in records:
            if record.person_id in inactive_ids:
                continue
            employee = matcher.match(record.person_email, record.person_id)
            if employee is None:
                result.records_skipped += 1
                continue
            data = TimeEntryInput(
                start_at=record.start_at,
                end_at=record.end_at,
                work_date=record.work_date,
                duration_hours=record.duration_hours,
                spans_midnight=record.end_at.date() != record.start_at.date(),
                project_ref=record.project_ref,
                project_name=record.project_name,
                activity_ref=record.activity_ref,
            )
            try:
                upsert = self.time_entries.replace_by_foreign_key(
                    source, record.foreign_key, employee.employee_id, data
                )
            except (InvalidInputError, ConflictError) as e:
                self._skip(result, record.foreign_key, e)
                continue
            if upsert.suppressed:
                result.entries_suppressed += 1
            elif upsert.is_new:
                result.entries_created += 1
            else:
                result.entries_updated += 1

    def _import_absences(
        self,
        absences: list[RemoteAbsence],
        matcher: EmployeeMatcher,
        inactive_ids: set[str],
        source: TimeEntrySource,
        result: ProviderSyncResult,
    ) -> None:
        for remote in absences:
            if remote.person_id in inactive_ids:
                continue
            employee = matcher.match(remote.person_email, remote.person_id, remote.employee_number)
            if employee is None:
                result.records_skipped += 1
                continue
            data = ImportedAbsence(
                absence_type=remote.absence_type,
                status=remote.status,
                start_date=remote.start_date,
                end_date=remote.end_date,
                half_day=remote.half_day,
                days=remote.days,
                reason=remote.comment,
            )
            try:
                upsert = self.absences.upsert_imported(
                    source, remote.foreign_key, employee.employee_id, data
                )
            except (InvalidInputError, ConflictError) as e:
                self._skip(result, remote.foreign_key, e)
                continue
            if upsert.is_new:
                result.absences_created += 1
            else:
                result.absences_updated += 1

    def _import_plannings(
        self,
        plannings: list[RemotePlanning],
        matcher: EmployeeMatcher,
        inactive_ids: set[str],
        source: TimeEntrySource,
        result: ProviderSyncResult,
    ) -> None:
        for planning in plannings:
            for person in planning.persons:
                if person.provider_id in inactive_ids:
                    continue
                employee = matcher.match(person.normalized_email, person.provider_id)
                if employee is None:
                    result.records_skipped += 1
                    continue
                foreign_key = planning.foreign_key_for(person)
                try:
                    upsert = self.assignments.upsert_imported(
                        source,
                        foreign_key,
                        employee.employee_id,
                        planning.project_id,
                        planning.project_name,
                        planning.start_date,
                        planning.end_date,
                    )
                except (InvalidInputError, ConflictError) as e:
                    self._skip(result, foreign_key, e)
                    continue
                if upsert.is_new:
                    result.assignments_created += 1
                else:
                    result.assignments_updated += 1

    @staticmethod
    def _skip(result: ProviderSyncResult, foreign_key: str, error: Exception) -> None:
        logger.warning("Skipping %s record %s: %s", result.provider, foreign_key, error)
        result.records_skipped += 1
        result.skipped.append({"foreign_key": foreign_key, "error": str(error)})

    def _finish(self, integration: Integration, result: ProviderSyncResult) -> ProviderSyncResult:
        result.finished_at = datetime.now()
        if result.success:
            self.activity.record(
                ActivityType.SYNC_COMPLETED,
                f"{integration.name} sync completed",
                target=integration.provider,
                **result.summary(),
            )
            logger.info("Sync of %s completed: %s", integration.provider, result.summary())
        else:
            self.activity.record(
                ActivityType.SYNC_FAILED,
                f"{integration.name} sync failed: {result.error}",
                target=integration.provider,
                code=result.error_code,
                **result.summary(),
            )
        return result
