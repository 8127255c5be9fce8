"""Tests for the provider import pipeline."""

from __future__ import annotations

import dataclasses
import threading
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from peopleflow.errors import (
    ConflictError,
    NotFoundError,
    ProviderAuthError,
    ProviderTransportError,
    SyncCancelledError,
)
from peopleflow.models import (
    Absence,
    ActivityLog,
    ProjectAssignment,
    TimeEntry,
    TimeEntrySource,
)
from peopleflow.models.enums import AbsenceStatus, AbsenceType
from peopleflow.providers import RemoteAbsence, RemotePerson, RemotePlanning, RemoteTimeRecord
from peopleflow.services.import_service import EmployeeMatcher, ImportPipeline

from conftest import build_entry

TODAY = date(2025, 6, 30)


def person(provider_id, email=None, **kwargs) -> RemotePerson:
    return RemotePerson(provider_id=provider_id, email=email, **kwargs)


def record(fid, person_id, day=date(2025, 6, 10), hours=8, email=None) -> RemoteTimeRecord:
    start = datetime.combine(day, datetime.min.time()).replace(hour=8)
    end = start.replace(hour=8 + hours)
    return RemoteTimeRecord(
        foreign_key=fid,
        person_id=person_id,
        person_email=email,
        work_date=day,
        start_at=start,
        end_at=end,
        duration_hours=Decimal(hours),
        project_ref="P7",
        project_name="Neubau",
    )


def activity_types(session) -> list[str]:
    session.flush()
    return [log.activity_type for log in session.scalars(select(ActivityLog))]


@pytest.fixture
def pipeline(session, settings, provider_factory, locks) -> ImportPipeline:
    return ImportPipeline(
        session, settings, provider_factory=provider_factory, locks=locks, today=lambda: TODAY
    )


@pytest.fixture
def integration(pipeline):
    return pipeline.integrations.configure(
        TimeEntrySource.PROVIDER_B.value, "user@example.com:pw", sync_start_date=date(2025, 6, 1)
    )


class TestEmployeeMatcher:
    """Test identity matching."""

    def test_match_order(self, make_employee):
        erika = make_employee(email="erika@example.com", erfasst_person_id="p1")
        max_ = make_employee(email="max@example.com", employee_number="E-7")
        matcher = EmployeeMatcher([erika, max_], TimeEntrySource.PROVIDER_B)

        assert matcher.match(" ERIKA@example.com ") is erika
        assert matcher.match(None, "p1") is erika
        assert matcher.match("nobody@example.com", None, "E-7") is max_
        assert matcher.match("nobody@example.com") is None

    def test_learn(self, make_employee):
        erika = make_employee(email="erika@example.com")
        matcher = EmployeeMatcher([erika], TimeEntrySource.PROVIDER_A)

        matcher.learn(person("77", "erika@example.com"), erika)

        assert matcher.match(None, "77") is erika


class TestSync:
    """Test a full provider run."""

    def test_imports_matched_records(self, session, pipeline, integration, fake_provider, make_employee):
        erika = make_employee(email="erika@example.com")
        bob = make_employee(email="bob@example.com")
        fake_provider.people = [
            person("p1", "Erika@Example.com", hire_date=date(2021, 4, 1)),
            person("p2", "stranger@example.com"),
            person("p3", "bob@example.com", active=False),
        ]
        fake_provider.times = [
            record("X1", "p1"),
            record("X2", "p3", email="bob@example.com"),
            record("X3", "p9"),
            record("OLD", "p1", day=date(2025, 5, 2)),
        ]
        fake_provider.absences = [
            RemoteAbsence(
                foreign_key="A1",
                person_id="p1",
                absence_type=AbsenceType.VACATION,
                status=AbsenceStatus.APPROVED,
                start_date=date(2025, 7, 7),
                end_date=date(2025, 7, 9),
            )
        ]
        fake_provider.plannings = [
            RemotePlanning(
                project_id="P7",
                project_name="Neubau",
                start_date=date(2025, 6, 1),
                end_date=date(2025, 6, 30),
                persons=(person("p1"),),
            )
        ]

        result = pipeline.sync_integration(integration)

        assert result.success
        assert (result.date_from, result.date_to) == (date(2025, 6, 1), TODAY)
        assert result.people_matched == 1
        assert result.people_unmatched == 1
        assert result.entries_created == 1
        assert result.absences_created == 1
        assert result.assignments_created == 1
        assert result.records_skipped == 1
        assert fake_provider.closed

        assert erika.erfasst_person_id == "p1"
        assert erika.hire_date == date(2021, 4, 1)
        assert bob.erfasst_person_id is None

        [entry] = session.scalars(select(TimeEntry)).all()
        assert (entry.employee_id, entry.foreign_key) == (erika.employee_id, "X1")
        absence = session.scalar(select(Absence))
        assert absence.days == Decimal("3")
        assignment = session.scalar(select(ProjectAssignment))
        assert assignment.foreign_key == "P7:2025-06-01:2025-06-30:p1"

        assert integration.last_sync_at is not None
        assert "sync_completed" in activity_types(session)

    def test_reimport_updates_in_place(self, session, pipeline, integration, fake_provider, make_employee):
        make_employee(email="erika@example.com")
        fake_provider.people = [person("p1", "erika@example.com")]
        fake_provider.times = [record("X1", "p1", hours=8)]
        pipeline.sync_integration(integration)

        fake_provider.times = [record("X1", "p1", hours=7)]
        result = pipeline.sync_integration(integration)

        assert (result.entries_created, result.entries_updated) == (0, 1)
        assert session.scalar(select(func.count()).select_from(TimeEntry)) == 1
        assert session.scalar(select(TimeEntry)).duration_hours == Decimal("7")

    def test_existing_hire_date_is_kept(self, pipeline, integration, fake_provider, make_employee):
        erika = make_employee(email="erika@example.com", hire_date=date(2019, 1, 1))
        fake_provider.people = [person("p1", "erika@example.com", hire_date=date(2021, 4, 1))]

        pipeline.sync_integration(integration)

        assert erika.hire_date == date(2019, 1, 1)

    def test_conflicting_key_is_skipped(self, session, pipeline, integration, fake_provider, make_employee):
        erika = make_employee(email="erika@example.com")
        other = make_employee(email="other@example.com")
        session.add(
            build_entry(other, date(2025, 6, 10), "8", source=TimeEntrySource.PROVIDER_B, foreign_key="X1")
        )
        session.flush()
        fake_provider.people = [person("p1", "erika@example.com")]
        fake_provider.times = [record("X1", "p1")]

        result = pipeline.sync_integration(integration)

        assert result.success
        assert result.records_skipped == 1
        assert result.skipped[0]["foreign_key"] == "X1"
        assert erika.time_entries == []

    def test_empty_window_fetches_people_only(self, pipeline, integration, fake_provider):
        integration.sync_start_date = date(2025, 7, 1)

        result = pipeline.sync_integration(integration)

        assert result.success
        assert fake_provider.calls == ["list_people"]

    def test_cutoff_moves_window_start(self, session, settings, provider_factory, integration):
        pipeline = ImportPipeline(
            session,
            dataclasses.replace(settings, sync_cutoff_date=date(2025, 6, 15)),
            provider_factory=provider_factory,
            today=lambda: TODAY,
        )

        assert pipeline.resolve_window(integration) == (date(2025, 6, 15), TODAY)


class TestFailures:
    """Test error handling per provider."""

    def test_auth_error_deactivates(self, session, pipeline, integration, fake_provider):
        fake_provider.fail["list_people"] = ProviderAuthError("123erfasst", "HTTP 401")

        result = pipeline.sync_integration(integration)

        assert not result.success
        assert result.error_code == "AUTH"
        assert integration.active is False
        assert integration.last_error_code == "AUTH"
        assert fake_provider.closed
        types = activity_types(session)
        assert "integration_deactivated" in types
        assert "sync_failed" in types

    def test_transport_error_keeps_partial_progress(
        self, session, pipeline, integration, fake_provider, make_employee
    ):
        erika = make_employee(email="erika@example.com")
        fake_provider.people = [person("p1", "erika@example.com")]
        fake_provider.fail["list_times"] = ProviderTransportError("123erfasst", "HTTP 502")

        result = pipeline.sync_integration(integration)

        assert result.error_code == "TRANSPORT"
        assert result.people_matched == 1
        assert erika.erfasst_person_id == "p1"
        assert integration.active is True
        assert integration.last_error_code == "TRANSPORT"
        assert integration.last_sync_at is None

    def test_cancellation_between_fetches(self, settings, session, provider_factory, integration, fake_provider):
        stop = threading.Event()
        fake_provider.on_call = lambda name: stop.set()
        pipeline = ImportPipeline(
            session, settings, provider_factory=provider_factory, stop_event=stop, today=lambda: TODAY
        )

        with pytest.raises(SyncCancelledError):
            pipeline.sync_integration(integration)

        assert fake_provider.calls == ["list_people"]
        assert fake_provider.closed

    def test_sync_all_skips_inactive_integrations(self, pipeline, integration, fake_provider):
        pipeline.integrations.set_active(integration.provider, False)

        assert pipeline.sync_all() == []
        assert fake_provider.calls == []

    def test_sync_provider_rejects_inactive_integration(self, pipeline, integration, fake_provider):
        pipeline.integrations.set_active(integration.provider, False)

        with pytest.raises(ConflictError) as exc_info:
            pipeline.sync_provider(integration.provider)

        assert exc_info.value.context == {"provider": "123erfasst"}
        assert fake_provider.calls == []

    def test_sync_provider_unknown_integration(self, pipeline):
        with pytest.raises(NotFoundError):
            pipeline.sync_provider("timebutler")


class TestRemoveDuplicates:
    """Test the maintenance run over all employees."""

    def test_records_activity(self, session, pipeline, make_employee, make_entry):
        erika = make_employee()
        make_entry(erika, date(2025, 6, 10), "8")
        make_entry(erika, date(2025, 6, 10), "8")

        assert pipeline.remove_duplicates() == 1
        assert pipeline.remove_duplicates() == 0
        assert activity_types(session).count("duplicates_removed") == 1
    def test_removed_import_stays_removed_on_next_sync(
        self, session, pipeline, integration, fake_provider, make_employee, make_entry
    ):
        erika = make_employee(email="erika@example.com")
        manual = make_entry(erika, date(2025, 6, 10), "8", project_ref="P7")
        fake_provider.people = [person("p1", "erika@example.com")]
        fake_provider.times = [record("X1", "p1")]
        pipeline.sync_provider(integration.provider)
        assert session.scalar(select(func.count()).select_from(TimeEntry)) == 2

        assert pipeline.remove_duplicates() == 1
        result = pipeline.sync_provider(integration.provider)

        assert (result.entries_created, result.entries_suppressed) == (0, 1)
        assert session.scalars(select(TimeEntry)).all() == [manual]
        assert pipeline.remove_duplicates() == 0
