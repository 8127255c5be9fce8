"""Tests for the absence store and the vacation quota."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from peopleflow.errors import InvalidInputError, InvalidTransitionError, QuotaExceededError
from peopleflow.models import AbsenceStatus, AbsenceType, TimeEntrySource
from peopleflow.services.absence_service import AbsenceStore, ImportedAbsence


@pytest.fixture
def store(session, settings, locks) -> AbsenceStore:
    return AbsenceStore(session, settings, locks)


def approved_vacation(store, employee, start, end):
    absence = store.request(employee.employee_id, AbsenceType.VACATION, start, end)
    return store.approve(absence.absence_id, approver_id="boss")


class TestRequest:
    """Test day counting on request."""

    def test_counts_working_days_only(self, store, employee):
        """Corpus Christi (19 June 2025) is a holiday in NW and is not counted."""
        absence = store.request(
            employee.employee_id, AbsenceType.VACATION, date(2025, 6, 16), date(2025, 6, 22)
        )

        assert absence.days == Decimal("4")
        assert absence.status == AbsenceStatus.REQUESTED.value
        assert absence.source == TimeEntrySource.MANUAL.value

    def test_region_changes_the_count(self, store, make_employee):
        berliner = make_employee(region="BE")

        absence = store.request(
            berliner.employee_id, AbsenceType.VACATION, date(2025, 6, 16), date(2025, 6, 20)
        )

        assert absence.days == Decimal("5")

    def test_half_day(self, store, employee):
        absence = store.request(
            employee.employee_id,
            AbsenceType.VACATION,
            date(2025, 6, 10),
            date(2025, 6, 10),
            half_day=True,
        )

        assert absence.days == Decimal("0.5")

    def test_half_day_requires_single_day(self, store, employee):
        with pytest.raises(InvalidInputError) as exc_info:
            store.request(
                employee.employee_id,
                AbsenceType.VACATION,
                date(2025, 6, 10),
                date(2025, 6, 11),
                half_day=True,
            )

        assert exc_info.value.field == "half_day"

    def test_end_before_start(self, store, employee):
        with pytest.raises(InvalidInputError):
            store.request(
                employee.employee_id, AbsenceType.SICK, date(2025, 6, 11), date(2025, 6, 10)
            )

    def test_unknown_type(self, store, employee):
        with pytest.raises(InvalidInputError) as exc_info:
            store.request(employee.employee_id, "sabbatical", date(2025, 6, 10), date(2025, 6, 10))

        assert exc_info.value.field == "absence_type"


class TestQuota:
    """Test the annual vacation entitlement."""

    def test_approval_exceeding_entitlement_fails(self, store, employee):
        """27 of 30 days used: a 4-day vacation fails, a 3-day one fits."""
        approved_vacation(store, employee, date(2025, 7, 7), date(2025, 7, 25))  # 15
        approved_vacation(store, employee, date(2025, 8, 4), date(2025, 8, 15))  # 10
        approved_vacation(store, employee, date(2025, 9, 1), date(2025, 9, 2))  # 2
        assert store.used_vacation_days(employee.employee_id, 2025) == Decimal("27")

        too_long = store.request(
            employee.employee_id, AbsenceType.VACATION, date(2025, 9, 8), date(2025, 9, 11)
        )
        with pytest.raises(QuotaExceededError) as exc_info:
            store.approve(too_long.absence_id, approver_id="boss")

        assert exc_info.value.code == "QUOTA_EXCEEDED"
        assert exc_info.value.context["year"] == 2025
        assert store.get(too_long.absence_id).status == AbsenceStatus.REQUESTED.value

        fits = store.request(
            employee.employee_id, AbsenceType.VACATION, date(2025, 9, 8), date(2025, 9, 10)
        )
        store.approve(fits.absence_id, approver_id="boss")

        assert store.remaining_vacation_days(employee.employee_id, 2025) == Decimal("0")

    def test_sick_days_do_not_count(self, store, employee):
        sick = store.request(
            employee.employee_id, AbsenceType.SICK, date(2025, 1, 2), date(2025, 3, 31)
        )
        store.approve(sick.absence_id)

        assert store.used_vacation_days(employee.employee_id, 2025) == Decimal("0")
        assert store.remaining_vacation_days(employee.employee_id, 2025) == Decimal("30")

    def test_cancelled_vacation_frees_days(self, store, employee):
        absence = approved_vacation(store, employee, date(2025, 7, 7), date(2025, 7, 11))

        store.cancel(absence.absence_id, actor_id="erika")

        assert store.used_vacation_days(employee.employee_id, 2025) == Decimal("0")

    def test_missing_entitlement_uses_default(self, store, make_employee, settings):
        employee = make_employee(annual_vacation_days=None)

        assert store.remaining_vacation_days(employee.employee_id, 2025) == Decimal(
            str(settings.default_vacation_days)
        )


class TestLifecycle:
    """Test absence status transitions."""

    def test_cancelled_cannot_be_approved_again(self, store, employee):
        absence = approved_vacation(store, employee, date(2025, 7, 7), date(2025, 7, 8))
        store.cancel(absence.absence_id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            store.approve(absence.absence_id, approver_id="boss")

        assert exc_info.value.from_status == "cancelled"

    def test_approved_cannot_be_rejected(self, store, employee):
        absence = approved_vacation(store, employee, date(2025, 7, 7), date(2025, 7, 8))

        with pytest.raises(InvalidTransitionError):
            store.reject(absence.absence_id, approver_id="boss")

    def test_reject_records_approver(self, store, employee):
        absence = store.request(
            employee.employee_id, AbsenceType.SPECIAL, date(2025, 7, 7), date(2025, 7, 7)
        )

        rejected = store.reject(absence.absence_id, approver_id="b1", approver_name="Boss")

        assert rejected.status == AbsenceStatus.REJECTED.value
        assert rejected.approver_name == "Boss"
        assert rejected.decided_at is not None


class TestListing:
    """Test per-year listing."""

    def test_list_for_year_includes_overlapping(self, store, employee):
        store.request(employee.employee_id, AbsenceType.VACATION, date(2024, 12, 23), date(2025, 1, 3))
        store.request(employee.employee_id, AbsenceType.VACATION, date(2025, 3, 3), date(2025, 3, 4))
        store.request(employee.employee_id, AbsenceType.VACATION, date(2026, 1, 5), date(2026, 1, 6))

        absences = store.list_for_year(employee.employee_id, 2025)

        assert [a.start_date for a in absences] == [date(2024, 12, 23), date(2025, 3, 3)]


class TestImported:
    """Test provider absences keyed by foreign key."""

    def test_upsert_is_idempotent(self, store, employee):
        data = ImportedAbsence(
            absence_type=AbsenceType.VACATION,
            status=AbsenceStatus.APPROVED,
            start_date=date(2025, 7, 7),
            end_date=date(2025, 7, 9),
        )

        first = store.upsert_imported(TimeEntrySource.PROVIDER_A, "A-1", employee.employee_id, data)
        second = store.upsert_imported(
            TimeEntrySource.PROVIDER_A,
            "A-1",
            employee.employee_id,
            ImportedAbsence(
                absence_type=AbsenceType.VACATION,
                status=AbsenceStatus.CANCELLED,
                start_date=date(2025, 7, 7),
                end_date=date(2025, 7, 9),
                days=Decimal("3"),
            ),
        )

        assert first.is_new is True
        assert first.absence.days == Decimal("3")
        assert second.is_new is False
        assert second.absence.absence_id == first.absence.absence_id
        assert second.absence.status == AbsenceStatus.CANCELLED.value
