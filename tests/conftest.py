"""Pytest fixtures for PeopleFlow tests."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Iterator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from peopleflow.config import Settings
from peopleflow.database import dispose_db, get_engine, init_db
from peopleflow.models import Base, Employee, TimeEntry, TimeEntrySource
from peopleflow.providers import ProviderCapabilities
from peopleflow.services.locking_service import EmployeeLockRegistry


@pytest.fixture
def settings() -> Settings:
    """Settings for tests; the scheduler never starts on its own."""
    return Settings(
        database_url="sqlite://",
        host="127.0.0.1",
        port=8000,
        debug=False,
        scheduler_enabled=False,
        sync_interval_seconds=3600,
        default_region="NW",
        encryption_key="test-encryption-key",
    )


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite database per test, installed as the global engine."""
    engine = get_engine(f"sqlite:///{tmp_path / 'peopleflow.db'}")
    Base.metadata.create_all(engine)
    init_db(engine)

    yield engine

    dispose_db()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(engine, class_=Session, expire_on_commit=False, autoflush=False)


@pytest.fixture
def session(session_factory) -> Iterator[Session]:
    """Create a database session for each test."""
    with session_factory() as session:
        yield session
        session.rollback()


@pytest.fixture
def session_scope(session_factory) -> Callable:
    """Commit-or-rollback scope like ``database.get_session``, on the test engine."""

    @contextmanager
    def scope() -> Iterator[Session]:
        with session_factory() as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    return scope


@pytest.fixture
def locks() -> EmployeeLockRegistry:
    return EmployeeLockRegistry()


def build_employee(**overrides) -> Employee:
    """Unsaved employee with sensible defaults."""
    values = {
        "employee_id": uuid4(),
        "first_name": "Erika",
        "last_name": "Mustermann",
        "email": f"erika.{uuid4().hex[:8]}@example.com",
        "department": "Engineering",
        "weekly_hours_target": Decimal("40"),
        "working_days_per_week": 5,
        "region": "NW",
        "annual_vacation_days": Decimal("30"),
    }
    values.update(overrides)
    return Employee(**values)


@pytest.fixture
def make_employee(session: Session) -> Callable[..., Employee]:
    """Create and flush an employee in the test session."""

    def make(**overrides) -> Employee:
        employee = build_employee(**overrides)
        session.add(employee)
        session.flush()
        return employee

    return make


@pytest.fixture
def employee(make_employee) -> Employee:
    return make_employee()


def build_entry(
    employee: Employee,
    day: date,
    hours: Decimal | str,
    start: time = time(8, 0),
    source: TimeEntrySource = TimeEntrySource.MANUAL,
    foreign_key: str | None = None,
    project_ref: str = "",
) -> TimeEntry:
    """Time entry starting at ``start`` lasting ``hours`` (same day)."""
    hours = Decimal(hours)
    start_at = datetime.combine(day, start)
    end_at = start_at + timedelta(minutes=int(hours * 60))
    return TimeEntry(
        employee_id=employee.employee_id,
        work_date=day,
        start_at=start_at,
        end_at=end_at,
        duration_hours=hours,
        source=source.value,
        foreign_key=foreign_key,
        project_ref=project_ref,
    )


@pytest.fixture
def make_entry(session: Session) -> Callable[..., TimeEntry]:
    """Create and flush a time entry in the test session."""

    def make(employee: Employee, day: date, hours: Decimal | str, **kwargs) -> TimeEntry:
        entry = build_entry(employee, day, hours, **kwargs)
        session.add(entry)
        session.flush()
        return entry

    return make


class FakeProvider:
    """In-memory provider; ``fail`` maps a method name to the error it raises."""

    source = TimeEntrySource.PROVIDER_B

    def __init__(
        self,
        people=(),
        times=(),
        absences=(),
        plannings=(),
        capabilities: ProviderCapabilities | None = None,
        fail: dict[str, Exception] | None = None,
        on_call: Callable[[str], None] | None = None,
    ):
        self.people = list(people)
        self.times = list(times)
        self.absences = list(absences)
        self.plannings = list(plannings)
        self._capabilities = capabilities or ProviderCapabilities(
            people=True, times=True, absences=True, plannings=True
        )
        self.fail = fail or {}
        self.on_call = on_call
        self.calls: list[str] = []
        self.closed = False

    def _called(self, name: str) -> None:
        self.calls.append(name)
        if self.on_call is not None:
            self.on_call(name)
        if name in self.fail:
            raise self.fail[name]

    def capabilities(self) -> ProviderCapabilities:
        return self._capabilities

    def test_connection(self) -> bool:
        self._called("test_connection")
        return True

    def list_people(self):
        self._called("list_people")
        return list(self.people)

    def list_times(self, date_from, date_to):
        self._called("list_times")
        return [t for t in self.times if date_from <= t.work_date <= date_to]

    def list_absences(self, year):
        self._called("list_absences")
        return [a for a in self.absences if a.start_date.year == year]

    def list_plannings(self, date_from, date_to):
        self._called("list_plannings")
        return list(self.plannings)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def provider_factory(fake_provider):
    """Factory handing out ``fake_provider`` for any integration."""

    def factory(provider: str, credentials: str, timeout: float) -> FakeProvider:
        return fake_provider

    return factory
