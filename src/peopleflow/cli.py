"""PeopleFlow command line interface.

Provides operational tools for:
- Schema creation
- Overtime recomputation
- Provider sync and duplicate cleanup
- CSV exports
- Holiday calendar lookups

Usage:
    peopleflow init-db
    peopleflow recompute --employee <uuid>
    peopleflow sync --provider 123erfasst
    peopleflow export-overtime --output ueberstunden.csv
    peopleflow holidays --year 2025 --region BY
"""

from __future__ import annotations

import argparse
import sys
from datetime import date
from typing import Callable
from uuid import UUID

from peopleflow.calculators.holidays import holidays_of, normalize_region, working_days_in_month
from peopleflow.config import GERMAN_STATES, Settings, get_settings
from peopleflow.database import create_all, get_session
from peopleflow.errors import PeopleFlowError
from peopleflow.logging_config import configure_logging
from peopleflow.models import OvertimeStatus
from peopleflow.reports.export import ExportService
from peopleflow.services.import_service import ImportPipeline
from peopleflow.services.overtime_service import OvertimeEngine
from peopleflow.services.scheduler import SessionScope


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class PeopleFlowCli:
    """PeopleFlow Command Line Interface."""

    def __init__(
        self,
        settings: Settings | None = None,
        session_scope: SessionScope = get_session,
    ) -> None:
        self._settings = settings
        self.session_scope = session_scope
        self.parser = self._build_parser()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="peopleflow",
            description="PeopleFlow time and overtime tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create database tables")

        recompute = subparsers.add_parser(
            "recompute",
            help="Recompute overtime balances",
        )
        recompute.add_argument(
            "--employee",
            type=parse_uuid,
            help="Recompute only this employee (default: all)",
        )

        sync = subparsers.add_parser(
            "sync",
            help="Import from configured providers",
        )
        sync.add_argument(
            "--provider",
            type=str,
            help="Sync only this provider (timebutler, 123erfasst)",
        )
        sync.add_argument(
            "--no-recompute",
            action="store_true",
            help="Skip the overtime recompute after the import",
        )

        subparsers.add_parser(
            "remove-duplicates",
            help="Collapse duplicate time entries of all employees",
        )

        times = subparsers.add_parser(
            "export-times",
            help="Export time entries as CSV",
        )
        times.add_argument(
            "--employee",
            type=parse_uuid,
            action="append",
            help="Employee to include (repeatable; default: all)",
        )
        times.add_argument("--from", dest="date_from", type=parse_date, help="First day (ISO)")
        times.add_argument("--to", dest="date_to", type=parse_date, help="Last day (ISO)")
        times.add_argument("--project", type=str, help="Project reference filter")
        times.add_argument("--output", type=str, help="Output file (default: stdout)")

        overtime = subparsers.add_parser(
            "export-overtime",
            help="Export overtime balances as CSV",
        )
        overtime.add_argument(
            "--status",
            choices=[s.value for s in OvertimeStatus],
            help="Only employees with this balance status",
        )
        overtime.add_argument("--department", type=str, help="Department filter")
        overtime.add_argument("--output", type=str, help="Output file (default: stdout)")

        holidays = subparsers.add_parser(
            "holidays",
            help="List public holidays of a year",
        )
        holidays.add_argument(
            "--year",
            type=int,
            default=date.today().year,
            help="Calendar year (default: current year)",
        )
        holidays.add_argument(
            "--region",
            type=str.upper,
            choices=sorted(GERMAN_STATES),
            help="Federal state (default: configured region)",
        )

        serve = subparsers.add_parser("serve", help="Run the HTTP API")
        serve.add_argument("--host", type=str, help="Bind address")
        serve.add_argument("--port", type=int, help="Bind port")

        parser.add_argument(
            "--log-level",
            type=str.upper,
            default=None,
            help="Logging level (default: LOG_LEVEL setting)",
        )
        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level or self.settings.log_level)

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "init-db": self._cmd_init_db,
            "recompute": self._cmd_recompute,
            "sync": self._cmd_sync,
            "remove-duplicates": self._cmd_remove_duplicates,
            "export-times": self._cmd_export_times,
            "export-overtime": self._cmd_export_overtime,
            "holidays": self._cmd_holidays,
            "serve": self._cmd_serve,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except PeopleFlowError as e:
            print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
            return 1

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create all tables."""
        create_all()
        print("Database tables created.")
        return 0

    def _cmd_recompute(self, args: argparse.Namespace) -> int:
        """Recompute one or all overtime balances."""
        with self.session_scope() as session:
            engine = OvertimeEngine(session, self.settings)
            if args.employee:
                snapshot = engine.recompute(args.employee)
                print(f"Employee {args.employee}")
                for bucket in snapshot.buckets:
                    print(
                        f"  {bucket.label}  actual {bucket.actual_hours:>8.2f}  "
                        f"planned {bucket.planned_hours:>8.2f}  "
                        f"overtime {bucket.overtime_hours:>+8.2f}"
                    )
                print(f"\n  Base balance:   {snapshot.base_balance:>+10.2f}")
                print(f"  Adjustments:    {snapshot.adjustments_total:>+10.2f}")
                print(f"  Final balance:  {snapshot.final_balance:>+10.2f} ({snapshot.status.value})")
                return 0

            result = engine.recompute_all()
        print(f"Recomputed {result.processed} employees, {result.failed} failed.")
        for error in result.errors:
            print(f"  - {error['employee_id']}: {error['error']}")
        return 0 if result.success else 1

    def _cmd_sync(self, args: argparse.Namespace) -> int:
        """Run provider imports now."""
        with self.session_scope() as session:
            pipeline = ImportPipeline(session, self.settings)
            if args.provider:
                results = [pipeline.sync_provider(args.provider)]
            else:
                results = pipeline.sync_all()

        ok = True
        for result in results:
            if result.success:
                print(f"{result.provider}: OK")
                for key, value in result.summary().items():
                    print(f"  {key}: {value}")
            else:
                ok = False
                print(f"{result.provider}: FAILED [{result.error_code}] {result.error}")

        if not args.no_recompute:
            with self.session_scope() as session:
                recompute = OvertimeEngine(session, self.settings).recompute_all()
            print(f"\nRecomputed {recompute.processed} employees, {recompute.failed} failed.")
            ok = ok and recompute.success
        return 0 if ok else 1

    def _cmd_remove_duplicates(self, args: argparse.Namespace) -> int:
        """Remove duplicate time entries."""
        with self.session_scope() as session:
            removed = ImportPipeline(session, self.settings).remove_duplicates()
        print(f"Removed {removed} duplicate time entries.")
        return 0

    def _cmd_export_times(self, args: argparse.Namespace) -> int:
        """Write the time tracking CSV."""
        with self.session_scope() as session:
            content = ExportService(session, self.settings).time_entries_csv(
                employee_ids=args.employee,
                date_from=args.date_from,
                date_to=args.date_to,
                project_ref=args.project,
            )
        return self._write(content, args.output)

    def _cmd_export_overtime(self, args: argparse.Namespace) -> int:
        """Write the overtime CSV."""
        status = OvertimeStatus(args.status) if args.status else None
        with self.session_scope() as session:
            content = ExportService(session, self.settings).overtime_csv(
                status=status, department=args.department
            )
        return self._write(content, args.output)

    def _cmd_holidays(self, args: argparse.Namespace) -> int:
        """Print holidays and working days per month."""
        region = normalize_region(args.region, self.settings.default_region)
        print(f"Holidays {args.year} ({region})")
        print("=" * 40)
        for holiday in sorted(holidays_of(args.year, region)):
            print(f"  {holiday.day.strftime('%d.%m.%Y')}  {holiday.name}")
        print("\nWorking days per month:")
        for month in range(1, 13):
            print(f"  {month:02d}: {working_days_in_month(args.year, month, region)}")
        return 0

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        """Run the API with uvicorn."""
        import uvicorn

        uvicorn.run(
            "peopleflow.api.app:app",
            host=args.host or self.settings.host,
            port=args.port or self.settings.port,
            reload=self.settings.debug,
        )
        return 0

    @staticmethod
    def _write(content: str, output: str | None) -> int:
        if output:
            with open(output, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            print(f"Wrote {output}")
        else:
            sys.stdout.write(content)
        return 0


def main() -> int:
    """CLI entry point."""
    cli = PeopleFlowCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
