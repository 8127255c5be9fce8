"""CSV reports."""

from peopleflow.reports.export import ExportService, label_for

__all__ = ["ExportService", "label_for"]
