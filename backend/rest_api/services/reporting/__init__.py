from .report_service import ReportService, compute_percent_change

__all__ = ["ReportService", "compute_percent_change"]
