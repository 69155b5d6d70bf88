"""Output generators (reports) built from read-only document snapshots."""

from .report_builder import (  # noqa: F401
    ReportBuilder,
    ReportType,
    build_report,
    collect_non_conformities,
    count_nodes,
    render_report,
)

__all__ = [
    "ReportBuilder",
    "ReportType",
    "build_report",
    "collect_non_conformities",
    "count_nodes",
    "render_report",
]
