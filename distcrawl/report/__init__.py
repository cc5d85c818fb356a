"""distcrawl.report: serialization of stored page metadata for the CLI."""

from distcrawl.report.json_report import page_records, render_json

__all__ = ["page_records", "render_json"]
