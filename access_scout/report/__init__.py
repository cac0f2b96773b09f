# File: access_scout/report/__init__.py
"""access_scout.report: экспорт результата анализа в JSON, CSV и HTML (используется CLI и тестами)."""

from __future__ import annotations

from access_scout.report.csv_report import render_csv
from access_scout.report.html_report import render_html
from access_scout.report.json_report import render_json
from access_scout.report.solutions import get_solution

__all__ = ["render_json", "render_csv", "render_html", "get_solution"]
