# File: access_scout/report/html_report.py
"""access_scout.report.html_report: Генерация HTML-отчёта с помощью Jinja2."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from access_scout.models import NormalizedResult
from access_scout.report.solutions import get_solution

TEMPLATE_DIR = Path(__file__).with_name("templates")
IMPACT_LEVELS = ("critical", "serious", "moderate", "minor")


def render_html(
    result: NormalizedResult,
    output_path: Union[Path, str],
    template_dir: Union[Path, str, None] = None,
) -> Path:
    """Рендерит HTML-отчёт из шаблона и сохраняет его по указанному пути.

    Args:
        result: объект NormalizedResult.
        output_path: путь к итоговому HTML-файлу.
        template_dir: директория с Jinja2-шаблонами (по умолчанию встроенная).

    Returns:
        Path до сохранённого HTML-файла.
    """
    template_dir = Path(template_dir) if template_dir else TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template("report.html.j2")

    counts = Counter(v.impact for v in result.violations)
    context: dict[str, Any] = {
        "result": result,
        "scan_date": _format_timestamp(result.timestamp),
        "impacts": [(level, counts.get(level, 0)) for level in IMPACT_LEVELS],
        "items": [(v, get_solution(v)) for v in result.violations],
        "year": datetime.now().year,
    }

    html_content = template.render(**context)
    output_path.write_text(html_content, encoding="utf-8")

    return output_path


def _format_timestamp(value: str) -> str:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M:%S UTC")
    except ValueError:
        return value
