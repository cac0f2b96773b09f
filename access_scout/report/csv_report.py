# access_scout/report/csv_report.py

"""
CSV-отчёт: одна строка на нарушение, без узлов и скриншотов.
"""
import csv
from pathlib import Path

from access_scout.models import NormalizedResult

CSV_HEADERS = ("Impact", "Issue", "Description", "Elements Affected", "Help URL")


def render_csv(result: NormalizedResult, output_path: Path | str) -> Path:
    """Сохраняет сводку нарушений в CSV и возвращает путь к файлу."""
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8', newline='') as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow(CSV_HEADERS)
        for v in result.violations:
            writer.writerow([v.impact or "", v.help, v.description, len(v.nodes), v.help_url])

    return output
