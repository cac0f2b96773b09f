# access_scout/report/json_report.py

"""
Генерация JSON-отчёта для проекта AccessScout.

Сериализация объекта NormalizedResult в файл в той же форме, что и ответ
``POST /analyze``.
"""
import json
from pathlib import Path

from access_scout.models import NormalizedResult


def render_json(result: NormalizedResult, output_path: Path | str, pretty: bool = True) -> Path:
    """
    Сохраняет результат анализа в формате JSON по указанному пути.

    :param result: объект NormalizedResult
    :param output_path: путь к JSON-файлу
    :param pretty: отступ 2 вместо компактной записи
    :return: Path сохранённого файла
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, ensure_ascii=False, indent=2 if pretty else None)

    return output
