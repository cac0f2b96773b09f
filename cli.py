# cli.py

"""
Точка входа для запуска AccessScout без установки пакета.

Пример запуска:
    python cli.py --config configs/default.yaml serve --port 8080
    python cli.py scan https://example.com --backend none --html reports/report.html
"""
from access_scout.cli import cli

if __name__ == "__main__":
    cli()
