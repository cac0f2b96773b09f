# === FILE: access_scout/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска AccessScout через командную строку.

Команды:
  serve     Запустить HTTP-сервис (POST /analyze, POST /screenshot, GET /health)
  scan      Проанализировать одну страницу и вывести/сохранить отчёты
  config    Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования

Команда scan опции:
  --profile NAME      Профиль развёртывания (vercel, lambda, railway, local, ...)
  --backend KIND      Бэкенд отрисовки (none, playwright, selenium)
  --json PATH         Сохранить JSON-отчёт в файл
  --csv PATH          Сохранить CSV-отчёт в файл
  --html PATH         Сохранить HTML-отчёт в файл
  --pretty            Преформатировать JSON-вывод (отступ 2)

Пример:
  access-scout scan https://example.com --backend none --json report.json
"""
import asyncio
import json
import sys
from pathlib import Path

import click

from access_scout import __version__
from access_scout.config import load_config
from access_scout.engine import Engine
from access_scout.errors import AnalysisError
from access_scout.logger import DEFAULT_FORMAT, init_logging
from access_scout.models import BackendKind
from access_scout.report import render_csv, render_html, render_json
from access_scout.server import run_server

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='AccessScout, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд AccessScout CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default=None, help='Адрес для прослушивания (по умолчанию из конфига)')
@click.option('--port', default=None, type=click.IntRange(1, 65535), help='Порт (по умолчанию из конфига)')
@click.pass_context
def serve(ctx, host, port):
    """Запустить HTTP-сервис анализа."""
    run_server(ctx.obj['config'], host=host, port=port)


@cli.command('scan', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--profile', '-p', default=None, help='Профиль развёртывания')
@click.option(
    '--backend', '-b',
    default=None,
    type=click.Choice([k.value for k in BackendKind]),
    help='Бэкенд отрисовки (перекрывает профиль)'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--csv', 'csv_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить CSV-отчёт в файл'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option(
    '--pretty', is_flag=True,
    help='Преформатировать JSON-вывод (отступ 2)'
)
@click.pass_context
def scan(ctx, url, profile, backend, json_output, csv_output, html_output, pretty):
    """Проанализировать страницу URL и сгенерировать отчёты."""
    cfg = ctx.obj['config']
    engine = Engine(cfg, profile=profile, backend=backend)
    try:
        result = asyncio.run(engine.analyze({'url': url}))
    except AnalysisError as e:
        details = f' ({e.details})' if e.details else ''
        print_error(f'Ошибка анализа: {e.message}{details}')
    except ValueError as e:
        print_error(f'Ошибка конфигурации: {e}')

    # Если не сохраняем в файл — печатаем в stdout
    if not json_output and not csv_output and not html_output:
        indent = 2 if pretty else None
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=indent))
        return

    if json_output:
        try:
            saved_json = render_json(result, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved_json}')
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if csv_output:
        try:
            saved_csv = render_csv(result, csv_output)
            click.echo(f'CSV report: {saved_csv}')
        except Exception as e:
            print_error(f'Ошибка при сохранении CSV: {e}')

    if html_output:
        try:
            saved_html = render_html(result, html_output)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
