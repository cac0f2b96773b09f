# File: access_scout/errors.py
"""access_scout.errors: таксономия ошибок конвейера анализа.

Каждый класс знает свою категорию, HTTP-статус и подсказку (``details``),
которую увидит пользователь. Конвейер ловит только :class:`AnalysisError`
на своей границе; всё остальное считается неожиданной ошибкой.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Optional

from access_scout.utils import utc_timestamp

__all__ = [
    "AnalysisError",
    "RequestValidationError",
    "AcquisitionError",
    "PageTimeoutError",
    "FetchError",
    "NavigationError",
    "EmptyContentError",
    "InjectionError",
    "AuditError",
    "EnrichmentError",
    "error_body",
]


class AnalysisError(Exception):
    """Базовая ошибка анализа, которая превращается в JSON-ответ."""

    status: ClassVar[int] = 500
    category: ClassVar[str] = "runtime"
    hint: ClassVar[str] = ""

    def __init__(self, message: str, *, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else self.hint
        self.stage: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        """Тело ответа об ошибке: ``{error, details?, timestamp}``."""
        return error_body(self.message, self.details)


class RequestValidationError(AnalysisError):
    """Некорректный или отсутствующий ``url`` в запросе."""

    status = 400
    category = "validation"


class AcquisitionError(AnalysisError):
    """Страницу не удалось получить или отрисовать."""

    category = "acquisition"


class PageTimeoutError(AcquisitionError, TimeoutError):
    """Загрузка страницы или весь анализ не уложились в отведённое время."""

    category = "timeout"
    hint = "The request took too long. Try again, or use a deployment profile with a longer timeout."


class FetchError(AcquisitionError):
    """Сетевая ошибка: DNS, TLS, соединение, неуспешный HTTP-статус."""

    category = "fetch"
    hint = (
        "Network error occurred. The website may be blocking automated access "
        "or is not accessible."
    )


class NavigationError(AcquisitionError):
    """Все шаги стратегии навигации браузера завершились неудачей."""

    category = "navigation"
    hint = (
        "The page could not be loaded in the browser. It may be blocking automated "
        "access; try again or scan a different page."
    )

    def __init__(
        self,
        message: str,
        *,
        last_error: Optional[BaseException] = None,
        wait_until: Optional[str] = None,
        timed_out: bool = False,
        details: Optional[str] = None,
    ) -> None:
        if details is None and timed_out:
            details = PageTimeoutError.hint
        super().__init__(message, details=details)
        self.last_error = last_error
        self.wait_until = wait_until
        self.timed_out = timed_out


class EmptyContentError(AcquisitionError):
    """В загруженном документе нет пригодного для аудита содержимого."""

    category = "empty"
    hint = "The page appears to be empty."


class InjectionError(AnalysisError):
    """Движок аудита не загрузился в контекст страницы."""

    category = "injection"
    hint = (
        "The accessibility engine could not be loaded. Check that axe-core (and jsdom "
        "for the no-browser backend) are installed on the server."
    )


class AuditError(AnalysisError):
    """Движок аудита выбросил исключение во время проверки."""

    category = "audit"
    hint = "The accessibility engine failed while scanning this page. Try again or scan a different page."


class EnrichmentError(AnalysisError):
    """Не удалось снять скриншот узла. Обрабатывается локально, наружу не выходит."""

    category = "enrichment"


def error_body(message: str, details: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message}
    if details:
        body["details"] = details
    body["timestamp"] = utc_timestamp()
    return body
