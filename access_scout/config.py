# === FILE: access_scout/config.py ===
"""
Модуль для загрузки и валидации конфигурации сервиса AccessScout.
Используется Pydantic для описания схемы и проверки данных.

Таблицы таймаутов для разных платформ развёртывания (Vercel, AWS Lambda,
Railway, локальный запуск) описываются профилями :class:`DeploymentProfile`;
выбор профиля по переменным окружения делает :mod:`access_scout.selector`.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from access_scout.models import BackendKind

WaitCondition = Literal["commit", "domcontentloaded", "load", "networkidle"]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class RetryPolicy(BaseModel):
    """Политика повторов: число попыток, таймаут одной попытки, пауза между ними (секунды)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    attempts: int = Field(1, ge=1, description="Число попыток, включая первую.")
    per_attempt_timeout: float = Field(7.0, gt=0, description="Таймаут одной попытки.")
    backoff: float = Field(0.5, ge=0, description="Пауза перед второй попыткой, далее удваивается.")
    max_backoff: float = Field(5.0, ge=0, description="Верхняя граница паузы.")

    def delay_before(self, attempt: int) -> float:
        """Пауза перед попыткой с номером ``attempt`` (нумерация с 1)."""
        if attempt <= 1:
            return 0.0
        return min(self.max_backoff, self.backoff * 2 ** (attempt - 2))

    def worst_case(self) -> float:
        return sum(self.per_attempt_timeout + self.delay_before(n) for n in range(1, self.attempts + 1))


class NavigationStep(BaseModel):
    """Один шаг стратегии навигации: условие готовности и таймаут (секунды)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    wait_until: WaitCondition
    timeout: float = Field(..., gt=0)


class DeploymentProfile(BaseModel):
    """Таблица таймаутов и бэкенд для одной платформы развёртывания."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    backend: BackendKind = Field(BackendKind.PLAYWRIGHT, description="Бэкенд отрисовки.")
    deadline: float = Field(..., gt=0, description="Внешний лимит платформы на весь запрос.")
    fetch: RetryPolicy = Field(default_factory=RetryPolicy)
    navigation: Tuple[NavigationStep, ...] = Field(
        default=(
            NavigationStep(wait_until="networkidle", timeout=15.0),
            NavigationStep(wait_until="domcontentloaded", timeout=10.0),
            NavigationStep(wait_until="load", timeout=8.0),
        ),
        min_length=1,
    )
    launch_timeout: float = Field(10.0, gt=0)
    settle_delay: float = Field(1.0, ge=0, description="Пауза после навигации для поздней отрисовки.")
    script_timeout: float = Field(15.0, gt=0, description="Лимит на внедрение и на запуск аудита.")
    screenshot_timeout: float = Field(3.0, gt=0, description="Лимит на скриншот одного узла.")
    enrichment_reserve: float = Field(3.0, ge=0, description="Время, оставляемое под скриншоты узлов (только браузеры).")
    teardown_timeout: float = Field(5.0, gt=0)

    def acquisition_budget(self) -> float:
        """Худший случай для загрузки страницы выбранным бэкендом."""
        if self.backend is BackendKind.NONE:
            return self.fetch.worst_case()
        return self.launch_timeout + sum(step.timeout for step in self.navigation) + self.settle_delay

    @model_validator(mode="after")
    def _check_budget(self) -> DeploymentProfile:
        # загрузка + внедрение + аудит + скриншоты + закрытие должны укладываться в лимит платформы
        needed = self.acquisition_budget() + 2 * self.script_timeout + self.teardown_timeout
        if self.backend.is_browser:
            needed += self.enrichment_reserve
        if needed > self.deadline:
            raise ValueError(
                f"stage timeouts add up to {needed:g}s, which exceeds the {self.deadline:g}s deadline"
            )
        return self


def _builtin_profiles() -> Dict[str, DeploymentProfile]:
    return {
        # Vercel Hobby: 10 секунд на функцию, браузера нет
        "vercel": DeploymentProfile(
            backend=BackendKind.NONE,
            deadline=10.0,
            fetch=RetryPolicy(attempts=1, per_attempt_timeout=5.0, backoff=0.0),
            script_timeout=2.0,
            teardown_timeout=1.0,
        ),
        "lambda": DeploymentProfile(
            backend=BackendKind.PLAYWRIGHT,
            deadline=30.0,
            navigation=(
                NavigationStep(wait_until="domcontentloaded", timeout=8.0),
                NavigationStep(wait_until="load", timeout=4.0),
            ),
            launch_timeout=5.0,
            settle_delay=1.0,
            script_timeout=4.0,
            enrichment_reserve=2.0,
            teardown_timeout=2.0,
        ),
        "railway": DeploymentProfile(
            backend=BackendKind.PLAYWRIGHT,
            deadline=60.0,
            fetch=RetryPolicy(attempts=3, per_attempt_timeout=10.0, backoff=1.0),
            navigation=(
                NavigationStep(wait_until="networkidle", timeout=15.0),
                NavigationStep(wait_until="domcontentloaded", timeout=10.0),
                NavigationStep(wait_until="load", timeout=5.0),
            ),
            launch_timeout=8.0,
            settle_delay=2.0,
            script_timeout=6.0,
            teardown_timeout=3.0,
        ),
        "local": DeploymentProfile(
            backend=BackendKind.PLAYWRIGHT,
            deadline=90.0,
            fetch=RetryPolicy(attempts=3, per_attempt_timeout=15.0, backoff=1.0),
        ),
    }


class HttpSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1, description="Заголовок User-Agent.")
    headers: Dict[str, str] = Field(
        default_factory=lambda: {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Cache-Control": "no-cache",
        }
    )

    def request_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent, **self.headers}


class BrowserSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    headless: bool = True
    viewport_width: int = Field(1920, ge=320)
    viewport_height: int = Field(1080, ge=240)
    disable_http2: bool = Field(False, description="Добавить --disable-http2 при проблемах с HTTP/2.")
    extra_args: Tuple[str, ...] = ()


class AuditSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    axe_script: Optional[Path] = Field(None, description="Путь к axe.min.js; иначе ищется в node_modules.")
    node_modules: Path = Field(Path("node_modules"), description="Каталог с axe-core и jsdom.")
    node_binary: str = Field("node", min_length=1)


class EnrichmentSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    concurrency: int = Field(1, ge=1, description="1 = скриншоты узлов снимаются последовательно.")
    max_width: int = Field(800, ge=16)
    max_height: int = Field(600, ge=16)


class ServerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = "0.0.0.0"
    port: int = Field(8080, ge=1, le=65535)


class AnalyzerConfig(BaseModel):
    """Конфигурация сервиса анализа доступности."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    server: ServerSettings = Field(default_factory=ServerSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    profiles: Dict[str, DeploymentProfile] = Field(default_factory=_builtin_profiles)
    default_profile: str = Field("local", description="Профиль, если окружение ничего не подсказало.")

    @field_validator("profiles", mode="before")
    def _merge_builtin_profiles(cls, v: Any) -> Any:
        # профили из файла дополняют встроенные, а не заменяют их целиком
        if isinstance(v, dict):
            merged: Dict[str, Any] = dict(_builtin_profiles())
            merged.update(v)
            return merged
        return v

    @model_validator(mode="after")
    def _check_default_profile(self) -> AnalyzerConfig:
        if self.default_profile not in self.profiles:
            raise ValueError(f"default_profile '{self.default_profile}' is not defined in profiles")
        return self

    def profile(self, name: str) -> DeploymentProfile:
        try:
            return self.profiles[name]
        except KeyError:
            raise ValueError(f"Unknown deployment profile: {name}") from None


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> AnalyzerConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект AnalyzerConfig.

    Без явного пути используется ``configs/default.yaml``, а если его нет,
    встроенные значения по умолчанию (сервер должен стартовать и без файлов).
    Явно указанный, но отсутствующий файл даёт FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return AnalyzerConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    return AnalyzerConfig(**data)


__all__ = [
    "RetryPolicy",
    "NavigationStep",
    "DeploymentProfile",
    "HttpSettings",
    "BrowserSettings",
    "AuditSettings",
    "EnrichmentSettings",
    "ServerSettings",
    "AnalyzerConfig",
    "load_config",
    "ValidationError",
]
