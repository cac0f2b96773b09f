# access_scout/models.py
"""
Data models for the AccessScout analysis pipeline.

The only artifact that crosses the HTTP boundary is :class:`NormalizedResult`
(via :meth:`NormalizedResult.to_dict`); everything else is internal.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from access_scout.errors import RequestValidationError
from access_scout.utils import is_http_url


class BackendKind(str, Enum):
    """Rendering strategy: static HTML parse or one of two browser drivers."""

    NONE = "none"
    PLAYWRIGHT = "playwright"
    SELENIUM = "selenium"

    @property
    def is_browser(self) -> bool:
        return self is not BackendKind.NONE


@dataclass(frozen=True, slots=True)
class LaunchOptions:
    headless: bool = True
    executable_path: Optional[str] = None
    args: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RenderBackend:
    """Backend chosen for one request; never changes while the request runs."""

    kind: BackendKind
    profile: str
    launch: LaunchOptions = LaunchOptions()


@dataclass(frozen=True, slots=True)
class ScanRequest:
    url: str

    @classmethod
    def from_payload(cls, payload: Any) -> ScanRequest:
        """Validate a decoded JSON body; raises RequestValidationError."""
        if not isinstance(payload, Mapping):
            raise RequestValidationError("Invalid URL provided")
        url = payload.get("url")
        if not url or not isinstance(url, str) or not url.strip():
            raise RequestValidationError("Invalid URL provided")
        url = url.strip()
        if not is_http_url(url):
            raise RequestValidationError(
                "Invalid URL provided", details="The URL must start with http:// or https:// and include a host."
            )
        return cls(url=url)


@dataclass(slots=True)
class RawAuditResult:
    """What the audit engine returned, before any reshaping."""

    violations: List[Dict[str, Any]]
    passes: int
    incomplete: int
    url: Optional[str] = None
    timestamp: Optional[str] = None


EvidenceStatus = Literal["captured", "skipped", "failed"]


@dataclass(frozen=True, slots=True)
class EvidenceOutcome:
    """Result of trying to screenshot one node.

    ``skipped`` means no attempt was made (no live browser, or enrichment off);
    ``failed`` carries the :class:`~access_scout.errors.EnrichmentError`.
    """

    status: EvidenceStatus
    image: Optional[str] = None
    error: Optional[Exception] = None

    @classmethod
    def captured(cls, image: str) -> EvidenceOutcome:
        return cls("captured", image=image)

    @classmethod
    def skipped(cls) -> EvidenceOutcome:
        return cls("skipped")

    @classmethod
    def failed(cls, error: Exception) -> EvidenceOutcome:
        return cls("failed", error=error)


@dataclass(slots=True)
class ViolationNode:
    html: str
    target: List[Any]
    failure_summary: str
    evidence: EvidenceOutcome = field(default_factory=EvidenceOutcome.skipped)

    @property
    def screenshot(self) -> Optional[str]:
        return self.evidence.image

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> ViolationNode:
        return cls(
            html=str(raw.get("html") or ""),
            target=list(raw.get("target") or []),
            failure_summary=str(raw.get("failureSummary") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "html": self.html,
            "target": self.target,
            "failureSummary": self.failure_summary,
            "screenshot": self.screenshot,
        }


@dataclass(slots=True)
class Violation:
    id: str
    impact: Optional[str]
    description: str
    help: str
    help_url: str
    tags: List[str]
    nodes: List[ViolationNode]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Violation:
        return cls(
            id=str(raw.get("id") or ""),
            impact=raw.get("impact"),
            description=str(raw.get("description") or ""),
            help=str(raw.get("help") or ""),
            help_url=str(raw.get("helpUrl") or ""),
            tags=list(raw.get("tags") or []),
            nodes=[ViolationNode.from_raw(n) for n in raw.get("nodes") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "impact": self.impact,
            "description": self.description,
            "help": self.help,
            "helpUrl": self.help_url,
            "tags": self.tags,
            "nodes": [n.to_dict() for n in self.nodes],
        }


@dataclass(slots=True)
class NormalizedResult:
    violations: List[Violation]
    passes: int
    incomplete: int
    url: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "violations": [v.to_dict() for v in self.violations],
            "passes": self.passes,
            "incomplete": self.incomplete,
            "url": self.url,
            "timestamp": self.timestamp,
        }


__all__ = [
    "BackendKind",
    "LaunchOptions",
    "RenderBackend",
    "ScanRequest",
    "RawAuditResult",
    "EvidenceOutcome",
    "ViolationNode",
    "Violation",
    "NormalizedResult",
]
