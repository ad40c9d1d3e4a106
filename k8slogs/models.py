"""
Data model for classified log lines and search results
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class Severity(str, Enum):
    """Canonical log severities"""
    ERROR = "ERROR"
    WARN = "WARN"
    INFO = "INFO"
    DEBUG = "DEBUG"


@dataclass(frozen=True)
class UnrecognizedSeverity:
    """A severity token outside the canonical set, preserved upper-cased"""

    token: str

    @property
    def value(self) -> str:
        return self.token


SeverityLevel = Union[Severity, UnrecognizedSeverity]


@dataclass(frozen=True)
class LogEntry:
    """One classified log line from a container"""

    timestamp: Optional[str]
    level: Optional[str]
    message: str
    raw: str
    is_structured: bool
    pod_name: str
    container_name: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert log entry to dictionary"""
        return {
            'timestamp': self.timestamp,
            'level': self.level,
            'message': self.message,
            'raw': self.raw,
            'is_json': self.is_structured,
            'pod_name': self.pod_name,
            'container_name': self.container_name
        }


@dataclass(frozen=True)
class LogSearchResult:
    """Matching entries for a single (pod, container) stream"""

    pod_name: str
    container_name: str
    entries: Tuple[LogEntry, ...] = ()

    @property
    def total_matches(self) -> int:
        return len(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        """Convert search result to dictionary"""
        return {
            'pod_name': self.pod_name,
            'container_name': self.container_name,
            'total_matches': self.total_matches,
            'entries': [entry.to_dict() for entry in self.entries]
        }


@dataclass(frozen=True)
class PodContainers:
    """A pod and the names of its containers, in pod spec order"""

    pod_name: str
    containers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LogFetchOptions:
    """Options passed to the log source when fetching a stream"""

    timestamps: bool = True
    since_seconds: Optional[int] = None
    tail_lines: Optional[int] = None


@dataclass(frozen=True)
class SearchTarget:
    """
    The workload a search runs against

    Either a deployment name, whose matchLabels become the pod selector,
    or an explicit label selector such as ``app=web,tier=frontend``.
    """

    namespace: str
    deployment: Optional[str] = None
    selector: Optional[str] = None

    def __post_init__(self):
        if not self.deployment and self.selector is None:
            raise ValueError("SearchTarget needs a deployment or a label selector")

    def describe(self) -> str:
        if self.deployment:
            return f"deployment/{self.deployment}"
        return f"selector/{self.selector or '<all>'}"
