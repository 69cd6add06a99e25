import math
import uuid
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any

from exceptions import InvalidScanTransition

SUB_SCORE_MAX = 25


def round_half_up(value: float) -> int:
    """Round .5 upwards; round() rounds half to even."""
    return int(math.floor(value + 0.5))


class ScanStatus(str, Enum):
    ENQUEUED = 'ENQUEUED'
    SCANNING = 'SCANNING'
    COMPLETE = 'COMPLETE'
    FAILED = 'FAILED'

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETE, ScanStatus.FAILED)


ALLOWED_TRANSITIONS = {
    ScanStatus.ENQUEUED: {ScanStatus.SCANNING},
    ScanStatus.SCANNING: {ScanStatus.COMPLETE, ScanStatus.FAILED},
    ScanStatus.COMPLETE: set(),
    ScanStatus.FAILED: set(),
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Scan:
    """One scan of one URL and its lifecycle."""
    url: str
    domain: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: ScanStatus = ScanStatus.ENQUEUED
    progress: int = 0
    current_step: str = 'Queued'
    created_at: str = field(default_factory=utc_now_iso)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    error_message: Optional[str] = None
    results: Optional[Dict[str, Any]] = None

    def transition(self, new_status: ScanStatus) -> None:
        """Move to new_status or raise InvalidScanTransition."""
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidScanTransition(self.status.value, new_status.value)
        self.status = new_status
        if new_status == ScanStatus.SCANNING:
            self.started_at = utc_now_iso()
        elif new_status.is_terminal:
            self.completed_at = utc_now_iso()

    def advance(self, progress: int, current_step: str) -> None:
        """Record progress. Never moves backwards and stays below 100 until COMPLETE."""
        if self.status != ScanStatus.SCANNING:
            raise InvalidScanTransition(self.status.value, f"progress {progress}")
        self.progress = max(self.progress, min(int(progress), 99))
        self.current_step = current_step

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Scan':
        known = {name: data.get(name) for name in cls.__dataclass_fields__ if name in data}
        known['status'] = ScanStatus(known.get('status') or ScanStatus.ENQUEUED.value)
        return cls(**known)


@dataclass
class ScoreBreakdown:
    technical: int = 0
    on_page_seo: int = 0
    authority: int = 0
    performance: int = 0

    def __post_init__(self):
        for name in ('technical', 'on_page_seo', 'authority', 'performance'):
            value = int(getattr(self, name) or 0)
            setattr(self, name, max(0, min(SUB_SCORE_MAX, value)))

    @property
    def total(self) -> int:
        return self.technical + self.on_page_seo + self.authority + self.performance

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class KeywordSignal:
    """Per-keyword SERP signals; lives only for the duration of a scan."""
    keyword: str
    serp_features: Dict[str, Any] = field(default_factory=dict)
    difficulty: int = 0
    difficulty_label: str = 'Easy'
    opportunity_score: int = 0
    quick_win_score: int = 0
    intent: str = 'Informational'
    confidence: int = 0
    position: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HighlightPlacement:
    keyword_index: int
    char_offset: int
    paragraph_index: int
    length: int = 0


@dataclass
class ScanResult:
    """Everything a completed scan reports. health_score is always the breakdown total."""
    domain: str
    scanned_at: str = field(default_factory=utc_now_iso)
    score_breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    domain_age: Dict[str, Any] = field(default_factory=dict)
    observed_keywords: List[str] = field(default_factory=list)
    sampled_positions: List[Dict[str, Any]] = field(default_factory=list)
    serp_competitors: Dict[str, List[Dict[str, Any]]] = field(default_factory=lambda: {'direct': [], 'content': []})
    suggested_keywords: List[Dict[str, Any]] = field(default_factory=list)
    lighthouse_metrics: Optional[Dict[str, Any]] = None
    entity_verification: Dict[str, Any] = field(default_factory=lambda: {'recognized': False})
    content_salience: List[Dict[str, Any]] = field(default_factory=list)
    content_sentiment: Optional[Dict[str, Any]] = None
    keyword_signals: List[Dict[str, Any]] = field(default_factory=list)
    quick_wins: List[Dict[str, Any]] = field(default_factory=list)
    high_opportunity_keywords: List[Dict[str, Any]] = field(default_factory=list)
    ctr_analysis: List[Dict[str, Any]] = field(default_factory=list)
    competitor_gap: Optional[Dict[str, Any]] = None
    regional_analysis: Optional[Dict[str, Any]] = None
    device_comparison: Optional[Dict[str, Any]] = None
    keyword_clusters: List[Dict[str, Any]] = field(default_factory=list)
    search_volumes: Dict[str, Any] = field(default_factory=dict)
    action_items: List[Dict[str, Any]] = field(default_factory=list)
    technical_details: Dict[str, Any] = field(default_factory=dict)
    technical_issues: List[Dict[str, Any]] = field(default_factory=list)
    pagespeed: Optional[Dict[str, Any]] = None
    visibility_percentage: int = 0
    visibility_label: str = 'Weak'

    @property
    def health_score(self) -> int:
        return self.score_breakdown.total

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['health_score'] = self.health_score
        return data
