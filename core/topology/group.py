# core/topology/group.py

"""보 그룹(BeamGroup)과 그룹 내 스팬 위상 정보를 담는 불변 데이터 클래스."""

from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from core.topology.geometry import Span, SupportType


@dataclass(frozen=True)
class SpanTopology:
    """그룹 안에서 순서가 정해진 스팬. label은 'S1', 'S2' ... 형식입니다."""
    span: Span
    span_index: int
    label: str
    origin: Optional[str] = None

    @property
    def span_id(self) -> str:
        return self.span.span_id

    @property
    def length(self) -> float:
        return self.span.length

    @property
    def is_reversed(self) -> bool:
        return self.span.is_reversed

    @property
    def left_support(self) -> SupportType:
        return self.span.end_support if self.is_reversed else self.span.start_support

    @property
    def right_support(self) -> SupportType:
        return self.span.start_support if self.is_reversed else self.span.end_support


@dataclass(frozen=True)
class BeamGroup:
    """
    하나의 구조 축선을 공유하는 연속보. spans[0]이 모(mother) 스팬이며,
    전체 길이는 스팬 길이의 합입니다.
    supports는 절점 수(스팬 수 + 1)만큼의 지점 유형입니다.
    """
    name: str
    group_type: str
    direction: str
    spans: Tuple[SpanTopology, ...]
    supports: Tuple[SupportType, ...]
    width: float
    height: float
    requires_splice: bool = False
    group_id: Optional[str] = None
    level_z: float = 0.0
    axis_name: str = ""

    def __post_init__(self):
        ids = [s.span_id for s in self.spans]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Beam group '{self.name}' contains duplicate spans.")
        if self.spans and len(self.supports) != len(self.spans) + 1:
            raise ValueError(f"Beam group '{self.name}' needs {len(self.spans) + 1} supports.")

    @property
    def mother_id(self) -> Optional[str]:
        return self.spans[0].span_id if self.spans else None

    @property
    def member_ids(self) -> List[str]:
        return [s.span_id for s in self.spans]

    @property
    def span_lengths(self) -> List[float]:
        return [s.length for s in self.spans]

    @property
    def total_length(self) -> float:
        return sum(self.span_lengths)

    @property
    def is_girder(self) -> bool:
        return self.group_type.upper() == "GIRDER"

    @property
    def start_support(self) -> SupportType:
        return self.supports[0]

    @property
    def end_support(self) -> SupportType:
        return self.supports[-1]

    def with_group_id(self, group_id: str) -> "BeamGroup":
        return replace(self, group_id=group_id)
