# core/analysis.py

"""
이 모듈은 외부 구조해석 엔진이 제공하는 스팬별 소요 철근량을 표현합니다.

구조해석 자체는 수행하지 않으며, 이미 계산된 값을 불투명한 데이터로 소비합니다.
구역(zone) 인덱스: 0=시점(Start), 1=중앙(Mid), 2=종점(End).
종방향 철근량은 mm², 전단(Av/s)과 비틀림 횡보강(At/s, 한 다리)은 단위 길이당 mm²/mm 입니다.
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional, Sequence, Tuple

from core.exceptions import ExternalDataMissingError

ZONE_COUNT = 3


@dataclass(frozen=True)
class SpanAnalysis:
    """한 스팬의 구역별 소요 철근량 (상부/하부/비틀림/전단/비틀림 횡보강)."""
    span_id: str
    top_area: Tuple[float, float, float]
    bot_area: Tuple[float, float, float]
    torsion_area: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    shear_area: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    width: float = 0.0
    depth: float = 0.0
    torsion_transverse_area: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        for name in ("top_area", "bot_area", "torsion_area", "shear_area", "torsion_transverse_area"):
            values = getattr(self, name)
            if values is None or len(values) != ZONE_COUNT:
                raise ValueError(f"{name} of span '{self.span_id}' must have {ZONE_COUNT} zones.")
            object.__setattr__(self, name, tuple(max(0.0, float(v or 0.0)) for v in values))

    def oriented(self, reversed_geometry: bool) -> "SpanAnalysis":
        """도면상 선분 방향이 뒤집힌 스팬은 구역 순서를 좌→우로 바로잡습니다."""
        if not reversed_geometry:
            return self
        return SpanAnalysis(
            span_id=self.span_id,
            top_area=self.top_area[::-1],
            bot_area=self.bot_area[::-1],
            torsion_area=self.torsion_area[::-1],
            shear_area=self.shear_area[::-1],
            width=self.width,
            depth=self.depth,
            torsion_transverse_area=self.torsion_transverse_area[::-1],
        )

    def required_top(self, zone: int, torsion_share: float) -> float:
        return self.top_area[zone] + self.torsion_area[zone] * torsion_share

    def required_bot(self, zone: int, torsion_share: float) -> float:
        return self.bot_area[zone] + self.torsion_area[zone] * torsion_share

    def required_side(self, zone: int, torsion_share: float) -> float:
        """측면근(web bar) 소요량 = 비틀림 철근 x 측면 분배율."""
        return self.torsion_area[zone] * torsion_share

    def required_stirrup(self, zone: int) -> float:
        """단위 길이당 스터럽 소요량 Av/s + 2·At/s (mm²/mm)."""
        return self.shear_area[zone] + 2.0 * self.torsion_transverse_area[zone]


class AnalysisSource:
    """구조해석 결과 제공자 인터페이스."""

    def get(self, span_id: str) -> Optional[SpanAnalysis]:
        raise NotImplementedError

    def require(self, span_id: str) -> SpanAnalysis:
        """결과가 없으면 ExternalDataMissingError를 발생시킵니다."""
        result = self.get(span_id)
        if result is None:
            raise ExternalDataMissingError(span_id)
        return result

    def require_all(self, span_ids: Sequence[str]) -> Dict[str, SpanAnalysis]:
        return {sid: self.require(sid) for sid in span_ids}


class InMemoryAnalysisSource(AnalysisSource):
    def __init__(self, results: Optional[Dict[str, SpanAnalysis]] = None):
        self._results: Dict[str, SpanAnalysis] = dict(results or {})

    def put(self, analysis: SpanAnalysis):
        self._results[analysis.span_id] = analysis

    def get(self, span_id: str) -> Optional[SpanAnalysis]:
        return self._results.get(span_id)

    def rekey(self, old_id: str, new_id: str):
        """복사된 스팬이 원본 해석 결과를 공유하도록 연결합니다."""
        if old_id in self._results:
            self._results[new_id] = replace(self._results[old_id], span_id=new_id)
