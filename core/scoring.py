# core/scoring.py

"""
이 모듈은 배근안의 시공성 점수를 계산하는 ConstructabilityScorer를 제공합니다.

세부 점수 (각 0~100):
    - cuts      : 이음이 적을수록 높음  = 1 - min(1, 이음 수 / 전체 철근 수)
    - diversity : 사용 직경 종류가 적을수록 높음 = 1 / 직경 종류 수
    - spacing   : 실제 순간격이 요구 순간격 이상이면 만점, 미만이면 (비율)²
    - layering  : 최대 층 수 1/2/3/4+ → 1.0/0.8/0.5/0.3

총점 = Σ(가중치 x 세부 점수), 0~100으로 제한. 가중치 합은 1.0이어야 합니다.
채점기는 배근안을 변경하지 않습니다.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from core.cutting import RebarCuttingAlgorithm, count_splices_from_records, required_clear_spacing, \
    span_infos_from_lengths, usable_width
from core.exceptions import RBDException
from core.helpers import clamp
from core.pipeline.context import ContinuousBeamSolution
from core.settings.config import DesignSettings, ScoringWeights
from core.topology.group import BeamGroup
from core.topology.store import DrawingStore, SEGMENTS_KEY

logger = logging.getLogger(__name__)

SPLICES_FROM_SEGMENTS = "segments"
SPLICES_FROM_ALGORITHM = "algorithm"
SPLICES_ESTIMATED = "estimate"

_LAYERING_SCORES = {1: 1.0, 2: 0.8, 3: 0.5}


@dataclass(frozen=True)
class ConstructabilityScore:
    total: float
    cuts: float
    diversity: float
    spacing: float
    layering: float
    splice_count: int = 0
    splice_source: str = SPLICES_ESTIMATED


class ConstructabilityScorer:
    def __init__(self, settings: Optional[DesignSettings] = None, store: Optional[DrawingStore] = None):
        self.settings = settings or DesignSettings()
        self.store = store

    @property
    def weights(self) -> ScoringWeights:
        return self.settings.scoring

    def score(self, solution: ContinuousBeamSolution, group: BeamGroup,
              beam_width: Optional[float] = None) -> ConstructabilityScore:
        self.weights.validate()
        if not solution.is_valid:
            return ConstructabilityScore(0.0, 0.0, 0.0, 0.0, 0.0)

        width = beam_width if beam_width is not None else group.width
        splices, source = self.count_splices(solution, group)
        cuts = self.cuts_score(solution, splices)
        diversity = self.diversity_score(solution)
        spacing = self.spacing_score(solution, width)
        layering = self.layering_score(solution)

        w = self.weights
        total = clamp((w.cuts * cuts + w.diversity * diversity + w.spacing * spacing + w.layering * layering) * 100.0,
                      0.0, 100.0)
        return ConstructabilityScore(
            total=total,
            cuts=cuts * 100.0,
            diversity=diversity * 100.0,
            spacing=spacing * 100.0,
            layering=layering * 100.0,
            splice_count=splices,
            splice_source=source,
        )

    # ------------------------------------------------------------------
    # 이음
    # ------------------------------------------------------------------
    @staticmethod
    def total_bars(solution: ContinuousBeamSolution) -> int:
        total = max(0, solution.backbone_count_top) + max(0, solution.backbone_count_bot)
        return total + sum(max(0, spec.count) for spec in solution.reinforcements.values())

    def count_splices(self, solution: ContinuousBeamSolution, group: BeamGroup) -> Tuple[int, str]:
        """저장된 세그먼트 → 절단 알고리즘 → 정척 길이 추정 순서로 이음 개수를 구합니다."""
        persisted = self._splices_from_store(solution, group)
        if persisted is not None:
            return persisted, SPLICES_FROM_SEGMENTS
        try:
            return self._splices_from_algorithm(solution, group), SPLICES_FROM_ALGORITHM
        except RBDException as e:
            logger.warning("Splice computation failed for %s (%s); using estimate.", group.name, e)
        return self._splices_estimate(solution, group.total_length), SPLICES_ESTIMATED

    def _splices_from_store(self, solution: ContinuousBeamSolution, group: BeamGroup) -> Optional[int]:
        if self.store is None or not group.mother_id or not self.store.exists(group.mother_id):
            return None
        record = self.store.read_record(group.mother_id, SEGMENTS_KEY)
        if not record or record.get("option_name") != solution.option_name:
            return None
        return count_splices_from_records(record.get("layers", []))

    def _splices_from_algorithm(self, solution: ContinuousBeamSolution, group: BeamGroup) -> int:
        if not group.spans:
            raise RBDException(f"Beam group '{group.name}' has no spans.")
        algorithm = RebarCuttingAlgorithm(self.settings)
        spans = span_infos_from_lengths(group.span_lengths, [t.label for t in group.spans])
        total = 0
        for is_top, dia, count in ((True, solution.backbone_diameter_top, solution.backbone_count_top),
                                   (False, solution.backbone_diameter_bot, solution.backbone_count_bot)):
            result = algorithm.process_complete(
                group.total_length, spans, is_top, group.group_type,
                group.start_support, group.end_support, dia, count,
                group.spans[0].span.concrete_grade or None, group.spans[0].span.steel_grade or None)
            total += result.total_splices
        return total

    def _splices_estimate(self, solution: ContinuousBeamSolution, total_length: float) -> int:
        stock = self.settings.beam.standard_bar_length
        if stock <= 0 or total_length <= 0:
            return 0
        per_bar = max(0, math.ceil(total_length / stock) - 1)
        return per_bar * (max(0, solution.backbone_count_top) + max(0, solution.backbone_count_bot))

    # ------------------------------------------------------------------
    # 세부 점수 (0~1)
    # ------------------------------------------------------------------
    def cuts_score(self, solution: ContinuousBeamSolution, splices: int) -> float:
        total = self.total_bars(solution)
        if total <= 0:
            return 0.0
        return max(0.0, 1.0 - min(1.0, splices / total))

    @staticmethod
    def diversity_score(solution: ContinuousBeamSolution) -> float:
        diameters = solution.diameters
        return 1.0 / len(diameters) if diameters else 0.0

    def spacing_score(self, solution: ContinuousBeamSolution, width: float) -> float:
        usable = usable_width(self.settings.beam, width)
        if width <= 0 or usable <= 0:
            return 0.0
        top = self._layer_spacing(usable, solution.backbone_count_top, solution.backbone_diameter_top)
        bot = self._layer_spacing(usable, solution.backbone_count_bot, solution.backbone_diameter_bot)
        return max(0.0, min(top, bot))

    def _layer_spacing(self, usable: float, n_bars: int, diameter: int) -> float:
        if n_bars <= 1 or diameter <= 0:
            return 1.0
        remaining = usable - n_bars * diameter
        if remaining <= 0:
            return 0.0
        ratio = (remaining / (n_bars - 1)) / required_clear_spacing(self.settings.beam, diameter)
        return 1.0 if ratio >= 1.0 else ratio * ratio

    @staticmethod
    def layering_score(solution: ContinuousBeamSolution) -> float:
        layers = max([spec.layer for spec in solution.reinforcements.values()] + [1])
        return _LAYERING_SCORES.get(layers, 0.3)

    # ------------------------------------------------------------------
    # 보고서
    # ------------------------------------------------------------------
    def generate_report(self, solution: ContinuousBeamSolution, group: BeamGroup,
                        beam_width: Optional[float] = None) -> str:
        s = self.score(solution, group, beam_width)
        w = self.weights
        return "\n".join([
            "=== CONSTRUCTABILITY REPORT ===",
            f"Option: {solution.option_name}",
            f"Total Score: {s.total:.1f}/100",
            "",
            "Component Scores:",
            f"  1. Cuts/Splices ({w.cuts * 100:.0f}%): {s.cuts:.1f}/100  [{s.splice_count} splices, {s.splice_source}]",
            f"  2. Diversity    ({w.diversity * 100:.0f}%): {s.diversity:.1f}/100",
            f"  3. Spacing      ({w.spacing * 100:.0f}%): {s.spacing:.1f}/100",
            f"  4. Layering     ({w.layering * 100:.0f}%): {s.layering:.1f}/100",
        ])
