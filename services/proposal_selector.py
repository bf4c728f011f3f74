# services/proposal_selector.py

"""
이 모듈은 순위가 매겨진 배근안들 중에서 성격이 서로 다른 제안 세트를 고르는
ProposalSelector 서비스를 제공합니다.

제안 순서: 최적 → 경제 → 강건 → 시공 용이 → 직경 통일 → (남는 자리는 점수 순으로 채움)
"""
from dataclasses import replace
from typing import Callable, List, Sequence

from core.pipeline.context import ContinuousBeamSolution

LABEL_BEST = "최적안"
LABEL_ECONOMICAL = "경제안"
LABEL_ROBUST = "강건안 (백본 강화)"
LABEL_SIMPLE = "시공 용이안"
LABEL_HARMONIOUS = "직경 통일안"
LABEL_OTHER = "기타안"


def _layer2_positions(sol: ContinuousBeamSolution) -> int:
    return sum(1 for spec in sol.reinforcements.values() if spec.layer >= 2)


def _uniformity(sol: ContinuousBeamSolution) -> float:
    """가설 철근 중 백본과 같은 직경의 비율. 가설 철근이 없으면 1."""
    specs = [s for s in sol.reinforcements.values() if s.count > 0]
    if not specs:
        return 1.0 if sol.backbone_diameter_top == sol.backbone_diameter_bot else 0.5
    same = 0
    for spec in specs:
        backbone = sol.backbone_diameter_top if spec.position == "Top" else sol.backbone_diameter_bot
        same += 1 if spec.diameter == backbone else 0
    return same / len(specs)


class ProposalSelector:
    """유효한 배근안에서 다양한 성격의 상위 N개 제안을 고릅니다."""
    def __init__(self, max_count: int = 5):
        self.max_count = max_count

    def select(self, proposals: Sequence[ContinuousBeamSolution]) -> List[ContinuousBeamSolution]:
        remaining = [p for p in proposals if p is not None and p.is_valid]
        selected: List[ContinuousBeamSolution] = []

        strategies: List[tuple] = [
            (LABEL_BEST, lambda p: (-p.total_score, -p.constructability_score)),
            (LABEL_ECONOMICAL, lambda p: (p.total_steel_weight, -p.total_score)),
            (LABEL_ROBUST, lambda p: (-(p.backbone_count_top + p.backbone_count_bot),
                                      -max(p.backbone_diameter_top, p.backbone_diameter_bot), -p.total_score)),
            (LABEL_SIMPLE, lambda p: (_layer2_positions(p), len(p.reinforcements), -p.constructability_score)),
            (LABEL_HARMONIOUS, lambda p: (-_uniformity(p), -p.total_score)),
        ]
        for label, key in strategies:
            if len(selected) >= self.max_count or not remaining:
                break
            self._take(remaining, selected, label, key)

        while remaining and len(selected) < self.max_count:
            self._take(remaining, selected, LABEL_OTHER, lambda p: -p.total_score)
        return selected

    @staticmethod
    def _take(remaining: List[ContinuousBeamSolution], selected: List[ContinuousBeamSolution],
              label: str, key: Callable):
        pick = min(remaining, key=key)
        remaining.remove(pick)
        selected.append(replace(pick, label=pick.label or label))
