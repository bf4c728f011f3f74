# core/pipeline/transverse.py

"""
이 모듈은 스팬 구역별 스터럽과 스팬별 측면근(web bar)을 설계합니다.

    스터럽: 단위 길이당 소요량 Av/s + 2·At/s (mm²/mm)를 만족하는 조합 중
            작은 직경 → 적은 다리 수 → 넓은 간격 순으로 첫 번째 것을 선택
    측면근: 비틀림 종방향 철근 x 측면 분배율(torsion_side)과,
            춤이 web_bar_min_height 이상일 때의 구조 최소 2본 중 큰 값 (짝수로 올림)

두 결과 모두 백본 시나리오와 무관합니다.
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple

from core.analysis import SpanAnalysis
from core.material.material import bar_area, diameters_in_range
from core.pipeline.context import StirrupSpec, WebBarSpec
from core.settings.config import BeamSettings
from core.topology.group import BeamGroup

ZONES = ("Left", "Mid", "Right")
# mm²/mm, mm²
NEGLIGIBLE_STIRRUP_AREA = 0.01
NEGLIGIBLE_SIDE_AREA = 1.0
DEFAULT_WEB_DIAMETER = 12
CONSTRUCTIVE_WEB_BARS = 2


def stirrup_leg_options(width: float, beam_cfg: BeamSettings) -> List[int]:
    """폭 규칙의 기본 다리 수 주변(-1 ~ +2) 후보. 홀수 다리는 허용할 때만."""
    base = beam_cfg.stirrup_legs_for_width(width)
    options = ([base - 1] if base - 1 >= 2 else []) + [base, base + 1, base + 2]
    if not beam_cfg.allow_odd_legs:
        options = [n for n in options if n % 2 == 0]
    return options or [2, 4]


def design_stirrup(required: float, width: float, beam_cfg: BeamSettings,
                   inventory: Sequence[int]) -> Optional[StirrupSpec]:
    """
    required (mm²/mm)를 만족하는 스터럽. 소요량이 없으면 None.
    어떤 조합으로도 최소 간격 이상을 확보하지 못하면 최대 다리 수/최대 직경/최소 간격에
    is_insufficient를 표시해 반환합니다.
    """
    if required <= NEGLIGIBLE_STIRRUP_AREA:
        return None
    diameters = diameters_in_range(list(inventory), beam_cfg.stirrup_bar_range) or [beam_cfg.stirrup_diameter]
    spacings = sorted(beam_cfg.stirrup_spacings, reverse=True)
    legs_options = stirrup_leg_options(width, beam_cfg)

    for d in diameters:
        for legs in legs_options:
            max_spacing = legs * bar_area(d) / required
            for s in spacings:
                if beam_cfg.min_stirrup_spacing <= s <= max_spacing:
                    return StirrupSpec(legs=legs, diameter=d, spacing=s)
    return StirrupSpec(legs=legs_options[-1], diameter=max(diameters), spacing=min(spacings),
                       is_insufficient=True)


def design_web_bars(required: float, height: float, beam_cfg: BeamSettings,
                    inventory: Sequence[int]) -> WebBarSpec:
    """측면 소요량 required (mm²)와 춤으로 측면근을 정합니다. 필요 없으면 개수 0."""
    diameters = diameters_in_range(list(inventory), beam_cfg.side_bar_range) or [DEFAULT_WEB_DIAMETER]
    constructive = CONSTRUCTIVE_WEB_BARS if height >= beam_cfg.web_bar_min_height else 0

    def count_for(d: int) -> int:
        n = math.ceil(required / bar_area(d)) if required > NEGLIGIBLE_SIDE_AREA else 0
        n = max(n, constructive)
        return n + n % 2

    for d in diameters:
        n = count_for(d)
        if 0 < n <= beam_cfg.max_web_bars:
            return WebBarSpec(count=n, diameter=d)
    return WebBarSpec(count=count_for(diameters[-1]), diameter=diameters[-1])


def design_transverse(group: BeamGroup, span_results: Sequence[SpanAnalysis], beam_cfg: BeamSettings,
                      inventory: Sequence[int], width: float,
                      height: float) -> Tuple[Dict[str, StirrupSpec], Dict[str, WebBarSpec]]:
    """
    그룹 전체의 (스터럽, 측면근). 스터럽 키는 '{label}_{zone}', 측면근 키는 스팬 레이블입니다.
    측면근은 스팬 전 길이에 배치되므로 세 구역의 포락 소요량으로 설계합니다.
    """
    stirrups: Dict[str, StirrupSpec] = {}
    web_bars: Dict[str, WebBarSpec] = {}
    for topo, res in zip(group.spans, span_results):
        for zone, name in enumerate(ZONES):
            spec = design_stirrup(res.required_stirrup(zone), width, beam_cfg, inventory)
            if spec is not None:
                stirrups[f"{topo.label}_{name}"] = spec
        side = max(res.required_side(zone, beam_cfg.torsion_side) for zone in range(len(ZONES)))
        web = design_web_bars(side, height, beam_cfg, inventory)
        if web.count > 0:
            web_bars[topo.label] = web
    return stirrups, web_bars
