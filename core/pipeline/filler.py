# core/pipeline/filler.py

"""
이 모듈은 시나리오(백본 직경/개수)에 대해 위치별 가설(addon) 철근을 설계하는
ReinforcementFiller 단계를 제공합니다.

지점 중심 설계:
    1. 지점 통합: 지점 i의 상부근은 좌측 스팬 종점과 우측 스팬 시점 소요량의 포락값으로 설계
    2. 스팬 채우기: 지점 설계를 인접 두 스팬에 같은 사양으로 할당하고, 중앙부 하부근(필요 시 상부근) 설계
    3. 연결(bridging): 짧은 스팬에서 좌/우 가설 철근 사이 간격이 작으면 하나의 관통 철근으로 병합
    4. 스터럽(전단 + 비틀림 횡보강)과 측면근 설계 (transverse 모듈)
    5. 중량/효율/설명 계산 (중량은 종방향 철근만)
"""

import logging
import math
from typing import Dict, List, Optional, Tuple

from core.analysis import SpanAnalysis
from core.cutting import fits_in_width, max_bars_per_layer
from core.material.material import bar_area, bar_unit_weight
from core.pipeline.context import SolutionContext, ContinuousBeamSolution, RebarSpec
from core.pipeline.strategies import FillingContext, FillingResult, DEFAULT_STRATEGIES
from core.pipeline.transverse import design_transverse

logger = logging.getLogger(__name__)

STAGE_NAME = "ReinforcementFiller"
ZONE_START, ZONE_MID, ZONE_END = 0, 1, 2
WEIGHT_WASTE_FACTOR = 1.02
ADDON_SEARCH_RANGE = 4

_DESCRIPTIONS = {2: "경제형", 3: "균형형", 4: "안전형"}


class ReinforcementFiller:
    def __init__(self, strategies=DEFAULT_STRATEGIES):
        self.strategies = tuple(strategies)

    def execute(self, ctx: SolutionContext) -> SolutionContext:
        if not ctx.is_valid:
            return ctx
        self.fill(ctx)
        return ctx

    # ------------------------------------------------------------------
    # 시나리오 하나 채우기
    # ------------------------------------------------------------------
    def fill(self, ctx: SolutionContext):
        beam_cfg = ctx.settings.beam
        group = ctx.group
        sf = beam_cfg.safety_factor

        backbone_top = ctx.top_count * bar_area(ctx.top_diameter)
        backbone_bot = ctx.bot_count * bar_area(ctx.bot_diameter)
        ctx.stirrup_leg_count = beam_cfg.stirrup_legs_for_width(ctx.beam_width)

        if not group.spans:
            ctx.fail(STAGE_NAME, "Beam group has no spans.")
            return
        if not ctx.span_results:
            ctx.fail(STAGE_NAME, "No analysis results for the beam group.")
            return

        results = ctx.span_results
        n = min(len(group.spans), len(results))
        reinforcements: Dict[str, RebarSpec] = {}
        support_top: Dict[int, RebarSpec] = {}
        support_bot: Dict[int, RebarSpec] = {}
        req_top_max, req_bot_max = 0.0, 0.0

        # 1. 지점 통합
        for i in range(n + 1):
            left = results[i - 1] if i > 0 else None
            right = results[i] if i < n else None

            req_top = max(self._required(left, True, ZONE_END, beam_cfg),
                          self._required(right, True, ZONE_START, beam_cfg)) * sf
            req_top_max = max(req_top_max, req_top)
            spec = self.design_location(ctx, req_top, ctx.top_diameter, ctx.top_count, backbone_top, "Top")
            if spec is None:
                ctx.fail(STAGE_NAME, f"Top bars do not fit at support {i} (req {req_top:.0f} mm²).")
                return
            support_top[i] = spec

            req_bot = max(self._required(left, False, ZONE_END, beam_cfg),
                          self._required(right, False, ZONE_START, beam_cfg)) * sf
            req_bot_max = max(req_bot_max, req_bot)
            if req_bot > backbone_bot:
                spec = self.design_location(ctx, req_bot, ctx.bot_diameter, ctx.bot_count, backbone_bot, "Bot")
                if spec is None:
                    ctx.fail(STAGE_NAME, f"Bottom bars do not fit at support {i}.")
                    return
                support_bot[i] = spec

        # 2. 스팬 채우기
        for i in range(n):
            label = group.spans[i].label
            res = results[i]
            _assign(reinforcements, f"{label}_Top_Left", support_top.get(i))
            _assign(reinforcements, f"{label}_Top_Right", support_top.get(i + 1))
            _assign(reinforcements, f"{label}_Bot_Left", support_bot.get(i))
            _assign(reinforcements, f"{label}_Bot_Right", support_bot.get(i + 1))

            req_bot_mid = self._required(res, False, ZONE_MID, beam_cfg) * sf
            req_bot_max = max(req_bot_max, req_bot_mid)
            spec = self.design_location(ctx, req_bot_mid, ctx.bot_diameter, ctx.bot_count, backbone_bot, "Bot")
            if spec is None:
                ctx.fail(STAGE_NAME, f"Bottom mid-span bars do not fit in {label} (req {req_bot_mid:.0f} mm²).")
                return
            _assign(reinforcements, f"{label}_Bot_Mid", spec)

            req_top_mid = self._required(res, True, ZONE_MID, beam_cfg) * sf
            req_top_max = max(req_top_max, req_top_mid)
            if req_top_mid > backbone_top:
                spec = self.design_location(ctx, req_top_mid, ctx.top_diameter, ctx.top_count, backbone_top, "Top")
                _assign(reinforcements, f"{label}_Top_Mid", spec)

        # 3. 짧은 스팬 연결
        notes = self.apply_bridging(reinforcements, ctx)

        # 4. 스터럽 / 측면근
        stirrups, web_bars = design_transverse(group, results[:n], beam_cfg,
                                               ctx.settings.general.available_diameters,
                                               ctx.beam_width, ctx.beam_height)

        # 5. 지표
        weight = self.steel_weight(ctx, reinforcements)
        efficiency = 10000.0 / (weight + 1.0)
        if any(s.layer >= 2 for s in reinforcements.values()):
            efficiency *= 0.95
        if ctx.top_count != ctx.bot_count:
            efficiency *= 0.98
        description = " ".join([_DESCRIPTIONS.get(ctx.top_count, "")] + notes).strip()

        ctx.reinforcements = reinforcements
        ctx.solution = ContinuousBeamSolution(
            option_name=ctx.scenario_id,
            backbone_diameter_top=ctx.top_diameter,
            backbone_diameter_bot=ctx.bot_diameter,
            backbone_count_top=ctx.top_count,
            backbone_count_bot=ctx.bot_count,
            reinforcements=dict(reinforcements),
            stirrup_leg_count=ctx.stirrup_leg_count,
            stirrups=stirrups,
            web_bars=web_bars,
            total_steel_weight=weight,
            efficiency_score=efficiency,
            waste_count=ctx.waste_count,
            description=description,
            as_required_top_max=req_top_max,
            as_required_bot_max=req_bot_max,
        )

    @staticmethod
    def _required(res: Optional[SpanAnalysis], is_top: bool, zone: int, beam_cfg) -> float:
        if res is None:
            return 0.0
        if is_top:
            return res.required_top(zone, beam_cfg.torsion_top)
        return res.required_bot(zone, beam_cfg.torsion_bot)

    # ------------------------------------------------------------------
    # 위치 하나 설계
    # ------------------------------------------------------------------
    def design_location(self, ctx: SolutionContext, required: float, backbone_dia: int,
                        backbone_count: int, backbone_area: float, position: str) -> Optional[RebarSpec]:
        """
        백본으로 부족한 양을 가설 철근으로 채웁니다. 배치할 수 없으면 None.
        1단 배치가 가능한 조합을 먼저 찾고, 없으면 다층 채우기 전략을 사용합니다.
        """
        if backbone_area >= required:
            return RebarSpec(diameter=backbone_dia, count=0, position=position)

        beam_cfg = ctx.settings.beam
        width = ctx.beam_width
        candidates = self._diameters_to_try(ctx, backbone_dia)

        best: Optional[RebarSpec] = None
        best_score = -math.inf

        # 1단 배치
        for d in candidates:
            min_addon = math.ceil((required - backbone_area) / bar_area(d))
            if min_addon <= 0:
                continue
            for addon in range(min_addon, min_addon + ADDON_SEARCH_RANGE + 1):
                if not fits_in_width(beam_cfg, width, [(backbone_count, backbone_dia), (addon, d)]):
                    break
                if backbone_area + addon * bar_area(d) >= required:
                    score = 1000 - addon * 10
                    if d == backbone_dia:
                        score += 50
                    elif d < backbone_dia:
                        score += 20
                    if score > best_score:
                        best_score = score
                        best = RebarSpec(diameter=d, count=addon, position=position, layer=1,
                                         layer_breakdown=(backbone_count + addon,))
                    break
        if best is not None:
            return best

        # 다층 배치
        waste = 0
        for d in candidates:
            capacity = max_bars_per_layer(beam_cfg, width, max(backbone_dia, d))
            if backbone_count > capacity:
                continue
            fill_ctx = FillingContext(
                required_area=required,
                backbone_area=backbone_area,
                backbone_count=backbone_count,
                bar_diameter=d,
                layer1_capacity=capacity,
                max_layers=beam_cfg.max_layers,
                stirrup_legs=ctx.stirrup_leg_count,
                prefer_symmetric=beam_cfg.prefer_symmetric,
            )
            result = self._pick_strategy_result([s.calculate(fill_ctx) for s in self.strategies])
            if result is None:
                continue
            add = result.total_count - backbone_count
            if add <= 0:
                continue
            layer1_addon = max(0, result.layer1_count - backbone_count)
            if layer1_addon > 0 and not fits_in_width(beam_cfg, width, [(backbone_count, backbone_dia), (layer1_addon, d)]):
                continue

            score = 1000 - add * 10 - result.layers * 50 - result.waste_count * 5
            if d == backbone_dia:
                score += 30
            elif d < backbone_dia:
                score += 15
            if score > best_score:
                best_score = score
                waste = result.waste_count
                best = RebarSpec(diameter=d, count=add, position=position, layer=result.layers,
                                 layer_breakdown=tuple(result.breakdown))

        if best is not None:
            ctx.waste_count += waste
        return best

    @staticmethod
    def _diameters_to_try(ctx: SolutionContext, backbone_dia: int) -> List[int]:
        """같은 직경 → 작은 직경(내림차순) → 큰 직경(오름차순)."""
        if ctx.settings.beam.prefer_single_diameter:
            return [backbone_dia]
        inventory = sorted(set(ctx.settings.general.available_diameters))
        smaller = [d for d in reversed(inventory) if d < backbone_dia]
        larger = [d for d in inventory if d > backbone_dia]
        return [backbone_dia] + smaller + larger

    @staticmethod
    def _pick_strategy_result(results: List[FillingResult]) -> Optional[FillingResult]:
        """층 수가 적은 것, 같으면 전체 개수가 적은 것. 먼저 나온 전략이 동률에서 이깁니다."""
        valid = [r for r in results if r.is_valid]
        if not valid:
            return None
        return min(valid, key=lambda r: (r.layers, r.total_count))

    # ------------------------------------------------------------------
    # 연결 / 중량
    # ------------------------------------------------------------------
    @staticmethod
    def apply_bridging(reinforcements: Dict[str, RebarSpec], ctx: SolutionContext) -> List[str]:
        """
        좌/우 가설 철근 사이 간격이 max(최소 간격, 40d)보다 작으면 '{label}_{pos}_Full' 하나로 병합합니다.
        병합 내역 메모 목록을 반환합니다.
        """
        detailing = ctx.settings.detailing
        ratio = detailing.rule_for(ctx.group.group_type).support_zone_ratio
        notes = []
        for position in ("Top", "Bot"):
            for topo in ctx.group.spans:
                left_key = f"{topo.label}_{position}_Left"
                right_key = f"{topo.label}_{position}_Right"
                left, right = reinforcements.get(left_key), reinforcements.get(right_key)
                if left is None or right is None:
                    continue
                if not left.is_similar(right) or left.layer != right.layer:
                    continue
                gap = topo.length - 2 * topo.length * ratio
                limit = max(detailing.bridging_min_gap, 40 * left.diameter)
                if gap >= limit:
                    continue
                del reinforcements[left_key]
                del reinforcements[right_key]
                reinforcements[f"{topo.label}_{position}_Full"] = RebarSpec(
                    diameter=left.diameter, count=left.count, position=position, layer=left.layer,
                    layer_breakdown=left.layer_breakdown, is_running_through=True)
                notes.append(f"[{position} 관통 {topo.label}]")
        return notes

    @staticmethod
    def steel_weight(ctx: SolutionContext, reinforcements: Dict[str, RebarSpec]) -> float:
        """백본(할증 2%) + 가설 철근 (지점부 0.33L, 중앙부 0.8L) 중량 (kg)."""
        detailing = ctx.settings.detailing
        length_m = ctx.total_length / 1000.0
        weight = (bar_unit_weight(ctx.top_diameter) * length_m * ctx.top_count +
                  bar_unit_weight(ctx.bot_diameter) * length_m * ctx.bot_count) * WEIGHT_WASTE_FACTOR

        lengths = {t.label: t.length for t in ctx.group.spans}
        for key, spec in reinforcements.items():
            if spec.count <= 0:
                continue
            label, _, zone = _split_key(key)
            span_length = lengths.get(label, 0.0)
            ratio = detailing.addon_support_ratio if zone in ("Left", "Right") else detailing.addon_midspan_ratio
            weight += bar_unit_weight(spec.diameter) * span_length * ratio / 1000.0 * spec.count
        return weight


def _assign(reinforcements: Dict[str, RebarSpec], key: str, spec: Optional[RebarSpec]):
    if spec is not None and spec.count > 0:
        reinforcements[key] = spec


def _split_key(key: str) -> Tuple[str, str, str]:
    """'S1_Top_Left' → ('S1', 'Top', 'Left')"""
    parts = key.rsplit("_", 2)
    if len(parts) != 3:
        return key, "", ""
    return parts[0], parts[1], parts[2]
