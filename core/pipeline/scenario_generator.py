# core/pipeline/scenario_generator.py

"""
이 모듈은 보 그룹 하나에 대해 백본(관통) 철근 후보 시나리오를 열거합니다.

    1. sanitize: 단면 치수/전체 길이 정제, 허용 직경 목록 결정
    2. generate: 상부 직경 x 하부 직경 x 층당 개수 조합마다 SolutionContext 생성

각 후보는 clone()으로 만들어지므로 서로 상태를 공유하지 않으며,
어떤 순서로(또는 병렬로) 평가해도 결과가 같습니다.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from core.analysis import SpanAnalysis
from core.cutting import max_bars_per_layer, usable_width
from core.helpers import normalize_length
from core.material.material import diameters_in_range
from core.pipeline.context import SolutionContext, ExternalConstraints
from core.settings.config import DesignSettings
from core.topology.group import BeamGroup

logger = logging.getLogger(__name__)

STAGE_SANITIZE = "Sanitize"
STAGE_SCENARIO = "Scenario"

# 최소 개수에서 위로 몇 개까지 시도할지
COUNT_SEARCH_WINDOW = 2
MAX_TOP_BOT_DIFFERENCE = 2


class ScenarioGenerator:
    def __init__(self, settings: Optional[DesignSettings] = None):
        self.settings = settings or DesignSettings()

    # ------------------------------------------------------------------
    # 기준 컨텍스트
    # ------------------------------------------------------------------
    def create_base_context(self,
                            group: BeamGroup,
                            span_results: Sequence[SpanAnalysis],
                            constraints: Optional[ExternalConstraints] = None,
                            global_diameters: Optional[Sequence[int]] = None) -> SolutionContext:
        ctx = SolutionContext(
            group=group,
            span_results=tuple(span_results),
            settings=self.settings,
            global_diameters=tuple(global_diameters) if global_diameters else None,
            external_constraints=constraints or ExternalConstraints(),
        )
        self.sanitize(ctx)
        return ctx

    def sanitize(self, ctx: SolutionContext):
        """
        폭/높이/길이를 mm로 정규화하고 허용 직경을 결정합니다.
        사용할 수 없는 치수는 기본값으로 대체하며(설계 계속), 치수도 직경도 없으면 컨텍스트를 실패 처리합니다.
        """
        beam_cfg = self.settings.beam
        group = ctx.group

        widths, heights = [], []
        for topo, analysis in zip(group.spans, ctx.span_results):
            w = normalize_length(analysis.width) or normalize_length(topo.span.width)
            h = normalize_length(analysis.depth) or normalize_length(topo.span.depth)
            if w <= 0 or h <= 0:
                logger.warning("Span %s of %s has no usable section; using defaults %sx%s.",
                               topo.span_id, group.name, beam_cfg.default_width, beam_cfg.default_height)
            widths.append(w or beam_cfg.default_width)
            heights.append(h or beam_cfg.default_height)

        if not widths:
            group_w = normalize_length(group.width)
            group_h = normalize_length(group.height)
            if group_w <= 0 and group_h <= 0:
                ctx.fail(STAGE_SANITIZE, "Beam group has no spans and no section dimensions.")
                return
            widths = [group_w or beam_cfg.default_width]
            heights = [group_h or beam_cfg.default_height]

        ctx.beam_width = max(widths)
        ctx.min_width = min(widths)
        ctx.beam_height = max(heights)
        ctx.total_length = group.total_length

        ctx.allowed_diameters = tuple(self.allowed_diameters(ctx.global_diameters, ctx.external_constraints))
        if not ctx.allowed_diameters:
            ctx.fail(STAGE_SANITIZE, f"No allowed bar diameters within '{beam_cfg.main_bar_range}'.")

    def allowed_diameters(self,
                          global_diameters: Optional[Sequence[int]] = None,
                          constraints: Optional[ExternalConstraints] = None) -> List[int]:
        """
        재고 ∩ 주근 범위 → (짝수 직경만) → 전역 지정 목록과의 교집합.
        외부에서 강제된 백본 직경이 있으면 그 직경 하나만 사용합니다.
        """
        if constraints is not None and constraints.forced_backbone_diameter:
            return [constraints.forced_backbone_diameter]
        beam_cfg = self.settings.beam
        result = diameters_in_range(list(self.settings.general.available_diameters), beam_cfg.main_bar_range)
        if beam_cfg.prefer_even_diameter:
            result = [d for d in result if d % 2 == 0]
        if global_diameters:
            allowed = set(global_diameters)
            result = [d for d in result if d in allowed]
        return result

    # ------------------------------------------------------------------
    # 층당 개수 범위
    # ------------------------------------------------------------------
    def count_limits(self, ctx: SolutionContext, diameter: int) -> Tuple[int, int]:
        """
        (최소, 최대) 층당 개수.
        최소: 2개, 최대 순간격 기준 개수, 폭 180mm당 1개 중 큰 값 (가장 넓은 스팬 기준)
        최대: 순간격을 만족하는 최대 개수 (가장 좁은 스팬 기준)
        """
        beam_cfg = self.settings.beam
        usable = usable_width(beam_cfg, ctx.beam_width)
        by_spacing = math.ceil(usable / (beam_cfg.max_clear_spacing + diameter)) if usable > 0 else 0
        by_density = math.ceil(ctx.beam_width / beam_cfg.density_divisor)
        min_bars = max(beam_cfg.min_bars_per_layer, by_spacing, by_density)
        max_bars = max_bars_per_layer(beam_cfg, ctx.min_width, diameter)
        return min_bars, max_bars

    def _count_range(self, low: int, high: int, forced: Optional[int]) -> List[int]:
        if forced:
            return [forced] if forced <= high else []
        start = max(self.settings.beam.min_bars_per_layer, low)
        return list(range(start, min(start + COUNT_SEARCH_WINDOW, high) + 1))

    # ------------------------------------------------------------------
    # 시나리오 열거
    # ------------------------------------------------------------------
    def generate(self, base: SolutionContext) -> List[SolutionContext]:
        if not base.is_valid:
            return []

        beam_cfg = self.settings.beam
        constraints = base.external_constraints
        limits = {}
        for d in base.allowed_diameters:
            low, high = self.count_limits(base, d)
            if high < low:
                logger.debug("D%d skipped for %s: %d..%d bars per layer.", d, base.group.name, low, high)
                continue
            limits[d] = (low, high)

        scenarios = []
        for top_d, (top_low, top_high) in limits.items():
            for bot_d, (bot_low, bot_high) in limits.items():
                top_counts = self._count_range(top_low, top_high, constraints.forced_top_count)
                bot_counts = self._count_range(bot_low, bot_high, constraints.forced_bot_count)
                for n_top in top_counts:
                    for n_bot in bot_counts:
                        if abs(n_top - n_bot) > MAX_TOP_BOT_DIFFERENCE:
                            continue
                        ctx = base.clone()
                        ctx.top_diameter, ctx.top_count = top_d, n_top
                        ctx.bot_diameter, ctx.bot_count = bot_d, n_bot
                        ctx.scenario_id = scenario_name(top_d, n_top, bot_d, n_bot)
                        if constraints.preferred_diameter:
                            half = beam_cfg.preferred_diameter_bonus / 2.0
                            ctx.preferred_bonus = (half if top_d == constraints.preferred_diameter else 0.0) + \
                                                  (half if bot_d == constraints.preferred_diameter else 0.0)
                        scenarios.append(ctx)

        logger.debug("Generated %d scenario(s) for %s.", len(scenarios), base.group.name)
        return scenarios

    def generate_for_group(self,
                           group: BeamGroup,
                           span_results: Sequence[SpanAnalysis],
                           constraints: Optional[ExternalConstraints] = None,
                           global_diameters: Optional[Sequence[int]] = None) -> List[SolutionContext]:
        return self.generate(self.create_base_context(group, span_results, constraints, global_diameters))


def scenario_name(top_d: int, n_top: int, bot_d: int, n_bot: int) -> str:
    if top_d == bot_d and n_top == n_bot:
        return f"{n_top}D{top_d}"
    return f"T:{n_top}D{top_d}/B:{n_bot}D{bot_d}"
