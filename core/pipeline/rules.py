# core/pipeline/rules.py

"""
설계 규칙 모음과 규칙 엔진.

각 규칙은 SolutionContext 하나를 검사하여 ValidationResult를 반환하는 독립 객체입니다.
RuleEngine은 우선순위(priority) 오름차순으로 규칙을 실행하고, Critical 결과가 나오면
나머지 규칙을 건너뜁니다. Critical은 예외가 아니라 '탈락한 후보'라는 정상 결과입니다.
"""

import logging
from typing import Iterable, List, Optional

from core.cutting import fits_in_width
from core.helpers import is_greater_or_equal
from core.material.material import bar_area
from core.pipeline.context import SolutionContext, ValidationResult, Severity

logger = logging.getLogger(__name__)


class DesignRule:
    name = "Rule"
    priority = 100

    def evaluate(self, ctx: SolutionContext) -> ValidationResult:
        raise NotImplementedError


class SpacingRule(DesignRule):
    """모든 위치의 1단/2단 배치가 요구 순간격을 만족하는지 확인합니다."""
    name = "Spacing"
    priority = 5

    def evaluate(self, ctx: SolutionContext) -> ValidationResult:
        beam_cfg = ctx.settings.beam
        width = ctx.beam_width
        for position, dia, count in (("Top", ctx.top_diameter, ctx.top_count),
                                     ("Bot", ctx.bot_diameter, ctx.bot_count)):
            if not fits_in_width(beam_cfg, width, [(count, dia)]):
                return ValidationResult.critical(self.name, f"{position} backbone {count}D{dia} does not fit.")

        for key, spec in ctx.reinforcements.items():
            if spec.count <= 0:
                continue
            backbone_dia = ctx.top_diameter if spec.position == "Top" else ctx.bot_diameter
            backbone_count = ctx.top_count if spec.position == "Top" else ctx.bot_count
            breakdown = list(spec.layer_breakdown) or [backbone_count + spec.count]
            if len(breakdown) > beam_cfg.max_layers:
                return ValidationResult.critical(self.name, f"{key}: {len(breakdown)} layers exceed the limit.")
            layer1_addon = max(0, breakdown[0] - backbone_count)
            if not fits_in_width(beam_cfg, width, [(backbone_count, backbone_dia), (layer1_addon, spec.diameter)]):
                return ValidationResult.critical(self.name, f"{key}: layer 1 does not fit.")
            for n in breakdown[1:]:
                if not fits_in_width(beam_cfg, width, [(n, spec.diameter)]):
                    return ValidationResult.critical(self.name, f"{key}: upper layer does not fit.")
        return ValidationResult.passed(self.name)


class VerticalAlignmentRule(DesignRule):
    """
    상/하부 백본 개수의 홀짝이 같아야 스터럽 다리를 수직으로 맞출 수 있습니다.
    홀짝 불일치: Warning (기본 25점). 개수 차이가 2를 넘으면 초과분 1개당 5점 추가.
    """
    name = "VerticalAlignment"
    priority = 12
    EXTRA_PER_BAR = 5.0
    FREE_DIFFERENCE = 2

    def evaluate(self, ctx: SolutionContext) -> ValidationResult:
        penalty = 0.0
        messages = []
        if ctx.top_count % 2 != ctx.bot_count % 2:
            penalty += ctx.settings.beam.alignment_penalty
            messages.append(f"parity mismatch {ctx.top_count}/{ctx.bot_count}")
        diff = abs(ctx.top_count - ctx.bot_count)
        if diff > self.FREE_DIFFERENCE:
            penalty += self.EXTRA_PER_BAR * (diff - self.FREE_DIFFERENCE)
            messages.append(f"count difference {diff}")
        if penalty <= 0:
            return ValidationResult.passed(self.name)
        return ValidationResult.warning(self.name, penalty, "; ".join(messages))


class WastePenaltyRule(DesignRule):
    name = "WastePenalty"
    priority = 15

    def evaluate(self, ctx: SolutionContext) -> ValidationResult:
        if ctx.waste_count <= 0:
            return ValidationResult.passed(self.name)
        penalty = ctx.waste_count * ctx.settings.beam.waste_penalty_per_bar
        return ValidationResult.warning(self.name, penalty, f"{ctx.waste_count} bar(s) added for constructability")


class SteelDeficitRule(DesignRule):
    """구역별 배근량이 소요량의 허용 비율(기본 98%)에 못 미치면 Critical."""
    name = "SteelDeficit"
    priority = 20
    _ZONE_KEYS = (("Left", "Full"), ("Mid", "Full"), ("Right", "Full"))

    def evaluate(self, ctx: SolutionContext) -> ValidationResult:
        beam_cfg = ctx.settings.beam
        tolerance = beam_cfg.steel_deficit_tolerance
        sf = beam_cfg.safety_factor
        backbone = {"Top": ctx.top_count * bar_area(ctx.top_diameter),
                    "Bot": ctx.bot_count * bar_area(ctx.bot_diameter)}

        for topo, res in zip(ctx.group.spans, ctx.span_results):
            for zone, suffixes in enumerate(self._ZONE_KEYS):
                required = {"Top": res.required_top(zone, beam_cfg.torsion_top) * sf,
                            "Bot": res.required_bot(zone, beam_cfg.torsion_bot) * sf}
                for position in ("Top", "Bot"):
                    provided = backbone[position] + sum(
                        spec.area for key, spec in ctx.reinforcements.items()
                        if key.startswith(f"{topo.label}_{position}_") and key.rsplit("_", 1)[-1] in suffixes)
                    if not is_greater_or_equal(provided, tolerance * required[position]):
                        return ValidationResult.critical(
                            self.name,
                            f"{topo.label} {position} zone {zone}: {provided:.0f} < {required[position]:.0f} mm²")
        return ValidationResult.passed(self.name)


DEFAULT_RULES = (SpacingRule(), VerticalAlignmentRule(), WastePenaltyRule(), SteelDeficitRule())


class RuleEngine:
    def __init__(self, rules: Optional[Iterable[DesignRule]] = None):
        self.rules: List[DesignRule] = sorted(rules if rules is not None else DEFAULT_RULES,
                                              key=lambda r: r.priority)

    def add_rule(self, rule: DesignRule):
        self.rules.append(rule)
        self.rules.sort(key=lambda r: r.priority)

    def execute(self, ctx: SolutionContext) -> SolutionContext:
        if not ctx.is_valid:
            return ctx
        for rule in self.rules:
            result = rule.evaluate(ctx)
            ctx.add_result(result)
            if result.severity == Severity.CRITICAL:
                logger.debug("Scenario %s rejected by %s: %s", ctx.scenario_id, rule.name, result.message)
                break
        return ctx
