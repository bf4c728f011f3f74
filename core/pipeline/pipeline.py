# core/pipeline/pipeline.py

"""
이 모듈은 보 그룹 하나에 대한 배근 설계 파이프라인(RebarPipeline)을 제공합니다.

단계 (엄격한 순서):
    sanitize → scenario → 가설 철근(filler) → 설계 규칙 → 절단/이음 → 시공성 점수
각 단계 뒤에 무효 컨텍스트는 걸러지며(rejected), 유효 후보만 다음 단계로 진행합니다.
후보 평가는 서로 독립적이므로 max_workers > 1이면 스레드 풀에서 병렬로 수행합니다.

총점 = economy_share x 경제성(중량) 점수 + (1 - economy_share) x 시공성 점수 - 벌점 + 가점
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

from core.analysis import AnalysisSource, SpanAnalysis
from core.pipeline.context import SolutionContext, ContinuousBeamSolution, ExternalConstraints
from core.pipeline.filler import ReinforcementFiller
from core.pipeline.rules import RuleEngine, DesignRule
from core.pipeline.scenario_generator import ScenarioGenerator
from core.scoring import ConstructabilityScorer
from core.settings.config import DesignSettings
from core.topology.group import BeamGroup
from core.topology.store import DrawingStore

logger = logging.getLogger(__name__)

STAGE_SCORING = "Scoring"


@dataclass
class PipelineResult:
    """정렬된 상위 후보, 탈락한 컨텍스트, 유효 후보가 없을 때의 최선 노력(best-effort) 안."""
    solutions: List[ContinuousBeamSolution] = field(default_factory=list)
    rejected: List[SolutionContext] = field(default_factory=list)
    best_effort: Optional[ContinuousBeamSolution] = None

    @property
    def has_solution(self) -> bool:
        return bool(self.solutions)

    @property
    def best(self) -> Optional[ContinuousBeamSolution]:
        return self.solutions[0] if self.solutions else None


def collect_span_results(group: BeamGroup, source: AnalysisSource) -> Tuple[SpanAnalysis, ...]:
    """
    그룹 순서대로 해석 결과를 모읍니다. 뒤집힌 스팬은 구역 순서를 바로잡습니다.
    결과가 없는 스팬이 있으면 ExternalDataMissingError가 전파됩니다.
    """
    results = source.require_all(group.member_ids)
    return tuple(results[t.span_id].oriented(t.is_reversed) for t in group.spans)


class RebarPipeline:
    def __init__(self,
                 settings: Optional[DesignSettings] = None,
                 rules: Optional[Sequence[DesignRule]] = None,
                 max_workers: Optional[int] = None,
                 store: Optional[DrawingStore] = None):
        self.settings = settings or DesignSettings()
        self.generator = ScenarioGenerator(self.settings)
        self.filler = ReinforcementFiller()
        self.rule_engine = RuleEngine(rules)
        self.scorer = ConstructabilityScorer(self.settings, store)
        self.max_workers = max_workers

    def execute(self,
                group: BeamGroup,
                span_results: Sequence[SpanAnalysis],
                constraints: Optional[ExternalConstraints] = None,
                global_diameters: Optional[Sequence[int]] = None) -> PipelineResult:
        # 가중치 오류는 어떤 후보도 채점하기 전에 보고합니다.
        self.settings.scoring.validate()

        base = self.generator.create_base_context(group, span_results, constraints, global_diameters)
        if not base.is_valid:
            logger.warning("Group %s cannot be designed: %s", group.name, base.fail_message)
            return PipelineResult(rejected=[base])

        scenarios = self.generator.generate(base)
        if not scenarios:
            base.fail("Scenario", "No backbone diameter/count combination fits the section.")
            return PipelineResult(rejected=[base])

        if self.max_workers and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                evaluated = list(pool.map(self.evaluate, scenarios))
        else:
            evaluated = [self.evaluate(ctx) for ctx in scenarios]

        valid = [ctx for ctx in evaluated if ctx.is_valid and ctx.solution is not None]
        rejected = [ctx for ctx in evaluated if not (ctx.is_valid and ctx.solution is not None)]
        logger.info("Group %s: %d scenario(s), %d valid.", group.name, len(evaluated), len(valid))

        if not valid:
            return PipelineResult(rejected=rejected, best_effort=self.best_effort(rejected))
        return PipelineResult(solutions=self.rank(valid), rejected=rejected)

    # ------------------------------------------------------------------
    # 시나리오 하나 평가
    # ------------------------------------------------------------------
    def evaluate(self, ctx: SolutionContext) -> SolutionContext:
        for stage in (self.filler.execute, self.rule_engine.execute, self._score):
            stage(ctx)
            if not ctx.is_valid:
                break
        return ctx

    def _score(self, ctx: SolutionContext) -> SolutionContext:
        solution = ctx.solution
        if solution is None:
            ctx.fail(STAGE_SCORING, "No solution to score.")
            return ctx
        score = self.scorer.score(solution, ctx.group, ctx.beam_width)
        ctx.splice_count = score.splice_count
        ctx.solution = replace(
            solution,
            constructability_score=score.total,
            splice_count=score.splice_count,
            waste_count=ctx.waste_count,
            penalty=ctx.total_penalty,
            bonus=ctx.preferred_bonus,
            validation_message="; ".join(r.message for r in ctx.validation_results if r.message),
        )
        return ctx

    # ------------------------------------------------------------------
    # 순위
    # ------------------------------------------------------------------
    def rank(self, contexts: List[SolutionContext]) -> List[ContinuousBeamSolution]:
        solutions = [ctx.solution for ctx in contexts]
        weights = [s.total_steel_weight for s in solutions]
        w_min, w_max = min(weights), max(weights)
        share = self.settings.scoring.economy_share

        scored = []
        for s in solutions:
            weight_score = 100.0 if w_max - w_min <= 1e-9 else (w_max - s.total_steel_weight) / (w_max - w_min) * 100.0
            total = share * weight_score + (1.0 - share) * s.constructability_score - s.penalty + s.bonus
            scored.append(replace(s, total_score=total))

        unique = {}
        for s in scored:
            current = unique.get(s.option_name)
            if current is None or (s.total_score, -s.total_steel_weight) > (current.total_score, -current.total_steel_weight):
                unique[s.option_name] = s
        ordered = sorted(unique.values(), key=lambda s: (-s.total_score, s.total_steel_weight))
        return ordered[:self.settings.beam.max_proposals]

    @staticmethod
    def best_effort(rejected: List[SolutionContext]) -> Optional[ContinuousBeamSolution]:
        """유효 후보가 없을 때 진단용으로 가장 가까웠던 안을 무효 표시하여 반환합니다."""
        if not rejected:
            return None
        with_solution = [ctx for ctx in rejected if ctx.solution is not None]
        if with_solution:
            ctx = min(with_solution, key=lambda c: (c.total_penalty, c.solution.total_steel_weight))
            return replace(ctx.solution, is_valid=False, penalty=ctx.total_penalty,
                           validation_message=f"[{ctx.fail_stage}] {ctx.fail_message}")
        ctx = rejected[0]
        if not ctx.scenario_id:
            return None
        return ContinuousBeamSolution(
            option_name=ctx.scenario_id,
            backbone_diameter_top=ctx.top_diameter,
            backbone_diameter_bot=ctx.bot_diameter,
            backbone_count_top=ctx.top_count,
            backbone_count_bot=ctx.bot_count,
            stirrup_leg_count=ctx.stirrup_leg_count,
            is_valid=False,
            validation_message=f"[{ctx.fail_stage}] {ctx.fail_message}",
        )
