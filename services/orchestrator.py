# services/orchestrator.py

"""
이 모듈은 선택된 스팬들로부터 보 그룹을 만들고, 그룹마다
    레지스트리 치유 → (잠긴 안 유지 | 파이프라인 설계 → 제안 선택) → 결과 저장
을 하나의 저장소 트랜잭션 안에서 수행하는 BeamDesignOrchestrator를 제공합니다.

그룹 하나의 실패(해석 결과 누락, 유효 후보 없음)는 결과 값으로 보고되며
다른 그룹의 설계를 중단시키지 않습니다.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from core.analysis import AnalysisSource
from core.cutting import RebarCuttingAlgorithm, span_infos_from_lengths
from core.exceptions import ExternalDataMissingError, RBDException, DesignError
from core.pipeline.context import ContinuousBeamSolution, ExternalConstraints
from core.pipeline.pipeline import RebarPipeline, PipelineResult, collect_span_results
from core.settings.config import DesignSettings
from core.topology.builder import TopologyBuilder
from core.topology.group import BeamGroup
from core.topology.registry import GroupRegistry, RegistryHealer, HealReport
from core.topology.store import DrawingStore, SOLUTION_KEY, SEGMENTS_KEY
from services.proposal_selector import ProposalSelector
from services.rebar_strings import SpanCallout, build_callouts

logger = logging.getLogger(__name__)

STATUS_DESIGNED = "DESIGNED"
STATUS_LOCKED = "LOCKED"
STATUS_NO_VALID_SCENARIO = "NO_VALID_SCENARIO"
STATUS_SKIPPED = "SKIPPED"


@dataclass
class GroupDesignOutcome:
    group: BeamGroup
    status: str
    solution: Optional[ContinuousBeamSolution] = None
    proposals: List[ContinuousBeamSolution] = field(default_factory=list)
    best_effort: Optional[ContinuousBeamSolution] = None
    heal_report: Optional[HealReport] = None
    callouts: List[SpanCallout] = field(default_factory=list)
    rejected_count: int = 0
    message: str = ""

    @property
    def group_id(self) -> Optional[str]:
        return self.group.group_id


class BeamDesignOrchestrator:
    def __init__(self,
                 store: DrawingStore,
                 analysis_source: AnalysisSource,
                 settings: Optional[DesignSettings] = None,
                 max_workers: Optional[int] = None,
                 global_diameters: Optional[Sequence[int]] = None):
        self.store = store
        self.analysis_source = analysis_source
        self.settings = (settings or DesignSettings()).validate()
        self.global_diameters = tuple(global_diameters) if global_diameters else None
        self.builder = TopologyBuilder(store, self.settings)
        self.registry = GroupRegistry(store)
        self.healer = RegistryHealer(store, self.registry)
        self.pipeline = RebarPipeline(self.settings, max_workers=max_workers, store=store)
        self.selector = ProposalSelector(self.settings.beam.max_proposals)
        self.cutter = RebarCuttingAlgorithm(self.settings)

    # ------------------------------------------------------------------
    # 전체 흐름
    # ------------------------------------------------------------------
    def build_groups(self, span_ids: Optional[Sequence[str]] = None) -> List[BeamGroup]:
        with self.store.transaction():
            return self.builder.build_groups(span_ids if span_ids is not None else self.store.span_ids())

    def design_selection(self, span_ids: Optional[Sequence[str]] = None) -> List[GroupDesignOutcome]:
        outcomes = []
        preferred: Optional[int] = None
        for group in self.build_groups(span_ids):
            outcome = self.design_group(group, ExternalConstraints(preferred_diameter=preferred))
            designed = [outcome]
            split = self.split_group(group, outcome.heal_report)
            if split is not None:
                designed.append(self.design_group(split, ExternalConstraints(preferred_diameter=preferred)))
            for item in designed:
                # 이웃 그룹이 같은 주근 직경을 쓰도록 첫 확정 직경을 선호 직경으로 전달
                if preferred is None and item.solution is not None:
                    preferred = item.solution.backbone_diameter_top
            outcomes.extend(designed)
        return outcomes

    def split_group(self, group: BeamGroup, report: Optional[HealReport]) -> Optional[BeamGroup]:
        """치유 중 분리된 복제본들을 자체 id를 가진 그룹으로 구성합니다."""
        if report is None or not report.split_group_id:
            return None
        alive = [sid for sid in report.split_members if sid in group.member_ids]
        if not alive:
            return None
        return self.builder.regroup(group, alive, f"{group.name}-{report.split_group_id[-4:]}",
                                    report.split_group_id)

    def design_group(self, group: BeamGroup,
                     constraints: Optional[ExternalConstraints] = None) -> GroupDesignOutcome:
        with self.store.transaction():
            report = self.healer.heal(group)
            if not report.members:
                logger.warning("Group %s owns no members after healing.", group.name)
                return GroupDesignOutcome(group=group.with_group_id(report.group_id), status=STATUS_SKIPPED,
                                          heal_report=report, message="No members left after healing.")
            if report.members != group.member_ids:
                # 레지스트리가 인정하는 멤버만 설계합니다 (분리된 복제본 제외).
                group = self.builder.regroup(group, report.members, group_id=report.group_id)
            else:
                group = group.with_group_id(report.group_id)

            locked = self.load_solution(group)
            if locked is not None and locked.is_locked:
                logger.info("Group %s (%s) is locked; keeping %s.", group.name, group.group_id, locked.option_name)
                return GroupDesignOutcome(group=group, status=STATUS_LOCKED, solution=locked,
                                          heal_report=report, callouts=build_callouts(group, locked))

            try:
                span_results = collect_span_results(group, self.analysis_source)
            except ExternalDataMissingError as e:
                logger.warning("Skipping group %s: %s", group.name, e)
                return GroupDesignOutcome(group=group, status=STATUS_SKIPPED, heal_report=report, message=str(e))

            result: PipelineResult = self.pipeline.execute(group, span_results, constraints, self.global_diameters)
            if not result.has_solution:
                message = result.best_effort.validation_message if result.best_effort else \
                    (result.rejected[0].fail_message if result.rejected else "No scenario generated.")
                logger.warning("No valid scenario for group %s: %s", group.name, message)
                return GroupDesignOutcome(group=group, status=STATUS_NO_VALID_SCENARIO,
                                          best_effort=result.best_effort, heal_report=report,
                                          rejected_count=len(result.rejected), message=message)

            proposals = self.selector.select(result.solutions)
            selected = proposals[0]
            self.persist(group, selected)
            return GroupDesignOutcome(group=group, status=STATUS_DESIGNED, solution=selected,
                                      proposals=proposals, heal_report=report,
                                      callouts=build_callouts(group, selected),
                                      rejected_count=len(result.rejected))

    # ------------------------------------------------------------------
    # 저장 / 잠금
    # ------------------------------------------------------------------
    def persist(self, group: BeamGroup, solution: ContinuousBeamSolution):
        """선택안과 절단 세그먼트를 모 스팬에 기록합니다."""
        mother = group.mother_id
        record = solution.to_record()
        record["group_id"] = group.group_id
        self.store.write_record(mother, SOLUTION_KEY, record)

        try:
            layers = self.cut_layers(group, solution)
        except RBDException as e:
            logger.warning("Bar segments for %s not stored: %s", group.name, e)
            self.store.delete_record(mother, SEGMENTS_KEY)
            return
        self.store.write_record(mother, SEGMENTS_KEY, {
            "option_name": solution.option_name,
            "group_id": group.group_id,
            "layers": [layer.to_record() for layer in layers],
        })

    def cut_layers(self, group: BeamGroup, solution: ContinuousBeamSolution):
        spans = span_infos_from_lengths(group.span_lengths, [t.label for t in group.spans])
        first = group.spans[0].span
        layers = []
        for is_top, dia, count in ((True, solution.backbone_diameter_top, solution.backbone_count_top),
                                   (False, solution.backbone_diameter_bot, solution.backbone_count_bot)):
            layers.append(self.cutter.process_complete(
                group.total_length, spans, is_top, group.group_type,
                group.start_support, group.end_support, dia, count,
                first.concrete_grade or None, first.steel_grade or None))
        return layers

    def load_solution(self, group: BeamGroup) -> Optional[ContinuousBeamSolution]:
        """이 그룹 id로 저장된 선택안. 복사본이 들고 온 다른 그룹의 기록은 무시합니다."""
        mother = group.mother_id
        if not mother or not self.store.exists(mother):
            return None
        record = self.store.read_record(mother, SOLUTION_KEY)
        if not record or record.get("group_id") != group.group_id:
            return None
        return ContinuousBeamSolution.from_record(record)

    def _mother_of(self, group_id: str) -> str:
        alive = [sid for sid in self.registry.get_members(group_id) if self.store.exists(sid)]
        if not alive:
            raise DesignError(f"Group '{group_id}' has no live members.")
        return alive[0]

    def lock_solution(self, group_id: str, solution: Optional[ContinuousBeamSolution] = None) -> ContinuousBeamSolution:
        """
        사용자가 고른(또는 현재 저장된) 안을 잠급니다. 잠긴 안은 재설계 시 그대로 유지됩니다.
        """
        with self.store.transaction():
            mother = self._mother_of(group_id)
            if solution is None:
                record = self.store.read_record(mother, SOLUTION_KEY)
                if not record or record.get("group_id") != group_id:
                    raise DesignError(f"Group '{group_id}' has no stored solution to lock.")
                solution = ContinuousBeamSolution.from_record(record)
            locked = solution.locked()
            record = locked.to_record()
            record["group_id"] = group_id
            self.store.write_record(mother, SOLUTION_KEY, record)
        logger.info("Locked %s for group %s.", locked.option_name, group_id)
        return locked

    def unlock_solution(self, group_id: str) -> Optional[ContinuousBeamSolution]:
        with self.store.transaction():
            mother = self._mother_of(group_id)
            record = self.store.read_record(mother, SOLUTION_KEY)
            if not record or record.get("group_id") != group_id:
                return None
            unlocked = ContinuousBeamSolution.from_record(record).unlocked()
            record = unlocked.to_record()
            record["group_id"] = group_id
            self.store.write_record(mother, SOLUTION_KEY, record)
        return unlocked
