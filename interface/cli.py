# interface/cli.py

from typing import List, Optional

# --- 모든 필요한 모듈과 클래스를 import ---
from core.exceptions import RBDException
from core.pipeline.context import ContinuousBeamSolution
from core.scoring import ConstructabilityScorer
from core.topology.registry import GroupRegistry
from interface.project import Project, load_project
from services.orchestrator import BeamDesignOrchestrator, GroupDesignOutcome, STATUS_DESIGNED, STATUS_LOCKED
from services.rebar_strings import SpanCallout, format_area_cm2

# --- [1. 기본 사용자 입력(Prompt) 함수] ---

def prompt_for_project_path(default_path: str) -> str:
    """사용자로부터 프로젝트 JSON 파일 경로를 입력받습니다."""
    print("\n--- [Step 1] 프로젝트 파일 ---")
    path = input(f"프로젝트 JSON 경로 [{default_path}]: ").strip()
    return path or default_path

def prompt_for_scoring_preset(presets: List[str]) -> Optional[str]:
    """시공성 가중치 프리셋을 선택받습니다. 빈 입력은 프로젝트 설정을 그대로 사용합니다."""
    print("\n--- [Step 2] 시공성 가중치 ---")
    choice = input(f"프리셋 {presets} (Enter: 프로젝트 설정): ").strip().lower()
    return choice if choice in presets else None

def prompt_for_outcome(outcomes: List[GroupDesignOutcome]) -> Optional[GroupDesignOutcome]:
    lockable = [o for o in outcomes if o.status in (STATUS_DESIGNED, STATUS_LOCKED)]
    if not lockable:
        return None
    for i, o in enumerate(lockable):
        print(f"  {i+1}: {o.group.name} ({o.group_id}) - {o.status}")
    choice = input("그룹 번호를 선택하세요 (건너뛰려면 Enter): ").strip()
    try:
        return lockable[int(choice) - 1] if choice else None
    except (ValueError, IndexError):
        print("잘못된 선택입니다.")
        return None

# --- [2. 결과 출력(Display) 함수] ---

def display_groups(outcomes: List[GroupDesignOutcome]):
    print("\n" + "="*60)
    print("      보 그룹 구성")
    print("="*60)
    for o in outcomes:
        g = o.group
        print(f"  - {g.name:<5} [{g.group_type}/{g.direction}] id={g.group_id}")
        print(f"    스팬 {len(g.spans)}개: {', '.join(f'{t.label}={t.span_id}' for t in g.spans)}")
        print(f"    전체 길이 {g.total_length:.0f} mm, 단면 {g.width:.0f}x{g.height:.0f} mm, "
              f"이음 필요: {'예' if g.requires_splice else '아니오'}")
        report = o.heal_report
        if report is not None and report.changed:
            notes = []
            if report.minted: notes.append("새 id 발급")
            if report.resurrected: notes.append("레지스트리 복구")
            if report.ghosts_purged: notes.append(f"유령 {len(report.ghosts_purged)}개 제거")
            if report.adopted: notes.append(f"신규 멤버 {len(report.adopted)}개")
            if report.split_members: notes.append(f"복제 {len(report.split_members)}개 분리")
            print(f"    레지스트리: {', '.join(notes)}")
    print("="*60)

def display_proposals(outcome: GroupDesignOutcome):
    """한 그룹의 배근 제안 목록을 출력합니다."""
    print(f"\n--- [ {outcome.group.name} ] {outcome.status} ---")
    if outcome.message:
        print(f"  사유: {outcome.message}")
    if outcome.best_effort is not None:
        print("  참고안 (무효):")
        _print_solution(outcome.best_effort, prefix="    ")
    for i, sol in enumerate(outcome.proposals):
        marker = "★" if outcome.solution is not None and sol.option_name == outcome.solution.option_name else " "
        print(f"  {marker} 제안 {i+1}: {sol.label}")
        _print_solution(sol, prefix="      ")
    if outcome.status == STATUS_LOCKED and outcome.solution is not None:
        print("  🔒 잠긴 배근안:")
        _print_solution(outcome.solution, prefix="      ")

def _print_solution(sol: ContinuousBeamSolution, prefix: str):
    print(f"{prefix}- 백본: 상부 {sol.backbone_count_top}D{sol.backbone_diameter_top} / "
          f"하부 {sol.backbone_count_bot}D{sol.backbone_diameter_bot} ({sol.option_name})")
    print(f"{prefix}- 중량 {sol.total_steel_weight:.1f} kg, 시공성 {sol.constructability_score:.1f}, "
          f"총점 {sol.total_score:.1f} (벌점 {sol.penalty:.0f}, 가점 {sol.bonus:.0f})")
    print(f"{prefix}- 가설 철근 {len(sol.reinforcements)}개 위치, 이음 {sol.splice_count}개, "
          f"스터럽 {sol.stirrup_leg_count}지")
    print(f"{prefix}- 소요량 최대: 상부 {format_area_cm2(sol.as_required_top_max)}, "
          f"하부 {format_area_cm2(sol.as_required_bot_max)}")
    if sol.stirrups or sol.web_bars:
        stirrups = ", ".join(sorted({s.notation for s in sol.stirrups.values()})) or "-"
        webs = ", ".join(sorted({w.notation for w in sol.web_bars.values()})) or "-"
        print(f"{prefix}- 스터럽 {stirrups} / 측면근 {webs}")
    if sol.description:
        print(f"{prefix}- {sol.description}")
    if sol.validation_message:
        print(f"{prefix}- 검토: {sol.validation_message}")

def display_callouts(callouts: List[SpanCallout]):
    if not callouts:
        return
    print(f"  {'스팬':<6}{'상부 (좌 | 중 | 우)':<48}{'하부 (좌 | 중 | 우)':<48}"
          f"{'스터럽 (좌 | 중 | 우)':<42}{'측면근'}")
    for c in callouts:
        print(f"  {c.label:<6}{' | '.join(c.top):<48}{' | '.join(c.bot):<48}"
              f"{' | '.join(c.stirrup):<42}{c.web}")

def display_score_report(scorer: ConstructabilityScorer, outcome: GroupDesignOutcome):
    if outcome.solution is not None:
        print(scorer.generate_report(outcome.solution, outcome.group))

def display_error(error: Exception):
    print("\n" + "-"*40)
    print("      ❌ 오류 발생 (Error)")
    print(f"  오류 유형: {type(error).__name__}")
    print(f"  상세 내용: {error}")
    print("-"*40)

# --- [3. 메인 워크플로우(Workflow) 함수] ---

def run_design_workflow(default_path: str, scoring_presets: List[str],
                        global_diameters: Optional[List[int]] = None,
                        max_workers: Optional[int] = None) -> Optional[Project]:
    """프로젝트를 불러와 모든 보 그룹을 설계하고 결과를 출력합니다."""
    print("\n>>> 연속보 배근 설계(Design Mode)를 시작합니다.")
    try:
        project = load_project(prompt_for_project_path(default_path))
        preset = prompt_for_scoring_preset(scoring_presets)
        if preset:
            project.settings = project.settings.with_scoring_preset(preset)

        orchestrator = BeamDesignOrchestrator(project.store, project.analysis, project.settings,
                                              max_workers=max_workers, global_diameters=global_diameters)
        outcomes = orchestrator.design_selection()
        display_groups(outcomes)

        scorer = ConstructabilityScorer(project.settings, project.store)
        for outcome in outcomes:
            display_proposals(outcome)
            display_callouts(outcome.callouts)
            display_score_report(scorer, outcome)

        run_lock_workflow(orchestrator, outcomes)
        return project
    except (RBDException, ValueError) as e:
        display_error(e)
        return None

def run_lock_workflow(orchestrator: BeamDesignOrchestrator, outcomes: List[GroupDesignOutcome]):
    """사용자가 고른 제안을 잠그거나, 잠긴 그룹을 해제합니다."""
    print("\n--- 배근안 잠금/해제 ---")
    outcome = prompt_for_outcome(outcomes)
    if outcome is None:
        return
    if outcome.status == STATUS_LOCKED:
        if input("잠금을 해제하시겠습니까? [y/n]: ").strip().lower() == 'y':
            orchestrator.unlock_solution(outcome.group_id)
            print("잠금이 해제되었습니다. 다음 설계 시 다시 계산됩니다.")
        return
    choice = input(f"잠글 제안 번호 (1-{len(outcome.proposals)}): ").strip()
    try:
        chosen = outcome.proposals[int(choice) - 1]
    except (ValueError, IndexError):
        print("잘못된 선택입니다.")
        return
    orchestrator.persist(outcome.group, chosen)
    locked = orchestrator.lock_solution(outcome.group_id, chosen)
    print(f"🔒 {outcome.group.name}: {locked.option_name} 안이 잠겼습니다.")

def run_registry_workflow(project: Optional[Project]):
    """현재 세션 저장소의 그룹 레지스트리를 점검하고 정리합니다."""
    print("\n>>> 그룹 레지스트리 점검")
    if project is None:
        print("먼저 설계를 실행해 프로젝트를 불러와 주세요.")
        return
    registry = GroupRegistry(project.store)
    print(registry.dump())
    cleaned = registry.cleanup_invalid_entries()
    print(f"정리된 항목: {cleaned}개")
