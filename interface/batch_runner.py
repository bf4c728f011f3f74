# interface/batch_runner.py

import itertools
import pandas as pd
from tqdm.auto import tqdm
from typing import Dict, List, Any, Optional, Sequence

from core.exceptions import RBDException
from core.pipeline.context import ContinuousBeamSolution
from core.settings.config import DesignSettings
from interface.project import Project, add_straight_beam, empty_project
from services.orchestrator import BeamDesignOrchestrator, GroupDesignOutcome

class BatchRunner:
    """
    연속보 조건(스팬 수/길이, 단면, 소요 철근량, 가중치 프리셋)의 여러 조합에 대해
    배근 설계를 일괄 실행하고 결과 표를 생성합니다.
    """
    def __init__(self, params: Dict[str, List[Any]],
                 settings: Optional[DesignSettings] = None,
                 global_diameters: Optional[Sequence[int]] = None):
        self.params = params
        self.settings = settings or DesignSettings()
        self.global_diameters = global_diameters
        self.results = []

    def run(self):
        """배치 실행을 시작하고 모든 조합에 대한 설계를 수행합니다."""
        # Step 1: 기본 조합 생성
        base_combinations = self._generate_combinations()

        for combo in tqdm(base_combinations, desc="Batch Processing", ncols=120):
            try:
                # Step 2: 조합마다 독립된 프로젝트(저장소)를 구성
                project = self._setup_case_from_combo(combo)
                add_combo = {
                    **combo,
                    'total_length': combo['span_length'] * combo['span_count'],
                    'bd': combo['width'] * combo['height'],     # (mm2) 단위변환은 파일출력시 일괄처리
                }

                # Step 3: 설계 실행 (한 조합 = 한 그룹)
                orchestrator = BeamDesignOrchestrator(
                    project.store, project.analysis, project.settings,
                    global_diameters=self.global_diameters)
                for outcome in orchestrator.design_selection():
                    self._record_outcome(outcome, add_combo)

            except RBDException as e:
                self.results.append({**combo, "status": "Error", "message": str(e)})
            except Exception as e:
                self.results.append({**combo, "status": "Critical Error", "message": str(e)})

    def _generate_combinations(self) -> List[Dict[str, Any]]:
        """itertools.product를 사용하여 모든 파라미터 조합 딕셔너리를 생성합니다."""
        keys = self.params.keys()
        values = self.params.values()
        return [dict(zip(keys, p)) for p in itertools.product(*values)]

    def _setup_case_from_combo(self, combo: Dict[str, Any]) -> Project:
        """조합으로부터 직선 연속보 하나가 들어있는 프로젝트를 만듭니다."""
        settings = self.settings
        preset = combo.get('preset')
        if preset:
            settings = settings.with_scoring_preset(preset)
        project = empty_project(settings.validate())

        span_count = int(combo['span_count'])
        if span_count < 1:
            raise ValueError(f"span_count는 1 이상이어야 합니다: {span_count}")
        add_straight_beam(
            project,
            span_lengths=[float(combo['span_length'])] * span_count,
            width=float(combo['width']),
            depth=float(combo['height']),
            top_area=float(combo['top_area']),
            bot_area=float(combo['bot_area']),
            torsion_area=float(combo.get('torsion_area', 0.0)),
            shear_area=float(combo.get('shear_area', 0.0)),
            torsion_transverse_area=float(combo.get('torsion_transverse_area', 0.0)),
            end_support=combo.get('end_support', 'COLUMN'),
        )
        return project

    def _record_outcome(self, outcome: GroupDesignOutcome, combo: Dict[str, Any]):
        output = {
            **combo,
            "group": outcome.group.name,
            "group_type": outcome.group.group_type,
            "status": outcome.status,
            "message": outcome.message,
            "proposal_count": len(outcome.proposals),
            "rejected_count": outcome.rejected_count,
        }
        solution = outcome.solution or outcome.best_effort
        if solution is not None:
            output.update(self._solution_columns(solution))
        self.results.append(output)

    @staticmethod
    def _solution_columns(sol: ContinuousBeamSolution) -> Dict[str, Any]:
        return {
            "option_name": sol.option_name,
            "is_valid": sol.is_valid,
            "top_backbone": f"{sol.backbone_count_top}D{sol.backbone_diameter_top}",
            "bot_backbone": f"{sol.backbone_count_bot}D{sol.backbone_diameter_bot}",
            "as_backbone_top": sol.as_backbone_top,
            "as_backbone_bot": sol.as_backbone_bot,
            "as_required_top_max": sol.as_required_top_max,
            "as_required_bot_max": sol.as_required_bot_max,
            "addon_positions": len(sol.reinforcements),
            "stirrup_legs": sol.stirrup_leg_count,
            "stirrup": _governing(sol.stirrups.values(), lambda s: s.area_per_length),
            "web_bars": _governing(sol.web_bars.values(), lambda w: w.area),
            "steel_weight_kg": sol.total_steel_weight,
            "efficiency": sol.efficiency_score,
            "constructability": sol.constructability_score,
            "total_score": sol.total_score,
            "splice_count": sol.splice_count,
            "waste_count": sol.waste_count,
            "penalty": sol.penalty,
        }

    def save_to_csv(self, filename: str):
        """결과를 pandas DataFrame으로 변환하고 단위를 조정한 후 CSV 파일로 저장합니다."""
        if not self.results:
            print("결과가 없습니다. 저장할 내용이 없습니다.")
            return

        df = pd.DataFrame(self.results)

        # --- 출력의 단위 변환은 여기서 일괄 수행 ---
        # 철근량은 cm2, 길이는 m 단위로 출력
        cm2_cols = ['top_area', 'bot_area', 'torsion_area', 'bd',
                    'as_backbone_top', 'as_backbone_bot', 'as_required_top_max', 'as_required_bot_max']
        m_cols = ['span_length', 'total_length']

        for col in df.columns:
            if col in cm2_cols:
                df[col] = df[col] / 1e2
            elif col in m_cols:
                df[col] = df[col] / 1e3

        df.to_csv(filename, index=False, encoding='utf-8-sig')
        print(f"\n결과가 '{filename}' 파일로 성공적으로 저장되었습니다.")


def _governing(specs, key) -> str:
    """가장 큰 값을 주는 사양의 표기. 없으면 '-'."""
    specs = list(specs)
    return max(specs, key=key).notation if specs else "-"
