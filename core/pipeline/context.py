# core/pipeline/context.py

"""
이 모듈은 배근 파이프라인에서 시나리오 하나가 거쳐 가는 작업 상태(SolutionContext)와
그 결과물(ContinuousBeamSolution), 검증 결과(ValidationResult)를 정의합니다.

SolutionContext는 가변 객체이지만, 입력 참조(그룹, 해석 결과, 설정)는 읽기 전용으로만
공유됩니다. clone()은 입력을 공유하고 시나리오/출력/제어 필드를 초기화한 새 컨텍스트를
만들기 때문에, 후보 시나리오들을 서로 독립적으로(병렬로도) 평가할 수 있습니다.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple

from core.analysis import SpanAnalysis
from core.material.material import bar_area
from core.settings.config import DesignSettings
from core.topology.group import BeamGroup

# ==============================================================================
# 검증 결과
# ==============================================================================
class Severity(str, Enum):
    PASS = "Pass"
    WARNING = "Warning"
    CRITICAL = "Critical"


@dataclass(frozen=True)
class ValidationResult:
    rule_name: str
    severity: Severity
    penalty: float = 0.0
    message: str = ""

    @classmethod
    def passed(cls, rule_name: str) -> "ValidationResult":
        return cls(rule_name, Severity.PASS)

    @classmethod
    def warning(cls, rule_name: str, penalty: float, message: str) -> "ValidationResult":
        return cls(rule_name, Severity.WARNING, penalty, message)

    @classmethod
    def critical(cls, rule_name: str, message: str) -> "ValidationResult":
        return cls(rule_name, Severity.CRITICAL, 0.0, message)


# ==============================================================================
# 결과 모델
# ==============================================================================
@dataclass(frozen=True)
class RebarSpec:
    """
    위치별 가설(addon) 철근. count는 백본 외에 추가되는 개수이며,
    layer_breakdown은 백본을 포함한 층별 개수입니다 (예: (4, 2)).
    """
    diameter: int
    count: int
    position: str
    layer: int = 1
    layer_breakdown: Tuple[int, ...] = ()
    is_running_through: bool = False

    @property
    def area(self) -> float:
        return self.count * bar_area(self.diameter)

    def is_similar(self, other: "RebarSpec") -> bool:
        return self.diameter == other.diameter and self.count == other.count

    def to_record(self) -> Dict:
        return {
            "diameter": self.diameter,
            "count": self.count,
            "position": self.position,
            "layer": self.layer,
            "layer_breakdown": list(self.layer_breakdown),
            "is_running_through": self.is_running_through,
        }

    @classmethod
    def from_record(cls, data: Dict) -> "RebarSpec":
        return cls(
            diameter=int(data["diameter"]),
            count=int(data["count"]),
            position=data.get("position", ""),
            layer=int(data.get("layer", 1)),
            layer_breakdown=tuple(int(n) for n in data.get("layer_breakdown", [])),
            is_running_through=bool(data.get("is_running_through", False)),
        )


@dataclass(frozen=True)
class StirrupSpec:
    """구역 하나의 스터럽: 다리 수, 직경, 간격(mm). 허용 범위로 소요량을 채우지 못하면 is_insufficient."""
    legs: int
    diameter: int
    spacing: int
    is_insufficient: bool = False

    @property
    def area_per_length(self) -> float:
        """제공 Av/s (mm²/mm)."""
        return self.legs * bar_area(self.diameter) / self.spacing

    @property
    def notation(self) -> str:
        return f"{self.legs}-D{self.diameter}@{self.spacing}" + ("*" if self.is_insufficient else "")

    def to_record(self) -> Dict:
        return {"legs": self.legs, "diameter": self.diameter, "spacing": self.spacing,
                "is_insufficient": self.is_insufficient}

    @classmethod
    def from_record(cls, data: Dict) -> "StirrupSpec":
        return cls(int(data["legs"]), int(data["diameter"]), int(data["spacing"]),
                   bool(data.get("is_insufficient", False)))


@dataclass(frozen=True)
class WebBarSpec:
    """스팬 양 측면에 배치하는 측면근 전체 개수와 직경."""
    count: int
    diameter: int

    @property
    def area(self) -> float:
        return self.count * bar_area(self.diameter) if self.count > 0 else 0.0

    @property
    def notation(self) -> str:
        return f"{self.count}D{self.diameter}" if self.count > 0 else "-"

    def to_record(self) -> Dict:
        return {"count": self.count, "diameter": self.diameter}

    @classmethod
    def from_record(cls, data: Dict) -> "WebBarSpec":
        return cls(int(data["count"]), int(data["diameter"]))


@dataclass(frozen=True)
class ContinuousBeamSolution:
    """완성된 후보 배근안. 생성 후에는 불변이며, 점수 갱신은 replace로 새 객체를 만듭니다."""
    option_name: str
    backbone_diameter_top: int
    backbone_diameter_bot: int
    backbone_count_top: int
    backbone_count_bot: int
    reinforcements: Dict[str, RebarSpec] = field(default_factory=dict)
    stirrup_leg_count: int = 2
    # 키: "S1_Left" 형식 (스팬 레이블 + 구역)
    stirrups: Dict[str, StirrupSpec] = field(default_factory=dict)
    # 키: 스팬 레이블
    web_bars: Dict[str, WebBarSpec] = field(default_factory=dict)
    total_steel_weight: float = 0.0
    efficiency_score: float = 0.0
    constructability_score: float = 0.0
    total_score: float = 0.0
    waste_count: int = 0
    splice_count: int = 0
    penalty: float = 0.0
    bonus: float = 0.0
    description: str = ""
    label: str = ""
    is_valid: bool = True
    validation_message: str = ""
    is_locked: bool = False
    as_required_top_max: float = 0.0
    as_required_bot_max: float = 0.0

    @property
    def as_backbone_top(self) -> float:
        return self.backbone_count_top * bar_area(self.backbone_diameter_top)

    @property
    def as_backbone_bot(self) -> float:
        return self.backbone_count_bot * bar_area(self.backbone_diameter_bot)

    @property
    def diameters(self) -> List[int]:
        used = {self.backbone_diameter_top, self.backbone_diameter_bot}
        used.update(spec.diameter for spec in self.reinforcements.values() if spec.count > 0)
        return sorted(used)

    def max_layers(self, position: str) -> int:
        layers = [s.layer for s in self.reinforcements.values() if s.position == position and s.count > 0]
        return max(layers, default=1)

    def layer_counts(self, position: str) -> List[List[int]]:
        """해당 위치(Top/Bot)의 모든 구간별 층 구성. 가설 철근이 없으면 백본만."""
        backbone = self.backbone_count_top if position == "Top" else self.backbone_count_bot
        layouts = [[backbone]]
        for spec in self.reinforcements.values():
            if spec.position == position and spec.count > 0:
                layouts.append(list(spec.layer_breakdown) or [backbone + spec.count])
        return layouts

    def locked(self) -> "ContinuousBeamSolution":
        return replace(self, is_locked=True)

    def unlocked(self) -> "ContinuousBeamSolution":
        return replace(self, is_locked=False)

    # --- 영속화 ---
    def to_record(self) -> Dict:
        return {
            "option_name": self.option_name,
            "backbone_diameter_top": self.backbone_diameter_top,
            "backbone_diameter_bot": self.backbone_diameter_bot,
            "backbone_count_top": self.backbone_count_top,
            "backbone_count_bot": self.backbone_count_bot,
            "reinforcements": {k: v.to_record() for k, v in self.reinforcements.items()},
            "stirrup_leg_count": self.stirrup_leg_count,
            "stirrups": {k: v.to_record() for k, v in self.stirrups.items()},
            "web_bars": {k: v.to_record() for k, v in self.web_bars.items()},
            "total_steel_weight": self.total_steel_weight,
            "efficiency_score": self.efficiency_score,
            "constructability_score": self.constructability_score,
            "total_score": self.total_score,
            "waste_count": self.waste_count,
            "splice_count": self.splice_count,
            "penalty": self.penalty,
            "bonus": self.bonus,
            "description": self.description,
            "label": self.label,
            "is_valid": self.is_valid,
            "validation_message": self.validation_message,
            "is_locked": self.is_locked,
            "as_required_top_max": self.as_required_top_max,
            "as_required_bot_max": self.as_required_bot_max,
        }

    @classmethod
    def from_record(cls, data: Dict) -> "ContinuousBeamSolution":
        kwargs = dict(data)
        kwargs["reinforcements"] = {
            k: RebarSpec.from_record(v) for k, v in (data.get("reinforcements") or {}).items()
        }
        kwargs["stirrups"] = {k: StirrupSpec.from_record(v) for k, v in (data.get("stirrups") or {}).items()}
        kwargs["web_bars"] = {k: WebBarSpec.from_record(v) for k, v in (data.get("web_bars") or {}).items()}
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in kwargs.items() if k in known})


@dataclass(frozen=True)
class ExternalConstraints:
    """잠긴 이웃 그룹이나 사용자 지정으로 강제되는 조건."""
    forced_backbone_diameter: Optional[int] = None
    forced_top_count: Optional[int] = None
    forced_bot_count: Optional[int] = None
    preferred_diameter: Optional[int] = None


# ==============================================================================
# 작업 상태
# ==============================================================================
@dataclass
class SolutionContext:
    # --- 입력 (읽기 전용 공유) ---
    group: BeamGroup
    span_results: Tuple[SpanAnalysis, ...]
    settings: DesignSettings
    global_diameters: Optional[Tuple[int, ...]] = None
    external_constraints: ExternalConstraints = field(default_factory=ExternalConstraints)

    # --- 정제된 기하 정보 ---
    beam_width: float = 0.0
    beam_height: float = 0.0
    total_length: float = 0.0
    min_width: float = 0.0
    allowed_diameters: Tuple[int, ...] = ()

    # --- 시나리오 파라미터 ---
    scenario_id: str = ""
    top_diameter: int = 0
    top_count: int = 0
    bot_diameter: int = 0
    bot_count: int = 0
    preferred_bonus: float = 0.0
    waste_count: int = 0

    # --- 출력 ---
    reinforcements: Dict[str, RebarSpec] = field(default_factory=dict)
    stirrup_leg_count: int = 2
    solution: Optional[ContinuousBeamSolution] = None
    validation_results: List[ValidationResult] = field(default_factory=list)
    splice_count: int = 0

    # --- 제어 ---
    is_valid: bool = True
    fail_stage: str = ""
    fail_message: str = ""
    total_penalty: float = 0.0

    @property
    def has_critical_error(self) -> bool:
        return any(r.severity == Severity.CRITICAL for r in self.validation_results)

    def clone(self) -> "SolutionContext":
        """입력과 정제된 기하 정보를 공유하고, 나머지는 초기 상태인 새 컨텍스트."""
        return SolutionContext(
            group=self.group,
            span_results=self.span_results,
            settings=self.settings,
            global_diameters=self.global_diameters,
            external_constraints=self.external_constraints,
            beam_width=self.beam_width,
            beam_height=self.beam_height,
            total_length=self.total_length,
            min_width=self.min_width,
            allowed_diameters=self.allowed_diameters,
        )

    def add_result(self, result: ValidationResult):
        self.validation_results.append(result)
        self.total_penalty += result.penalty
        if result.severity == Severity.CRITICAL:
            self.fail(result.rule_name, result.message)

    def fail(self, stage: str, message: str):
        self.is_valid = False
        if not self.fail_stage:
            self.fail_stage = stage
            self.fail_message = message
