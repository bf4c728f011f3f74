# core/settings/config.py

"""
이 모듈은 배근 설계 전 과정에서 사용하는 설정값(허용 직경, 피복, 간격,
정착/이음, 절단 규칙, 시공성 점수 가중치)을 정의합니다.

설정 객체는 불변(frozen) 데이터 클래스이며, 한 번의 설계 패스 동안 읽기 전용으로
공유됩니다. JSON 파일로 저장/불러오기를 지원합니다.
"""

import json
import logging
from dataclasses import dataclass, field, fields, asdict, replace, is_dataclass
from typing import Dict, Tuple, Any

from core.exceptions import ConfigurationError, MaterialError
from core.material.material import parse_diameter_range, Steel, Concrete

logger = logging.getLogger(__name__)

WEIGHT_SUM_TOLERANCE = 1e-6

# ==============================================================================
# Settings Sections
# ==============================================================================
@dataclass(frozen=True)
class GeneralSettings:
    """공장 재고(입고 가능한) 철근 직경 목록."""
    available_diameters: Tuple[int, ...] = (6, 8, 10, 12, 14, 16, 18, 20, 22, 25, 28, 30, 32)


@dataclass(frozen=True)
class BeamSettings:
    """보 주근 배치 관련 설정 (mm)."""
    main_bar_range: str = "16-25"
    cover_side: float = 25.0
    stirrup_diameter: int = 10
    aggregate_size: float = 20.0
    min_clear_spacing: float = 30.0
    use_bar_diameter_for_spacing: bool = True
    bar_diameter_spacing_multiplier: float = 1.0
    max_clear_spacing: float = 80.0
    # 보 폭 180mm 당 최소 1개
    density_divisor: float = 180.0
    torsion_top: float = 0.25
    torsion_bot: float = 0.25
    torsion_side: float = 0.50
    max_layers: int = 2
    min_bars_per_layer: int = 2
    prefer_single_diameter: bool = True
    prefer_symmetric: bool = True
    prefer_even_diameter: bool = False
    auto_legs_rules: str = "250-2 400-3 600-4"
    allow_odd_legs: bool = False
    stirrup_bar_range: str = "8-10"
    stirrup_spacings: Tuple[int, ...] = (100, 150, 200, 250)
    min_stirrup_spacing: float = 100.0
    side_bar_range: str = "12-14"
    # 이 춤 이상이면 비틀림이 없어도 측면근 2본
    web_bar_min_height: float = 700.0
    max_web_bars: int = 6
    standard_bar_length: float = 11700.0
    girder_min_width: float = 300.0
    # InvalidGeometry 발생 시 대체 단면 치수
    default_width: float = 300.0
    default_height: float = 500.0
    safety_factor: float = 1.0
    steel_deficit_tolerance: float = 0.98
    alignment_penalty: float = 25.0
    waste_penalty_per_bar: float = 20.0
    preferred_diameter_bonus: float = 10.0
    max_proposals: int = 5

    @property
    def main_bar_limits(self) -> Tuple[int, int]:
        return parse_diameter_range(self.main_bar_range)

    def stirrup_legs_for_width(self, width: float) -> int:
        """'250-2 400-3 600-4' 규칙에 따라 보 폭에 대한 스터럽 다리 수를 결정합니다."""
        rules = []
        for token in self.auto_legs_rules.split():
            parts = token.split("-")
            if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
                rules.append((int(parts[0]), int(parts[1])))
        rules.sort()
        if not rules:
            return 2
        for max_width, legs in rules:
            if width <= max_width:
                return legs
        return rules[-1][1]


@dataclass(frozen=True)
class AnchorageSettings:
    """정착 및 이음 길이 설정."""
    concrete_grade: str = "B25"
    steel_grade: str = "CB400V"
    use_simplified_rules: bool = True
    tensile_splice_factor: float = 40.0
    compressive_splice_factor: float = 30.0
    anchorage_factor: float = 35.0
    hook90_factor: float = 12.0
    min_hook_length: float = 75.0
    manual_splice_lengths: Dict[int, float] = field(default_factory=dict)

    def splice_length(self, diameter: int, is_tension_zone: bool = True) -> float:
        """겹침이음 길이 (mm). 상세 모드에서는 직경별 수동 표를 우선합니다."""
        if not self.use_simplified_rules and diameter in self.manual_splice_lengths:
            return self.manual_splice_lengths[diameter]
        factor = self.tensile_splice_factor if is_tension_zone else self.compressive_splice_factor
        return diameter * factor

    def hook90_length(self, diameter: int) -> float:
        return max(self.hook90_factor * diameter, self.min_hook_length)


@dataclass(frozen=True)
class ArrangementRule:
    """상/하부근 이음 허용 구간 ('MidSpan', 'QuarterSpan', 'Support')."""
    top_splice_zone: str = "MidSpan"
    bot_splice_zone: str = "Support"
    support_zone_ratio: float = 0.25


@dataclass(frozen=True)
class DetailingSettings:
    """절단/이음 상세 규칙."""
    min_stagger_distance: float = 600.0
    stagger_factor_ld: float = 1.3
    splice_snap_offset: float = 50.0
    stagger_end_clearance: float = 200.0
    bridging_min_gap: float = 1000.0
    addon_support_ratio: float = 0.33
    addon_midspan_ratio: float = 0.8
    beam_rule: ArrangementRule = field(default_factory=ArrangementRule)
    girder_rule: ArrangementRule = field(
        default_factory=lambda: ArrangementRule(top_splice_zone="QuarterSpan", bot_splice_zone="Support"))

    def rule_for(self, group_type: str) -> ArrangementRule:
        return self.girder_rule if (group_type or "").upper() == "GIRDER" else self.beam_rule


@dataclass(frozen=True)
class ScoringWeights:
    """시공성 점수 가중치. 네 가중치의 합은 1.0이어야 합니다."""
    cuts: float = 0.35
    diversity: float = 0.30
    spacing: float = 0.20
    layering: float = 0.15
    # 최종 점수 = economy_share * 경제성 + (1 - economy_share) * 시공성
    economy_share: float = 0.6

    @property
    def total(self) -> float:
        return self.cuts + self.diversity + self.spacing + self.layering

    def validate(self):
        if any(w < 0 for w in (self.cuts, self.diversity, self.spacing, self.layering)):
            raise ConfigurationError("Scoring weights must be non-negative.")
        if abs(self.total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError(
                f"Scoring weights must sum to 1.0 (got {self.total:.6f}).")
        if not (0.0 <= self.economy_share <= 1.0):
            raise ConfigurationError("economy_share must be between 0 and 1.")


SCORING_PRESETS = {
    "balanced": ScoringWeights(),
    "economical": ScoringWeights(cuts=0.2, diversity=0.2, spacing=0.1, layering=0.5),
    "fast_construction": ScoringWeights(cuts=0.5, diversity=0.3, spacing=0.15, layering=0.05),
}


@dataclass(frozen=True)
class NamingSettings:
    girder_prefix: str = "G"
    beam_prefix: str = "B"


# ==============================================================================
# Root Settings
# ==============================================================================
@dataclass(frozen=True)
class DesignSettings:
    """모든 설정 섹션을 묶는 루트 객체."""
    general: GeneralSettings = field(default_factory=GeneralSettings)
    beam: BeamSettings = field(default_factory=BeamSettings)
    anchorage: AnchorageSettings = field(default_factory=AnchorageSettings)
    detailing: DetailingSettings = field(default_factory=DetailingSettings)
    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    naming: NamingSettings = field(default_factory=NamingSettings)

    def validate(self) -> "DesignSettings":
        """설정값 전체를 검사하고, 문제가 있으면 ConfigurationError를 발생시킵니다."""
        if not self.general.available_diameters:
            raise ConfigurationError("available_diameters must not be empty.")
        if any(d <= 0 for d in self.general.available_diameters):
            raise ConfigurationError("Bar diameters must be positive.")
        try:
            self.beam.main_bar_limits
            parse_diameter_range(self.beam.stirrup_bar_range)
            parse_diameter_range(self.beam.side_bar_range)
            Steel(self.anchorage.steel_grade)
            Concrete(self.anchorage.concrete_grade)
        except MaterialError as e:
            raise ConfigurationError(str(e)) from e
        if self.beam.max_layers < 1:
            raise ConfigurationError("max_layers must be at least 1.")
        if self.beam.standard_bar_length <= 0:
            raise ConfigurationError("Stock bar length must be positive.")
        if not self.beam.stirrup_spacings or min(self.beam.stirrup_spacings) <= 0:
            raise ConfigurationError("stirrup_spacings must hold positive values.")
        self.scoring.validate()
        return self

    def with_scoring_preset(self, name: str) -> "DesignSettings":
        if name not in SCORING_PRESETS:
            raise ConfigurationError(f"Unknown scoring preset: '{name}'")
        return replace(self, scoring=SCORING_PRESETS[name])

    # --- 직렬화 ---
    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DesignSettings":
        if not isinstance(data, dict):
            raise ConfigurationError("Settings root must be a JSON object.")
        return _build_dataclass(cls, data, "settings")

    @classmethod
    def load(cls, path: str) -> "DesignSettings":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read settings file '{path}': {e}") from e
        return cls.from_dict(data).validate()

    def save(self, path: str):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)


def _build_dataclass(cls, data: Dict[str, Any], path: str):
    """중첩된 dict를 frozen 데이터 클래스로 변환합니다. 알 수 없는 키는 경고 후 무시합니다."""
    known = {f.name: f for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown setting '%s.%s'", path, key)
            continue
        default = known[key].default_factory() if callable(known[key].default_factory) else known[key].default
        if is_dataclass(default):
            if not isinstance(value, dict):
                raise ConfigurationError(f"'{path}.{key}' must be an object.")
            kwargs[key] = _build_dataclass(type(default), value, f"{path}.{key}")
        elif isinstance(default, tuple):
            kwargs[key] = tuple(value)
        elif isinstance(default, dict):
            kwargs[key] = {int(k): float(v) for k, v in value.items()}
        else:
            kwargs[key] = value
    return cls(**kwargs)
