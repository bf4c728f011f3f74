# core/cutting.py

"""
이 모듈은 연속보 주근의 절단/이음 계획을 수립하는 RebarCuttingAlgorithm과
철근 순간격(clear spacing) 판정 함수를 제공합니다.

절단 계획은 세 단계로 이루어집니다.
    1. 자동 절단: 정척(stock length)을 넘지 않도록 분할하고, 이음 위치를
       보/거더 규칙에 따른 허용 구간으로 이동
    2. 이음 엇갈림(stagger): 홀수 번째 이음 위치를 max(최소 엇갈림, 1.3·이음길이)만큼 이동
    3. 단부 정착: 기둥/벽체 지점에서 90° 갈고리 부여

이음은 그룹 내부(0 < 위치 < 전체 길이)에서만 발생하며 개수는 음수가 될 수 없습니다.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Sequence, Tuple

from core.material.material import Steel, Concrete
from core.settings.config import DesignSettings, BeamSettings
from core.topology.geometry import SupportType

# ==============================================================================
# 순간격 / 배치 가능 개수
# ==============================================================================
def required_clear_spacing(beam: BeamSettings, diameter: int) -> float:
    """
    요구 순간격 (mm) = max(설정 최소값, 직경 배수(사용 시), 1.33 x 굵은골재 최대치수).
    """
    required = beam.min_clear_spacing
    if beam.use_bar_diameter_for_spacing:
        required = max(required, beam.bar_diameter_spacing_multiplier * diameter)
    return max(required, 1.33 * beam.aggregate_size)


def usable_width(beam: BeamSettings, width: float) -> float:
    """피복과 스터럽을 제외한 주근 배치 가능 폭."""
    return width - 2 * beam.cover_side - 2 * beam.stirrup_diameter


def max_bars_per_layer(beam: BeamSettings, width: float, diameter: int) -> int:
    """n·d + (n-1)·s <= usable  →  n <= (usable + s) / (d + s)"""
    usable = usable_width(beam, width)
    if usable <= 0:
        return 0
    s = required_clear_spacing(beam, diameter)
    return max(0, math.floor((usable + s) / (diameter + s)))


def fits_in_width(beam: BeamSettings, width: float, bars: Sequence[Tuple[int, int]]) -> bool:
    """
    (개수, 직경) 조합이 한 층에 들어가는지 검사합니다.
    간격은 조합 중 가장 굵은 직경 기준으로 판정합니다.
    """
    total = sum(n for n, _ in bars)
    if total <= 0:
        return True
    usable = usable_width(beam, width)
    if usable <= 0:
        return False
    max_dia = max(d for n, d in bars if n > 0)
    s = required_clear_spacing(beam, max_dia)
    bar_width = sum(n * d for n, d in bars)
    return bar_width + (total - 1) * s <= usable + 1e-9


# ==============================================================================
# 절단 결과 모델
# ==============================================================================
@dataclass(frozen=True)
class SpanInfo:
    label: str
    length: float
    start_pos: float


@dataclass
class BarSegment:
    start_pos: float
    end_pos: float
    bar_index: int
    splice_at_start: bool = False
    splice_at_end: bool = False
    splice_position: float = 0.0
    is_staggered: bool = False
    hook_at_start: bool = False
    hook_at_end: bool = False
    hook_angle: int = 0
    hook_length: float = 0.0

    @property
    def length(self) -> float:
        return self.end_pos - self.start_pos

    def to_record(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_record(cls, data: Dict) -> "BarSegment":
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class CuttingResult:
    total_length: float
    bars_per_layer: int = 1
    segments: List[BarSegment] = field(default_factory=list)

    @property
    def splice_count(self) -> int:
        """한 철근 줄(bar line)에서 부재 내부에 위치한 이음 개수."""
        return count_interior_splices(self.segments, self.total_length)

    @property
    def total_splices(self) -> int:
        """층 전체 이음 개수 = 줄당 이음 x 층당 철근 수."""
        return self.splice_count * max(0, self.bars_per_layer)

    @property
    def has_hooks(self) -> bool:
        return any(s.hook_at_start or s.hook_at_end for s in self.segments)

    @property
    def max_segment_length(self) -> float:
        return max((s.length for s in self.segments), default=0.0)

    def to_record(self) -> Dict:
        return {
            "total_length": self.total_length,
            "bars_per_layer": self.bars_per_layer,
            "segments": [s.to_record() for s in self.segments],
        }

    @classmethod
    def from_record(cls, data: Dict) -> "CuttingResult":
        return cls(
            total_length=float(data.get("total_length", 0.0)),
            bars_per_layer=int(data.get("bars_per_layer", 1)),
            segments=[BarSegment.from_record(s) for s in data.get("segments", [])],
        )


def count_interior_splices(segments: Sequence[BarSegment], total_length: float) -> int:
    """splice_at_end 이면서 이음 위치가 부재 내부(양 끝 제외)인 세그먼트 수."""
    count = 0
    for seg in segments:
        if not seg.splice_at_end:
            continue
        pos = seg.splice_position or seg.end_pos
        if 0.0 < pos < total_length:
            count += 1
    return count


def count_splices_from_records(layers: Sequence[Dict]) -> int:
    """도면에 저장된 층별 세그먼트 레코드로부터 전체 이음 개수를 다시 계산합니다."""
    total = 0
    for record in layers or []:
        result = CuttingResult.from_record(record)
        total += result.total_splices
    return max(0, total)


# ==============================================================================
# 절단 알고리즘
# ==============================================================================
class RebarCuttingAlgorithm:
    """정척 절단 + 이음 엇갈림 + 단부 정착."""
    def __init__(self, settings: Optional[DesignSettings] = None):
        self.settings = settings or DesignSettings()
        self.detailing = self.settings.detailing
        self.anchorage = self.settings.anchorage

    @property
    def stock_length(self) -> float:
        return self.settings.beam.standard_bar_length

    # --- Algorithm 1: 자동 절단 ---
    def auto_cut_bars(self, total_length: float, spans: Sequence[SpanInfo],
                      is_top_bar: bool, group_type: str = "Beam") -> CuttingResult:
        result = CuttingResult(total_length=total_length)
        if total_length <= 0:
            return result

        max_length = self.stock_length
        if total_length <= max_length:
            result.segments.append(BarSegment(start_pos=0.0, end_pos=total_length, bar_index=0))
            return result

        rule = self.detailing.rule_for(group_type)
        zone_type = rule.top_splice_zone if is_top_bar else rule.bot_splice_zone
        allowed_zones = self.build_allowed_zones(spans, zone_type, rule.support_zone_ratio)

        current, index = 0.0, 0
        while total_length - current > max_length:
            remaining = total_length - current
            bars_left = math.ceil(remaining / max_length)
            target = current + remaining / bars_left
            end = self.find_valid_splice_point(target, allowed_zones, max_length * 0.1)
            # 이동된 이음 위치가 정척을 넘거나 뒤로 가지 않도록 제한
            end = min(end, current + max_length)
            if end <= current:
                end = current + max_length
            result.segments.append(BarSegment(
                start_pos=current, end_pos=end, bar_index=index,
                splice_at_start=index > 0, splice_at_end=True, splice_position=end))
            current, index = end, index + 1

        result.segments.append(BarSegment(
            start_pos=current, end_pos=total_length, bar_index=index,
            splice_at_start=index > 0, splice_at_end=False))
        return result

    @staticmethod
    def build_allowed_zones(spans: Sequence[SpanInfo], zone_type: str,
                            support_ratio: float) -> List[Tuple[float, float]]:
        """이음 허용 구간 목록 (그룹 시점 기준 누적 좌표)."""
        zones = []
        cum = 0.0
        for span in spans:
            start, length = cum, span.length
            end = start + length
            if zone_type == "Support":
                zones.append((start, start + length * support_ratio))
                zones.append((end - length * support_ratio, end))
            elif zone_type == "QuarterSpan":
                zones.append((start + length * support_ratio, end - length * support_ratio))
            else:  # MidSpan
                zones.append((start + length * 0.35, start + length * 0.65))
            cum = end
        return zones

    def find_valid_splice_point(self, target: float, zones: Sequence[Tuple[float, float]],
                                search_range: float) -> float:
        """목표 위치가 허용 구간 밖이면 search_range 이내의 가장 가까운 구간 경계 안쪽으로 옮깁니다."""
        for lo, hi in zones:
            if lo <= target <= hi:
                return target

        offset = self.detailing.splice_snap_offset
        best, min_dist = target, float("inf")
        for lo, hi in zones:
            d_lo = abs(target - lo)
            if d_lo < min_dist and d_lo <= search_range:
                min_dist, best = d_lo, lo + offset
            d_hi = abs(target - hi)
            if d_hi < min_dist and d_hi <= search_range:
                min_dist, best = d_hi, hi - offset
        return best

    # --- Algorithm 2: 이음 엇갈림 ---
    def apply_staggering(self, result: CuttingResult, bar_diameter: int, bars_per_layer: int = 2):
        if len(result.segments) < 2 or bars_per_layer < 2:
            return
        splice_length = self.anchorage.splice_length(bar_diameter)
        stagger = max(self.detailing.min_stagger_distance, splice_length * self.detailing.stagger_factor_ld)
        clearance = self.detailing.stagger_end_clearance

        for seg in result.segments:
            if not seg.splice_at_end or seg.bar_index % 2 != 1:
                continue
            seg.splice_position += stagger
            seg.is_staggered = True
            next_index = seg.bar_index + 1
            if next_index < len(result.segments):
                limit = result.segments[next_index].end_pos - clearance
                if seg.splice_position > limit:
                    seg.splice_position = limit

    # --- Algorithm 3: 단부 정착 ---
    def apply_end_anchorage(self, result: CuttingResult, start_support: SupportType,
                            end_support: SupportType, bar_diameter: int):
        if not result.segments:
            return
        hook = self.anchorage.hook90_length(bar_diameter)
        if SupportType.parse(start_support).requires_hook:
            first = result.segments[0]
            first.hook_at_start, first.hook_angle, first.hook_length = True, 90, hook
        if SupportType.parse(end_support).requires_hook:
            last = result.segments[-1]
            last.hook_at_end, last.hook_angle, last.hook_length = True, 90, hook

    # --- 통합 처리 ---
    def process_complete(self,
                         total_length: float,
                         spans: Sequence[SpanInfo],
                         is_top_bar: bool,
                         group_type: str,
                         start_support: SupportType,
                         end_support: SupportType,
                         bar_diameter: int,
                         bars_per_layer: int = 2,
                         concrete_grade: Optional[str] = None,
                         steel_grade: Optional[str] = None) -> CuttingResult:
        """절단 → 엇갈림 → 정착. 등급이 주어지면 지원하는 등급인지 먼저 확인합니다."""
        Concrete(concrete_grade or self.anchorage.concrete_grade)
        Steel(steel_grade or self.anchorage.steel_grade)

        result = self.auto_cut_bars(total_length, spans, is_top_bar, group_type)
        result.bars_per_layer = bars_per_layer
        self.apply_staggering(result, bar_diameter, bars_per_layer)
        self.apply_end_anchorage(result, start_support, end_support, bar_diameter)
        return result


def span_infos_from_lengths(lengths: Sequence[float], labels: Optional[Sequence[str]] = None) -> List[SpanInfo]:
    infos, cum = [], 0.0
    for i, length in enumerate(lengths):
        label = labels[i] if labels else f"S{i + 1}"
        infos.append(SpanInfo(label=label, length=length, start_pos=cum))
        cum += length
    return infos
