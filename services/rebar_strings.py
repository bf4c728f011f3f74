# services/rebar_strings.py

"""
이 모듈은 철근 표기 문자열(예: "3D20 + 2D22")의 해석과,
선택된 배근안을 스팬/구역별 표기 문자열로 만드는 기능을 제공합니다.

지원 표기: 3d20, 3D20, 3phi20, 3fi20, 3Ø20. '+'는 여러 묶음(층)을 구분하며,
'*'(강제 지정 표시)는 무시합니다. "-"는 철근 불필요를 뜻합니다.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from core.exceptions import MaterialError
from core.material.material import Rebar, bar_area
from core.pipeline.context import ContinuousBeamSolution
from core.topology.group import BeamGroup

# 개수와 직경 사이의 표시(D, phi, fi, Ø)는 생략할 수 없습니다.
BAR_PATTERN = re.compile(r"(\d+)\s*(?:phi|fi|Ø|[dDfF])\s*(\d+)", re.IGNORECASE)

MIN_DIAMETER, MAX_DIAMETER = 10, 40
MIN_COUNT, MAX_COUNT = 1, 20

ZONES = ("Left", "Mid", "Right")


def _parts(text: str) -> List[str]:
    cleaned = (text or "").replace("*", "").strip()
    return [p.strip() for p in cleaned.split("+") if p.strip()]


def get_details(text: str) -> List[Tuple[int, int, float]]:
    """(개수, 직경, 면적 mm²) 목록. 해석할 수 없는 부분은 건너뜁니다."""
    details = []
    for part in _parts(text):
        match = BAR_PATTERN.search(part)
        if match:
            count, diameter = int(match.group(1)), int(match.group(2))
            if count > 0 and diameter > 0:
                details.append((count, diameter, count * bar_area(diameter)))
    return details


def parse_area(text: str) -> float:
    """표기 문자열의 전체 철근 면적 (mm²)."""
    return sum(area for _, _, area in get_details(text))


def validate(text: str) -> Tuple[bool, Optional[str]]:
    """(유효 여부, 오류 메시지)를 반환합니다."""
    if not text or not text.strip():
        return False, "Empty rebar string."
    cleaned = text.replace("*", "").strip()
    if cleaned == "-":
        return True, None
    parts = _parts(cleaned)
    if not parts:
        return False, "No bar information found."
    for part in parts:
        match = BAR_PATTERN.search(part)
        if not match:
            return False, f"Invalid format '{part}'. Expected nDd (e.g. 3D20)."
        count, diameter = int(match.group(1)), int(match.group(2))
        if not (MIN_DIAMETER <= diameter <= MAX_DIAMETER):
            return False, f"Unreasonable diameter D{diameter}. Allowed: {MIN_DIAMETER}-{MAX_DIAMETER}mm."
        if not (MIN_COUNT <= count <= MAX_COUNT):
            return False, f"Unreasonable bar count {count}. Allowed: {MIN_COUNT}-{MAX_COUNT}."
        try:
            Rebar(diameter)
        except MaterialError as e:
            return False, str(e)
    return True, None


def format_bars(count: int, diameter: int) -> str:
    return f"{count}D{diameter}" if count > 0 else "-"


# ==============================================================================
# 스팬별 표기
# ==============================================================================
@dataclass(frozen=True)
class SpanCallout:
    span_id: str
    label: str
    top: Tuple[str, str, str]
    bot: Tuple[str, str, str]
    stirrup: Tuple[str, str, str] = ("-", "-", "-")
    web: str = "-"

    def as_row(self) -> Dict[str, str]:
        row = {"span_id": self.span_id, "label": self.label}
        for i, zone in enumerate(ZONES):
            row[f"top_{zone.lower()}"] = self.top[i]
            row[f"bot_{zone.lower()}"] = self.bot[i]
            row[f"stirrup_{zone.lower()}"] = self.stirrup[i]
        row["web"] = self.web
        return row


def _zone_string(solution: ContinuousBeamSolution, label: str, position: str, zone: str) -> str:
    backbone_n = solution.backbone_count_top if position == "Top" else solution.backbone_count_bot
    backbone_d = solution.backbone_diameter_top if position == "Top" else solution.backbone_diameter_bot
    parts = [format_bars(backbone_n, backbone_d)]
    for suffix in (zone, "Full"):
        spec = solution.reinforcements.get(f"{label}_{position}_{suffix}")
        if spec is not None and spec.count > 0:
            parts.append(format_bars(spec.count, spec.diameter))
    return " + ".join(parts)


def _stirrup_string(solution: ContinuousBeamSolution, label: str, zone: str) -> str:
    spec = solution.stirrups.get(f"{label}_{zone}")
    return spec.notation if spec is not None else "-"


def _web_string(solution: ContinuousBeamSolution, label: str) -> str:
    spec = solution.web_bars.get(label)
    return spec.notation if spec is not None else "-"


def build_callouts(group: BeamGroup, solution: ContinuousBeamSolution) -> List[SpanCallout]:
    """그룹의 각 스팬에 대해 상/하부와 스터럽의 구역별(좌/중/우) 표기, 측면근 표기를 만듭니다."""
    callouts = []
    for topo in group.spans:
        callouts.append(SpanCallout(
            span_id=topo.span_id,
            label=topo.label,
            top=tuple(_zone_string(solution, topo.label, "Top", z) for z in ZONES),
            bot=tuple(_zone_string(solution, topo.label, "Bot", z) for z in ZONES),
            stirrup=tuple(_stirrup_string(solution, topo.label, z) for z in ZONES),
            web=_web_string(solution, topo.label),
        ))
    return callouts


def format_area_cm2(area_mm2: float) -> str:
    return f"{area_mm2 / 100.0:.2f} cm²"
