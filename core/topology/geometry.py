# core/topology/geometry.py

"""
이 모듈은 보 스팬(Span)의 기하 정보와 지점(Support) 유형을 정의합니다.
Span은 도면 저장소와 구조해석 결과로부터 생성되며, 한 번의 설계 패스 동안 불변입니다.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from core.exceptions import GeometryError
from core.helpers import normalize_length


class SupportType(str, Enum):
    COLUMN = "COLUMN"
    WALL = "WALL"
    BEAM = "BEAM"
    FREE_END = "FREE_END"

    @property
    def requires_hook(self) -> bool:
        """기둥/벽체 단부는 90° 갈고리 정착이 필요합니다."""
        return self in (SupportType.COLUMN, SupportType.WALL)

    @classmethod
    def parse(cls, value) -> "SupportType":
        if isinstance(value, SupportType):
            return value
        text = (value or "").strip().upper().replace(" ", "_")
        if "COL" in text:
            return cls.COLUMN
        if "WALL" in text:
            return cls.WALL
        if text == "BEAM" or "GIRDER" in text:
            return cls.BEAM
        return cls.FREE_END


@dataclass(frozen=True)
class Point2D:
    x: float
    y: float

    def distance_to(self, other: "Point2D") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class Span:
    """단일 보 스팬. 단부 지점 유형과 재료 등급을 함께 보유합니다."""
    span_id: str
    start: Point2D
    end: Point2D
    width: float
    depth: float
    start_support: SupportType = SupportType.FREE_END
    end_support: SupportType = SupportType.FREE_END
    concrete_grade: str = ""
    steel_grade: str = ""
    level_z: float = 0.0
    axis_name: str = ""

    @property
    def length(self) -> float:
        return self.start.distance_to(self.end)

    @property
    def is_reversed(self) -> bool:
        """시점이 종점보다 오른쪽(또는 위쪽)에 있으면 True."""
        if abs(self.start.x - self.end.x) > 1e-6:
            return self.start.x > self.end.x
        return self.start.y > self.end.y

    @property
    def min_point(self) -> Point2D:
        return self.end if self.is_reversed else self.start

    @property
    def max_point(self) -> Point2D:
        return self.start if self.is_reversed else self.end

    @property
    def angle(self) -> float:
        """방향 무관 축 각도 (0 ~ π)."""
        a = math.atan2(self.end.y - self.start.y, self.end.x - self.start.x)
        return a % math.pi

    @property
    def is_horizontal(self) -> bool:
        return abs(self.end.x - self.start.x) >= abs(self.end.y - self.start.y)

    def checked_section(self, default_width: float, default_depth: float) -> Tuple[float, float]:
        """
        정규화된 (폭, 높이)를 반환합니다. 사용할 수 없는 값은 기본값으로 대체합니다.
        """
        w = normalize_length(self.width) or default_width
        h = normalize_length(self.depth) or default_depth
        return w, h


def collinear(a: Span, b: Span, offset_tolerance: float, angle_tolerance_deg: float = 5.0) -> bool:
    """
    두 스팬이 같은 축선 위에 있는지 판정합니다.
    각도 차이가 허용치 이내이고, b의 양 끝점이 a의 축선으로부터 offset_tolerance 이내여야 합니다.
    """
    diff = abs(a.angle - b.angle)
    diff = min(diff, math.pi - diff)
    if math.degrees(diff) > angle_tolerance_deg:
        return False
    return (_distance_to_line(b.start, a) <= offset_tolerance
            and _distance_to_line(b.end, a) <= offset_tolerance)


def endpoint_gap(a: Span, b: Span) -> float:
    """두 스팬 끝점 사이의 최소 거리."""
    return min(p.distance_to(q) for p in (a.start, a.end) for q in (b.start, b.end))


def _distance_to_line(p: Point2D, span: Span) -> float:
    dx, dy = span.end.x - span.start.x, span.end.y - span.start.y
    length = math.hypot(dx, dy)
    if length == 0:
        return p.distance_to(span.start)
    return abs(dy * (p.x - span.start.x) - dx * (p.y - span.start.y)) / length


def span_from_record(span_id: str, data: dict) -> Span:
    """저장소의 dict 형식 스팬 정보를 Span 객체로 변환합니다."""
    try:
        start = Point2D(float(data["start"][0]), float(data["start"][1]))
        end = Point2D(float(data["end"][0]), float(data["end"][1]))
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise GeometryError(span_id, f"Invalid endpoints: {e}") from e
    return Span(
        span_id=span_id,
        start=start,
        end=end,
        width=float(data.get("width") or 0.0),
        depth=float(data.get("depth") or 0.0),
        start_support=SupportType.parse(data.get("start_support")),
        end_support=SupportType.parse(data.get("end_support")),
        concrete_grade=data.get("concrete_grade", ""),
        steel_grade=data.get("steel_grade", ""),
        level_z=float(data.get("level_z") or 0.0),
        axis_name=data.get("axis_name", ""),
    )
