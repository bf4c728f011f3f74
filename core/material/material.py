# core/material/material.py

"""
이 모듈은 철근 카탈로그(공칭 단면적, 단위중량)와 철근/콘크리트 등급을 정의합니다.

각 재료 클래스는 불변(immutable) 객체로 설계되어 데이터의 일관성을 보장합니다.
객체 생성 시 지원하는 등급인지 유효성 검사를 수행합니다.
모든 단위는 N, mm, MPa 기준입니다.
"""

import math
import re
from dataclasses import dataclass
from typing import List, Tuple
from core.exceptions import MaterialError

# ==============================================================================
# Module Root Level Constants
# ==============================================================================
# 강종: (설계기준항복강도 fy, 인장강도 fu) MPa
_REBAR_SPECS = {
    "CB240T": (240, 380), "CB300V": (300, 450), "CB400V": (400, 570), "CB500V": (500, 650),
}
# 콘크리트 등급: 설계압축강도 Rb (MPa)
_CONCRETE_SPECS = {
    "B15": 8.5, "B20": 11.5, "B25": 14.5, "B30": 17.0, "B35": 19.5, "B40": 22.0, "B45": 25.0, "B50": 27.5,
}
# 공칭 단면적 As = π d²/4 (mm²), 유효숫자 4개
_REBAR_AREAS = {
    6: 28.27, 8: 50.27, 10: 78.54, 12: 113.1, 14: 153.9, 16: 201.1, 18: 254.5, 20: 314.2,
    22: 380.1, 25: 490.9, 28: 615.8, 30: 706.9, 32: 804.2, 36: 1018.0, 40: 1257.0
}

REBAR_DIA_LIST = list(_REBAR_AREAS.keys())
STEEL_DENSITY_FACTOR = 0.00617  # 단위중량 (kg/m) = 0.00617 * d²

# ==============================================================================
# Catalogue Functions
# ==============================================================================
def bar_area(diameter: int) -> float:
    """철근 1본의 공칭 단면적 (mm²). 카탈로그에 없는 직경은 π d²/4로 계산합니다."""
    if diameter <= 0:
        raise MaterialError(f"Bar diameter must be positive: {diameter}")
    return _REBAR_AREAS.get(diameter, math.pi * diameter * diameter / 4.0)

def bar_unit_weight(diameter: int) -> float:
    """철근 1본의 단위중량 (kg/m)"""
    return STEEL_DENSITY_FACTOR * diameter * diameter

def parse_diameter_range(text: str) -> Tuple[int, int]:
    """
    "16-25" 형식의 직경 범위 문자열을 (최소, 최대) 튜플로 변환합니다.
    단일 값("20")은 (20, 20)으로 처리합니다.
    """
    numbers = [int(n) for n in re.findall(r"\d+", text or "")]
    if not numbers:
        raise MaterialError(f"Invalid diameter range: '{text}'")
    if len(numbers) == 1:
        return numbers[0], numbers[0]
    low, high = numbers[0], numbers[1]
    return (low, high) if low <= high else (high, low)

def diameters_in_range(inventory: List[int], text: str) -> List[int]:
    """재고 직경 중 범위 문자열에 포함되는 직경만 오름차순으로 반환합니다."""
    low, high = parse_diameter_range(text)
    return sorted(d for d in set(inventory) if low <= d <= high)

# ==============================================================================
# Material Classes
# ==============================================================================
@dataclass(frozen=True)
class Steel:
    grade: str

    def __post_init__(self):
        if self.grade not in _REBAR_SPECS:
            raise MaterialError(f"Unknown rebar grade: '{self.grade}'.")

    @property
    def fy(self) -> float:
        """설계기준항복강도 (MPa)"""
        return _REBAR_SPECS[self.grade][0]


@dataclass(frozen=True)
class Concrete:
    """콘크리트 등급을 정의하는 불변 객체."""
    grade: str

    def __post_init__(self):
        if self.grade not in _CONCRETE_SPECS:
            raise MaterialError(f"Unknown concrete grade: '{self.grade}'.")

    @property
    def rb(self) -> float:
        """설계압축강도 (MPa)"""
        return _CONCRETE_SPECS[self.grade]


@dataclass(frozen=True)
class Rebar:
    """단일 철근의 직경을 정의하는 불변 객체."""
    diameter: int

    def __post_init__(self):
        if self.diameter not in REBAR_DIA_LIST:
            raise MaterialError(f"Unsupported rebar diameter: {self.diameter}mm.")

    @property
    def area(self) -> float:
        """철근의 공칭 단면적 (mm²)"""
        return _REBAR_AREAS[self.diameter]

    @property
    def unit_weight(self) -> float:
        """단위중량 (kg/m)"""
        return bar_unit_weight(self.diameter)
