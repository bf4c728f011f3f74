# core/helpers.py

"""
이 모듈은 core 패키지 내부의 다른 모듈들이 공통적으로 사용하는
저수준(low-level) 도우미 함수들을 제공합니다.
"""

from typing import Optional

# 프로젝트 전역에서 사용할 부동소수점 비교를 위한 허용 오차
TOLERANCE = 1e-9

def is_greater_or_equal(a: float, b: float) -> bool:
    """
    부동소수점 오차를 고려하여 a >= b 인지 안전하게 비교합니다.
    a가 b보다 크거나, 두 수의 차이가 허용 오차보다 작으면 True를 반환합니다.
    """
    return (a - b) > -TOLERANCE

def clamp(value: float, low: float, high: float) -> float:
    """value를 [low, high] 범위로 제한합니다."""
    return max(low, min(high, value))

def normalize_length(value: Optional[float]) -> float:
    """
    단위가 섞여 들어오는 단면 치수를 mm로 정규화합니다.
    5 미만은 m, 100 미만은 cm로 간주합니다. 0 이하 또는 None은 0을 반환합니다.
    """
    if value is None or value <= 0:
        return 0.0
    if value < 5:
        return value * 1000.0
    if value < 100:
        return value * 10.0
    return float(value)
