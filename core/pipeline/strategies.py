# core/pipeline/strategies.py

"""
다층 배근 채우기 전략 (Greedy / Balanced).

주어진 소요 철근량을 백본 + 가설 철근으로 채울 때 층별 개수(n1, n2)를 결정합니다.
두 전략 모두 같은 시공 제약을 순서대로 적용합니다.

    1. 피라미드: 2단 개수는 1단 개수를 넘을 수 없음
    2. 최대 층수
    3. 스터럽 다리 맞춤: 2단 개수가 다리 수보다 1 적으면 다리 수로 올림
    4. 대칭: 홀수 개수는 짝수로 올림 (가능할 때)
    5. 수직 정렬: 1단 짝수 / 2단 홀수 조합 방지
    6. 층당 최소 2개: 부족하면 올리고 올린 개수를 waste로 기록
"""

import math
from dataclasses import dataclass
from typing import List

from core.material.material import bar_area


@dataclass(frozen=True)
class FillingContext:
    required_area: float
    backbone_area: float
    backbone_count: int
    bar_diameter: int
    layer1_capacity: int
    max_layers: int = 2
    stirrup_legs: int = 2
    prefer_symmetric: bool = True


@dataclass(frozen=True)
class FillingResult:
    is_valid: bool
    layer1_count: int = 0
    layer2_count: int = 0
    waste_count: int = 0
    message: str = ""

    @property
    def total_count(self) -> int:
        return self.layer1_count + self.layer2_count

    @property
    def layers(self) -> int:
        return 2 if self.layer2_count > 0 else 1

    @property
    def breakdown(self) -> List[int]:
        return [self.layer1_count, self.layer2_count] if self.layer2_count > 0 else [self.layer1_count]


def _fail(message: str) -> FillingResult:
    return FillingResult(is_valid=False, message=message)


class FillingStrategy:
    name = "Base"

    def calculate(self, ctx: FillingContext) -> FillingResult:
        missing = ctx.required_area - ctx.backbone_area
        if missing <= 0.01:
            return FillingResult(is_valid=True, layer1_count=ctx.backbone_count)

        total_needed = math.ceil(ctx.required_area / bar_area(ctx.bar_diameter))
        n1 = self.first_layer(total_needed, ctx)
        n2 = max(0, total_needed - n1)
        return self.apply_constraints(n1, n2, ctx)

    def first_layer(self, total_needed: int, ctx: FillingContext) -> int:
        raise NotImplementedError

    @staticmethod
    def apply_constraints(n1: int, n2: int, ctx: FillingContext) -> FillingResult:
        waste = 0
        cap = ctx.layer1_capacity

        if n2 > n1:
            return _fail(f"Pyramid violated: layer 2 ({n2}) > layer 1 ({n1}).")
        if n2 > 0 and ctx.max_layers < 2:
            return _fail("Second layer required but max_layers < 2.")

        legs = ctx.stirrup_legs
        if n2 > 0 and legs > 2 and legs - 1 <= n2 < legs and n2 <= n1:
            n2 = legs

        if ctx.prefer_symmetric:
            if n1 % 2 == 1 and n1 + 1 <= cap:
                n1 += 1
            if n2 > 0 and n2 % 2 == 1 and n2 + 1 <= n1:
                n2 += 1

        if n1 % 2 == 0 and n2 % 2 == 1 and n2 + 1 <= n1:
            n2 += 1

        if 0 < n2 < 2:
            if n1 >= 2:
                waste += 2 - n2
                n2 = 2
            else:
                return _fail("Second layer cannot reach 2 bars.")

        if n2 > n1 or n1 > cap:
            return _fail(f"Layer counts {n1}/{n2} exceed capacity {cap}.")
        return FillingResult(is_valid=True, layer1_count=n1, layer2_count=n2, waste_count=waste)


class GreedyFillingStrategy(FillingStrategy):
    """1단을 최대한 채우고 나머지를 2단으로."""
    name = "Greedy"

    def first_layer(self, total_needed: int, ctx: FillingContext) -> int:
        return max(min(total_needed, ctx.layer1_capacity), ctx.backbone_count)


class BalancedFillingStrategy(FillingStrategy):
    """두 층에 고르게 나눔."""
    name = "Balanced"

    def first_layer(self, total_needed: int, ctx: FillingContext) -> int:
        return min(max(math.ceil(total_needed / 2), ctx.backbone_count), ctx.layer1_capacity)


DEFAULT_STRATEGIES = (GreedyFillingStrategy(), BalancedFillingStrategy())
