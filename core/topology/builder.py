# core/topology/builder.py

"""
이 모듈은 선택된 스팬들로부터 연속보 그룹을 구성하는 TopologyBuilder를 제공합니다.

처리 순서:
    1. build_graph: 저장된 링크를 따라 선택 범위를 확장하고 좌→우 순서로 정렬
    2. split_into_groups: 저장된 주 링크를 우선하고, 링크 없는 스팬은 기하 인접성으로 묶음
    3. establish_star_topology: 그룹의 첫 스팬을 모(mother)로, 나머지를 자식으로 연결
    4. build_beam_group: 방향, 그룹 유형(Beam/Girder), 지점, 단면 치수 결정
"""

import logging
from collections import deque
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from core.settings.config import DesignSettings
from core.topology.geometry import Span, SupportType, collinear, endpoint_gap
from core.topology.group import BeamGroup, SpanTopology
from core.topology.links import LinkRules, LinkResult
from core.topology.store import DrawingStore

logger = logging.getLogger(__name__)

COLLINEAR_TOLERANCE = 500.0
CONNECTIVITY_TOLERANCE = 1000.0
ANGLE_TOLERANCE_DEG = 5.0

_SUPPORT_RANK = {SupportType.FREE_END: 0, SupportType.BEAM: 1, SupportType.WALL: 2, SupportType.COLUMN: 3}


class _DisjointSet:
    def __init__(self, items: Sequence[str]):
        self.parent = {i: i for i in items}

    def find(self, x: str) -> str:
        while self.parent[x] != x:
            self.parent[x] = self.parent[self.parent[x]]
            x = self.parent[x]
        return x

    def union(self, a: str, b: str):
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self.parent[rb] = ra


class TopologyBuilder:
    def __init__(self,
                 store: DrawingStore,
                 settings: Optional[DesignSettings] = None,
                 collinear_tolerance: float = COLLINEAR_TOLERANCE,
                 connectivity_tolerance: float = CONNECTIVITY_TOLERANCE):
        self.store = store
        self.settings = settings or DesignSettings()
        self.links = LinkRules(store)
        self.collinear_tolerance = collinear_tolerance
        self.connectivity_tolerance = connectivity_tolerance

    # ------------------------------------------------------------------
    # 1. 그래프 구성
    # ------------------------------------------------------------------
    def build_graph(self, candidate_ids: Sequence[str], repair_links: bool = True) -> List[SpanTopology]:
        """
        선택된 스팬과 링크로 연결된 모든 살아있는 스팬을 좌→우 순서로 반환합니다.
        repair_links=True이면 방문하는 스팬마다 링크 레코드를 먼저 정리합니다.
        """
        visited = set()
        queue = deque(sid for sid in candidate_ids if self.store.exists(sid))
        while queue:
            sid = queue.popleft()
            if sid in visited:
                continue
            visited.add(sid)
            if repair_links:
                self.links.validate_and_fix_links(sid)
            link = self.links.get_link(sid)
            neighbours = [link["origin"]] + link["children"] + link["references"]
            for other in neighbours:
                if other and other not in visited and self.store.exists(other):
                    queue.append(other)

        spans = [self.store.get_span(sid) for sid in visited]
        spans.sort(key=lambda s: (round(s.min_point.x, 3), round(s.min_point.y, 3), s.span_id))
        return [
            SpanTopology(span=s, span_index=i, label=f"S{i + 1}", origin=self.links.get_parent(s.span_id))
            for i, s in enumerate(spans)
        ]

    # ------------------------------------------------------------------
    # 2. 그룹 분할
    # ------------------------------------------------------------------
    def split_into_groups(self, topologies: List[SpanTopology]) -> List[List[SpanTopology]]:
        """
        연결 요소 단위로 그룹을 나눕니다. 주 링크로 연결된 스팬은 저장된 관계를 따르며,
        링크가 전혀 없는 스팬끼리만 기하 인접성(동일 축선 + 끝점 근접)으로 묶습니다.
        """
        by_id: Dict[str, SpanTopology] = {t.span_id: t for t in topologies}
        dsu = _DisjointSet(list(by_id.keys()))
        linked = set()

        for t in topologies:
            parent = t.origin
            if parent and parent in by_id:
                dsu.union(parent, t.span_id)
                linked.update((parent, t.span_id))

        free = [t for t in topologies if t.span_id not in linked]
        for i, a in enumerate(free):
            for b in free[i + 1:]:
                if self._geometrically_adjacent(a.span, b.span):
                    dsu.union(a.span_id, b.span_id)

        components: Dict[str, List[SpanTopology]] = {}
        for t in topologies:
            components.setdefault(dsu.find(t.span_id), []).append(t)

        groups = [self._order_chain(members) for members in components.values()]
        groups.sort(key=lambda g: (round(g[0].span.min_point.x, 3), round(g[0].span.min_point.y, 3)))
        return groups

    def _geometrically_adjacent(self, a: Span, b: Span) -> bool:
        if a.level_z != b.level_z:
            return False
        if not collinear(a, b, self.collinear_tolerance, ANGLE_TOLERANCE_DEG):
            return False
        return endpoint_gap(a, b) <= self.connectivity_tolerance

    @staticmethod
    def _order_chain(members: List[SpanTopology]) -> List[SpanTopology]:
        horizontal = sum(1 for m in members if m.span.is_horizontal) * 2 >= len(members)
        if horizontal:
            key = lambda m: (m.span.min_point.x, m.span.min_point.y)
        else:
            key = lambda m: (m.span.min_point.y, m.span.min_point.x)
        ordered = sorted(members, key=key)
        return [
            SpanTopology(span=m.span, span_index=i, label=f"S{i + 1}", origin=m.origin)
            for i, m in enumerate(ordered)
        ]

    # ------------------------------------------------------------------
    # 3. 스타 위상
    # ------------------------------------------------------------------
    def establish_star_topology(self, group: List[SpanTopology]) -> List[SpanTopology]:
        """
        group[0]을 모 스팬으로 지정하고 나머지를 모두 모 스팬에 주 링크로 연결합니다.
        모 스팬이 그룹 내부의 다른 스팬을 부모로 가지고 있으면 먼저 끊습니다.
        """
        if not group:
            return group
        mother_id = group[0].span_id
        member_ids = {t.span_id for t in group}

        mother_parent = self.links.get_parent(mother_id)
        if mother_parent and mother_parent in member_ids:
            self.links.unregister_link(mother_id, mother_parent)

        result = [SpanTopology(span=group[0].span, span_index=0, label=group[0].label, origin=None)]
        for t in group[1:]:
            current = self.links.get_parent(t.span_id)
            if current != mother_id:
                if current and self.store.exists(current):
                    self.links.unregister_link(t.span_id, current)
                status = self.links.register_link(t.span_id, mother_id)
                if status not in (LinkResult.PRIMARY, LinkResult.ALREADY_LINKED):
                    logger.warning("Star link %s -> %s not established (%s).",
                                   t.span_id, mother_id, status.value)
            result.append(SpanTopology(span=t.span, span_index=t.span_index, label=t.label,
                                       origin=self.links.get_parent(t.span_id)))
        return result

    # ------------------------------------------------------------------
    # 4. 보 그룹 생성
    # ------------------------------------------------------------------
    def build_beam_group(self, group: List[SpanTopology], name: str = "",
                         group_id: Optional[str] = None) -> BeamGroup:
        if not group:
            raise ValueError("Cannot build a beam group from an empty span list.")
        beam_cfg = self.settings.beam

        first, last = group[0].span, group[-1].span
        dx = abs(last.max_point.x - first.min_point.x)
        dy = abs(last.max_point.y - first.min_point.y)
        direction = "X" if dx >= dy else "Y"

        sections = [t.span.checked_section(beam_cfg.default_width, beam_cfg.default_height) for t in group]
        width = sum(w for w, _ in sections) / len(sections)
        height = max(h for _, h in sections)
        group_type = "Girder" if width >= beam_cfg.girder_min_width else "Beam"

        supports = [group[0].left_support]
        for left, right in zip(group, group[1:]):
            supports.append(self._merge_support(left.right_support, right.left_support))
        supports.append(group[-1].right_support)

        total = sum(t.length for t in group)
        if not name:
            prefix = self.settings.naming.girder_prefix if group_type == "Girder" else self.settings.naming.beam_prefix
            name = f"{prefix}-{first.axis_name or direction}"

        return BeamGroup(
            name=name,
            group_type=group_type,
            direction=direction,
            spans=tuple(group),
            supports=tuple(supports),
            width=width,
            height=height,
            requires_splice=total > beam_cfg.standard_bar_length,
            group_id=group_id,
            level_z=first.level_z,
            axis_name=first.axis_name,
        )

    @staticmethod
    def _merge_support(a: SupportType, b: SupportType) -> SupportType:
        best = a if _SUPPORT_RANK[a] >= _SUPPORT_RANK[b] else b
        # 내부 절점은 최소한 인접 보와 맞닿은 절점입니다.
        return SupportType.BEAM if best == SupportType.FREE_END else best

    def build_groups(self, candidate_ids: Sequence[str], establish_links: bool = True) -> List[BeamGroup]:
        """build_graph → split_into_groups → (스타 위상) → build_beam_group 을 한 번에 수행합니다."""
        topologies = self.build_graph(candidate_ids)
        groups = []
        counters = {"Girder": 0, "Beam": 0}
        for chain in self.split_into_groups(topologies):
            if establish_links:
                chain = self.establish_star_topology(chain)
            group = self.build_beam_group(chain)
            counters[group.group_type] += 1
            prefix = self.settings.naming.girder_prefix if group.group_type == "Girder" else self.settings.naming.beam_prefix
            groups.append(replace(group, name=f"{prefix}{counters[group.group_type]}"))
        return groups

    def regroup(self, group: BeamGroup, member_ids: Sequence[str],
                name: Optional[str] = None, group_id: Optional[str] = None) -> BeamGroup:
        """
        그룹에서 member_ids에 해당하는 스팬만 남겨 다시 구성합니다.
        레이블과 지점은 남은 스팬 기준으로 다시 매깁니다.
        """
        keep = set(member_ids)
        chain = self._order_chain([t for t in group.spans if t.span_id in keep])
        return self.build_beam_group(chain, name or group.name, group_id)
