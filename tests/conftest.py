"""
conftest.py: 테스트 전반에서 공유하는 픽스처.

모든 테스트는 메모리 저장소(InMemoryDrawingStore)와 메모리 해석 결과만 사용하는
순수 단위 테스트입니다. 치수는 mm, 철근량은 mm² 입니다.
"""

import pytest

from core.pipeline.pipeline import collect_span_results
from core.settings.config import DesignSettings
from core.topology.builder import TopologyBuilder
from core.topology.geometry import Point2D, Span, SupportType
from core.topology.store import InMemoryDrawingStore
from interface.project import add_straight_beam, empty_project


@pytest.fixture
def settings():
    return DesignSettings()


@pytest.fixture
def store():
    return InMemoryDrawingStore()


@pytest.fixture
def add_span(store):
    """
    X축 방향 스팬을 저장소에 추가하는 팩토리.
    기본 단면 300x600, 양단 기둥.
    """
    def _add(x0, x1, y=0.0, width=300.0, depth=600.0,
             start_support=SupportType.COLUMN, end_support=SupportType.COLUMN, span_id=None):
        sid = span_id or store.new_id()
        store.add_span(Span(span_id=sid, start=Point2D(x0, y), end=Point2D(x1, y),
                            width=width, depth=depth,
                            start_support=start_support, end_support=end_support))
        return sid
    return _add


@pytest.fixture
def builder(store, settings):
    return TopologyBuilder(store, settings)


@pytest.fixture
def project(settings):
    return empty_project(settings)


@pytest.fixture
def three_span_project(project):
    """6000 x 3 스팬, 300x600, 지점 상부 1200 mm² / 중앙 하부 900 mm²."""
    ids = add_straight_beam(project, [6000, 6000, 6000], 300, 600, 1200, 900)
    return project, ids


@pytest.fixture
def design_inputs(three_span_project, settings):
    """(group, span_results): 파이프라인 단위 테스트용."""
    project, _ = three_span_project
    group = TopologyBuilder(project.store, settings).build_groups(project.store.span_ids())[0]
    return group, collect_span_results(group, project.analysis)
