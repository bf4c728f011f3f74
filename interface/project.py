# interface/project.py

"""
JSON 프로젝트 파일(스팬 기하 + 해석 결과 + 선택적 설정)을 메모리 저장소로 불러옵니다.

    {
      "settings": {...},                       # 선택
      "spans": [{"id": "A1", "start": [0, 0], "end": [6000, 0], "width": 300, "depth": 500,
                 "start_support": "COLUMN", "end_support": "COLUMN", "axis_name": "A"}, ...],
      "analysis": {"A1": {"top_area": [..3], "bot_area": [..3], "torsion_area": [..3],
                     "shear_area": [..3], "torsion_transverse_area": [..3]}, ...}
    }
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from core.analysis import InMemoryAnalysisSource, SpanAnalysis
from core.exceptions import ConfigurationError
from core.settings.config import DesignSettings
from core.topology.geometry import Point2D, Span, SupportType, span_from_record
from core.topology.store import InMemoryDrawingStore


@dataclass
class Project:
    store: InMemoryDrawingStore
    analysis: InMemoryAnalysisSource
    settings: DesignSettings


def project_from_dict(data: Dict[str, Any]) -> Project:
    settings = DesignSettings.from_dict(data["settings"]).validate() if data.get("settings") else DesignSettings()
    store = InMemoryDrawingStore()
    analysis = InMemoryAnalysisSource()

    for raw in data.get("spans", []):
        span_id = str(raw.get("id") or store.new_id())
        store.add_span(span_from_record(span_id, raw))

    for span_id, raw in (data.get("analysis") or {}).items():
        analysis.put(SpanAnalysis(
            span_id=span_id,
            top_area=tuple(raw.get("top_area", (0.0, 0.0, 0.0))),
            bot_area=tuple(raw.get("bot_area", (0.0, 0.0, 0.0))),
            torsion_area=tuple(raw.get("torsion_area", (0.0, 0.0, 0.0))),
            shear_area=tuple(raw.get("shear_area", (0.0, 0.0, 0.0))),
            torsion_transverse_area=tuple(raw.get("torsion_transverse_area", (0.0, 0.0, 0.0))),
            width=float(raw.get("width") or 0.0),
            depth=float(raw.get("depth") or 0.0),
        ))
    return Project(store=store, analysis=analysis, settings=settings)


def load_project(path: str) -> Project:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read project file '{path}': {e}") from e
    return project_from_dict(data)


def add_straight_beam(project: Project,
                      span_lengths: Sequence[float],
                      width: float,
                      depth: float,
                      top_area: float,
                      bot_area: float,
                      y: float = 0.0,
                      axis_name: str = "",
                      end_support: str = "COLUMN",
                      torsion_area: float = 0.0,
                      shear_area: float = 0.0,
                      torsion_transverse_area: float = 0.0) -> List[str]:
    """
    X축을 따라 이어진 연속보를 추가합니다 (지점은 모두 기둥).
    지점부 상부 / 중앙부 하부에 주어진 소요량을, 나머지 구역에는 그 절반을 배정합니다.
    전단(mm²/mm)은 지점부에 주어진 값, 중앙부에 그 절반을 배정합니다.
    """
    ids = []
    x = 0.0
    support = SupportType.parse(end_support)
    for length in span_lengths:
        span_id = project.store.new_id()
        project.store.add_span(Span(
            span_id=span_id, start=Point2D(x, y), end=Point2D(x + length, y),
            width=width, depth=depth, start_support=support, end_support=support,
            axis_name=axis_name))
        project.analysis.put(SpanAnalysis(
            span_id=span_id,
            top_area=(top_area, top_area * 0.5, top_area),
            bot_area=(bot_area * 0.5, bot_area, bot_area * 0.5),
            torsion_area=(torsion_area,) * 3,
            shear_area=(shear_area, shear_area * 0.5, shear_area),
            torsion_transverse_area=(torsion_transverse_area,) * 3,
        ))
        ids.append(span_id)
        x += length
    return ids


def empty_project(settings: Optional[DesignSettings] = None) -> Project:
    return Project(store=InMemoryDrawingStore(), analysis=InMemoryAnalysisSource(),
                   settings=settings or DesignSettings())
