# core/topology/store.py

"""
이 모듈은 도면/영속 저장소(Drawing Store) 협력자 인터페이스와 메모리 구현을 제공합니다.

도면의 엔티티는 엔진 밖의 사용자 편집(복사, 삭제, 실행 취소)으로 언제든 바뀔 수 있으므로,
코어는 메모리 상태를 신뢰하지 않고 항상 이 인터페이스를 통해 명시적 트랜잭션 안에서
읽고 씁니다. 각 스팬은 문자열 키로 구분되는 구조화된 레코드 영역을 가집니다.
"""

import copy
import itertools
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from core.topology.geometry import Span

# --- 스팬별 레코드 키 ---
LINK_KEY = "LINK"
GROUP_KEY = "GROUP_IDENTITY"
SOLUTION_KEY = "SELECTED_SOLUTION"
SEGMENTS_KEY = "BAR_SEGMENTS"

# --- 전역 사전 키 ---
GROUP_REGISTRY_KEY = "BEAM_GROUPS"


class DrawingStore:
    """도면 저장소 협력자 계약."""

    def span_ids(self) -> List[str]:
        raise NotImplementedError

    def exists(self, span_id: str) -> bool:
        raise NotImplementedError

    def get_span(self, span_id: str) -> Span:
        raise NotImplementedError

    def read_record(self, span_id: str, key: str) -> Optional[Any]:
        raise NotImplementedError

    def write_record(self, span_id: str, key: str, value: Any):
        raise NotImplementedError

    def delete_record(self, span_id: str, key: str):
        raise NotImplementedError

    def read_global(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def write_global(self, key: str, value: Any):
        raise NotImplementedError

    def transaction(self):
        """호출자가 감싸는 트랜잭션 범위. 예외 발생 시 변경 사항을 되돌립니다."""
        raise NotImplementedError


class InMemoryDrawingStore(DrawingStore):
    """
    테스트와 배치 실행에 사용하는 메모리 저장소.
    레코드는 깊은 복사로 입출력되므로 호출자가 반환값을 수정해도 저장소에 영향이 없습니다.
    """
    def __init__(self):
        self._spans: Dict[str, Span] = {}
        self._records: Dict[str, Dict[str, Any]] = {}
        self._globals: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._ids = itertools.count(1)

    # --- 엔티티 관리 (도면 편집 시뮬레이션) ---
    def new_id(self) -> str:
        while True:
            candidate = f"{next(self._ids):X}"
            if candidate not in self._spans:
                return candidate

    def add_span(self, span: Span, records: Optional[Dict[str, Any]] = None) -> str:
        self._spans[span.span_id] = span
        self._records[span.span_id] = copy.deepcopy(records or {})
        return span.span_id

    def copy_span(self, span_id: str, dx: float = 0.0, dy: float = 0.0) -> str:
        """CAD 복사와 같이 기하와 레코드를 그대로 가진 새 엔티티를 만듭니다."""
        src = self.get_span(span_id)
        new_id = self.new_id()
        moved = Span(
            span_id=new_id,
            start=type(src.start)(src.start.x + dx, src.start.y + dy),
            end=type(src.end)(src.end.x + dx, src.end.y + dy),
            width=src.width, depth=src.depth,
            start_support=src.start_support, end_support=src.end_support,
            concrete_grade=src.concrete_grade, steel_grade=src.steel_grade,
            level_z=src.level_z, axis_name=src.axis_name,
        )
        return self.add_span(moved, self._records.get(span_id))

    def erase_span(self, span_id: str):
        self._spans.pop(span_id, None)
        self._records.pop(span_id, None)

    # --- DrawingStore 구현 ---
    def span_ids(self) -> List[str]:
        return list(self._spans.keys())

    def exists(self, span_id: str) -> bool:
        return bool(span_id) and span_id in self._spans

    def get_span(self, span_id: str) -> Span:
        try:
            return self._spans[span_id]
        except KeyError:
            raise KeyError(f"Span '{span_id}' does not exist in the drawing.") from None

    def read_record(self, span_id: str, key: str) -> Optional[Any]:
        value = self._records.get(span_id, {}).get(key)
        return copy.deepcopy(value)

    def write_record(self, span_id: str, key: str, value: Any):
        if span_id not in self._spans:
            raise KeyError(f"Span '{span_id}' does not exist in the drawing.")
        with self._lock:
            self._records[span_id][key] = copy.deepcopy(value)

    def delete_record(self, span_id: str, key: str):
        with self._lock:
            self._records.get(span_id, {}).pop(key, None)

    def read_global(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._globals.get(key))

    def write_global(self, key: str, value: Any):
        with self._lock:
            self._globals[key] = copy.deepcopy(value)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator["InMemoryDrawingStore"]:
        """중첩 가능한 트랜잭션. 가장 바깥 범위에서 예외가 나면 스냅샷으로 되돌립니다."""
        with self._lock:
            snapshot = None
            if self._depth == 0:
                snapshot = (copy.deepcopy(self._records), copy.deepcopy(self._globals))
            self._depth += 1
            try:
                yield self
            except BaseException:
                if snapshot is not None:
                    self._records, self._globals = snapshot
                raise
            finally:
                self._depth -= 1
