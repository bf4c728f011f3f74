# core/topology/links.py

"""
이 모듈은 스팬 사이의 부모-자식(주 링크)과 참조(보조 링크) 관계를 관리하는
LinkRules 서비스를 제공합니다.

링크 데이터는 각 스팬의 LINK 레코드에 저장됩니다:
    {"origin": 부모 id 또는 None, "children": [...], "references": [...]}
새 주 링크는 항상 방문 집합(visited-set) 기반 순환 검사를 통과해야 하며,
검사가 확정적으로 끝나지 않으면 링크를 거부합니다(fail closed).
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from core.exceptions import LinkError
from core.topology.store import DrawingStore, LINK_KEY

logger = logging.getLogger(__name__)

# 부모 체인 탐색 깊이 상한. 이를 넘으면 순환으로 간주합니다.
MAX_CHAIN_DEPTH = 1000


class LinkResult(str, Enum):
    PRIMARY = "PRIMARY"
    REFERENCE = "REFERENCE"
    ALREADY_LINKED = "ALREADY_LINKED"
    CYCLE = "CYCLE"
    REJECTED = "REJECTED"

    @property
    def linked(self) -> bool:
        return self in (LinkResult.PRIMARY, LinkResult.REFERENCE)


def empty_link() -> Dict:
    return {"origin": None, "children": [], "references": []}


class LinkRules:
    """저장소 위에서 링크를 읽고, 검증하고, 기록합니다."""
    def __init__(self, store: DrawingStore):
        self.store = store

    # --- 읽기/쓰기 ---
    def get_link(self, span_id: str) -> Dict:
        data = self.store.read_record(span_id, LINK_KEY) or {}
        link = empty_link()
        link["origin"] = data.get("origin") or None
        link["children"] = list(data.get("children") or [])
        link["references"] = list(data.get("references") or [])
        return link

    def _save(self, span_id: str, link: Dict):
        self.store.write_record(span_id, LINK_KEY, link)

    def get_parent(self, span_id: str) -> Optional[str]:
        return self.get_link(span_id)["origin"]

    def get_children(self, span_id: str) -> List[str]:
        return self.get_link(span_id)["children"]

    # --- 규칙 ---
    def detect_cycle(self, child_id: str, proposed_parent_id: str) -> bool:
        """
        child를 proposed_parent 아래에 연결했을 때 child가 자기 자신의 조상이 되는지 검사합니다.
        부모 체인을 따라 올라가며 이미 방문한 노드를 다시 만나거나,
        깊이 상한을 넘으면 순환으로 판정합니다.
        """
        if child_id == proposed_parent_id:
            return True
        visited = {child_id}
        current = proposed_parent_id
        depth = 0
        while current:
            if current in visited:
                return True
            depth += 1
            if depth > MAX_CHAIN_DEPTH:
                logger.warning("Parent chain from '%s' exceeds %d levels; refusing link.",
                               proposed_parent_id, MAX_CHAIN_DEPTH)
                return True
            visited.add(current)
            if not self.store.exists(current):
                # 끊어진 체인: 더 이상 조상이 없음
                return False
            current = self.get_parent(current)
        return False

    def can_add_reference(self, host_id: str, target_id: str) -> Tuple[bool, str]:
        """host가 target을 보조(참조) 링크로 가질 수 있는지 검사합니다."""
        if host_id == target_id:
            return False, "self reference"
        host = self.get_link(host_id)
        if host["origin"] == target_id:
            return False, "target is already the primary parent"
        if target_id in host["children"]:
            return False, "target is a child of the host"
        return True, ""

    # --- 링크 등록/해제 ---
    def register_link(self, child_id: str, parent_id: str, is_reference: bool = False) -> LinkResult:
        """
        child → parent 링크를 등록합니다.
        child에 이미 살아있는 다른 부모가 있거나 is_reference=True이면 참조 링크로 등록합니다.
        """
        for sid in (child_id, parent_id):
            if not self.store.exists(sid):
                raise LinkError(child_id, parent_id, f"'{sid}' does not exist")
        if child_id == parent_id:
            return LinkResult.REJECTED

        child = self.get_link(child_id)
        if child["origin"] == parent_id or parent_id in child["references"]:
            return LinkResult.ALREADY_LINKED

        has_live_parent = child["origin"] is not None and self.store.exists(child["origin"])
        if is_reference or has_live_parent:
            ok, reason = self.can_add_reference(child_id, parent_id)
            if not ok:
                logger.debug("Reference %s -> %s refused: %s", child_id, parent_id, reason)
                return LinkResult.REJECTED
            child["references"].append(parent_id)
            self._save(child_id, child)
            return LinkResult.REFERENCE

        if self.detect_cycle(child_id, parent_id):
            logger.info("Link %s -> %s refused: cycle detected.", child_id, parent_id)
            return LinkResult.CYCLE

        # 이전(죽은) 부모 정리
        old_parent = child["origin"]
        if old_parent and self.store.exists(old_parent):
            self._remove_child(old_parent, child_id)

        child["origin"] = parent_id
        self._save(child_id, child)

        parent = self.get_link(parent_id)
        if child_id not in parent["children"]:
            parent["children"].append(child_id)
        if child_id in parent["references"]:
            parent["references"].remove(child_id)
        self._save(parent_id, parent)
        return LinkResult.PRIMARY

    def unregister_link(self, child_id: str, parent_id: str) -> bool:
        """링크를 제거합니다. 주 링크가 제거되면 첫 번째 참조 링크를 주 링크로 승격합니다."""
        child = self.get_link(child_id)
        if parent_id in child["references"]:
            child["references"].remove(parent_id)
            self._save(child_id, child)
            return True
        if child["origin"] != parent_id:
            return False

        child["origin"] = None
        if self.store.exists(parent_id):
            self._remove_child(parent_id, child_id)

        while child["references"]:
            candidate = child["references"].pop(0)
            if self.store.exists(candidate) and not self.detect_cycle(child_id, candidate):
                child["origin"] = candidate
                promoted = self.get_link(candidate)
                if child_id not in promoted["children"]:
                    promoted["children"].append(child_id)
                self._save(candidate, promoted)
                break
        self._save(child_id, child)
        return True

    def clear_links(self, span_id: str):
        """스팬의 모든 링크를 끊습니다 (부모/자식 양쪽 정리)."""
        link = self.get_link(span_id)
        if link["origin"] and self.store.exists(link["origin"]):
            self._remove_child(link["origin"], span_id)
        for child_id in link["children"]:
            if self.store.exists(child_id):
                c = self.get_link(child_id)
                if c["origin"] == span_id:
                    c["origin"] = None
                    self._save(child_id, c)
        self._save(span_id, empty_link())

    def _remove_child(self, parent_id: str, child_id: str):
        parent = self.get_link(parent_id)
        if child_id in parent["children"]:
            parent["children"].remove(child_id)
            self._save(parent_id, parent)

    # --- 정합성 복구 ---
    def validate_and_fix_links(self, span_id: str) -> bool:
        """
        한 스팬의 링크 레코드를 정리합니다.
        - 부모가 삭제되었거나 부모의 자식 목록에 없으면 부모 링크를 끊습니다.
        - 삭제되었거나 다른 부모를 가리키는 자식(유령 자식)을 제거합니다.
        - 삭제된 참조를 제거합니다.
        변경이 있었으면 True를 반환합니다.
        """
        if not self.store.exists(span_id):
            return False
        link = self.get_link(span_id)
        changed = False

        if link["origin"] and not self.store.exists(link["origin"]):
            link["origin"] = None
            changed = True
        elif link["origin"] and span_id not in self.get_children(link["origin"]):
            # 부모가 인정하지 않는 링크 (복사본이 원본의 링크를 그대로 들고 온 경우)
            link["origin"] = None
            changed = True

        alive_children = []
        for child_id in link["children"]:
            if self.store.exists(child_id) and self.get_parent(child_id) == span_id:
                alive_children.append(child_id)
        if alive_children != link["children"]:
            link["children"] = alive_children
            changed = True

        alive_refs = [r for r in link["references"] if self.store.exists(r)]
        if alive_refs != link["references"]:
            link["references"] = alive_refs
            changed = True

        if changed:
            self._save(span_id, link)
        return changed
