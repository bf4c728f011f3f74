# core/topology/registry.py

"""
이 모듈은 그룹 식별자 레지스트리(GroupRegistry)와 자가 치유기(RegistryHealer)를 제공합니다.

레지스트리는 도면 저장소의 전역 사전(BEAM_GROUPS)에 저장되며,
그룹 id → 순서가 있는 멤버 스팬 id 목록을 보관합니다. 각 스팬은 자신의 GROUP_IDENTITY
레코드에 소속 그룹 id를 가집니다. 두 정보는 사용자 편집(삭제, 복사, 실행 취소)으로
어긋날 수 있으며, 설계를 위해 그룹을 불러올 때마다 지연(lazy) 치유합니다.

    - 유령(ghost): 레지스트리에는 있으나 도면에서 사라진 멤버 → 레지스트리에서만 제거
    - 복제(duplicate): 그룹 id를 가지고 있으나 레지스트리에 없는 스팬(복사본) → 새 id 부여
      (그룹 일부만 복제본이면 복제본을 새 id로 분리하고 원래 그룹과의 주 링크를 끊습니다)

레지스트리 쓰기는 호출자가 제공하는 트랜잭션 범위 안에서 수행되어야 합니다.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from core.topology.group import BeamGroup
from core.topology.links import LinkRules
from core.topology.store import DrawingStore, GROUP_KEY, GROUP_REGISTRY_KEY

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class GroupRegistry:
    """그룹 id ↔ 멤버 목록의 영속 연관."""
    def __init__(self, store: DrawingStore):
        self.store = store

    # --- 저장소 입출력 ---
    def _load(self) -> Dict[str, Dict]:
        data = self.store.read_global(GROUP_REGISTRY_KEY)
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Dict]):
        self.store.write_global(GROUP_REGISTRY_KEY, data)

    @staticmethod
    def mint_id() -> str:
        return f"GRP-{uuid.uuid4().hex[:12].upper()}"

    # --- 조회 ---
    def group_id_exists(self, group_id: Optional[str]) -> bool:
        return bool(group_id) and group_id in self._load()

    def get_members(self, group_id: str) -> List[str]:
        entry = self._load().get(group_id)
        return list(entry.get("members", [])) if entry else []

    def get_entry(self, group_id: str) -> Optional[Dict]:
        return self._load().get(group_id)

    def all_groups(self) -> Dict[str, Dict]:
        return self._load()

    def find_group_by_member(self, span_id: str) -> Optional[str]:
        for group_id, entry in self._load().items():
            if span_id in entry.get("members", []):
                return group_id
        return None

    def get_role(self, span_id: str) -> str:
        """'Mother', 'Child', 'None' 중 하나를 반환합니다."""
        group_id = self.find_group_by_member(span_id)
        if group_id is None:
            return "None"
        members = self.get_members(group_id)
        return "Mother" if members and members[0] == span_id else "Child"

    def read_span_group_id(self, span_id: str) -> Optional[str]:
        record = self.store.read_record(span_id, GROUP_KEY) or {}
        return record.get("group_id") or None

    # --- 쓰기 ---
    def resurrect(self, group_id: str, member_ids: List[str], group: Optional[BeamGroup] = None):
        """레지스트리 항목을 (재)생성하고 살아있는 멤버에 그룹 id를 기록합니다."""
        data = self._load()
        entry = data.get(group_id, {"created_at": _now()})
        entry["members"] = list(dict.fromkeys(member_ids))
        entry["modified_at"] = _now()
        if group is not None:
            entry.update({
                "name": group.name,
                "group_type": group.group_type,
                "direction": group.direction,
                "axis_name": group.axis_name,
                "level_z": group.level_z,
                "width": group.width,
                "height": group.height,
            })
        data[group_id] = entry
        self._save(data)
        for sid in entry["members"]:
            self._tag_span(sid, group_id)

    def update_members(self, group_id: str, alive_ids: List[str]):
        """멤버 목록을 교체합니다. 항목이 없으면 새로 만듭니다."""
        data = self._load()
        if group_id not in data:
            self.resurrect(group_id, alive_ids)
            return
        data[group_id]["members"] = list(dict.fromkeys(alive_ids))
        data[group_id]["modified_at"] = _now()
        self._save(data)

    def register(self, group: BeamGroup) -> str:
        """새 id를 발급하여 그룹을 등록합니다."""
        group_id = self.mint_id()
        self.resurrect(group_id, group.member_ids, group)
        return group_id

    def add_member(self, group_id: str, span_id: str):
        members = self.get_members(group_id)
        if span_id not in members:
            members.append(span_id)
            self.update_members(group_id, members)
        self._tag_span(span_id, group_id)

    def remove_member(self, group_id: str, span_id: str):
        members = self.get_members(group_id)
        if span_id in members:
            members.remove(span_id)
            self.update_members(group_id, members)

    def unregister(self, group_id: str):
        data = self._load()
        entry = data.pop(group_id, None)
        if entry is None:
            return
        self._save(data)
        for sid in entry.get("members", []):
            if self.store.exists(sid) and self.read_span_group_id(sid) == group_id:
                self.store.delete_record(sid, GROUP_KEY)

    def elect_new_mother(self, group_id: str) -> Optional[str]:
        """
        살아있는 첫 멤버를 새 모 스팬으로 앞에 세웁니다.
        살아있는 멤버가 없으면 그룹을 해제하고 None을 반환합니다.
        """
        alive = [sid for sid in self.get_members(group_id) if self.store.exists(sid)]
        if not alive:
            self.unregister(group_id)
            return None
        self.update_members(group_id, alive)
        return alive[0]

    def cleanup_invalid_entries(self) -> int:
        """모든 항목에서 죽은 멤버를 제거하고, 빈 항목은 삭제합니다. 정리한 항목 수를 반환합니다."""
        cleaned = 0
        for group_id, entry in self._load().items():
            members = entry.get("members", [])
            alive = [sid for sid in members if self.store.exists(sid)]
            if alive == members:
                continue
            cleaned += 1
            if alive:
                self.update_members(group_id, alive)
            else:
                self.unregister(group_id)
        return cleaned

    def dump(self) -> str:
        lines = []
        for group_id, entry in sorted(self._load().items()):
            members = entry.get("members", [])
            alive = sum(1 for sid in members if self.store.exists(sid))
            lines.append(f"{group_id} [{entry.get('name', '?')}/{entry.get('group_type', '?')}] "
                         f"members={len(members)} alive={alive}: {', '.join(members)}")
        return "\n".join(lines) if lines else "(empty registry)"

    def _tag_span(self, span_id: str, group_id: str):
        if self.store.exists(span_id):
            self.store.write_record(span_id, GROUP_KEY, {"group_id": group_id})


@dataclass
class HealReport:
    """치유 결과. members는 group_id에 속하는 현재 위상 순서의 멤버입니다."""
    group_id: str
    members: List[str]
    minted: bool = False
    resurrected: bool = False
    ghosts_purged: List[str] = field(default_factory=list)
    adopted: List[str] = field(default_factory=list)
    split_group_id: Optional[str] = None
    split_members: List[str] = field(default_factory=list)
    degraded: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.minted or self.resurrected or self.ghosts_purged or self.adopted or self.split_members)


class RegistryHealer:
    """설계 직전에 그룹 하나의 레지스트리 정합성을 복구합니다. 예외를 전파하지 않습니다."""
    def __init__(self, store: DrawingStore, registry: Optional[GroupRegistry] = None):
        self.store = store
        self.registry = registry or GroupRegistry(store)

    def heal(self, group: BeamGroup) -> HealReport:
        try:
            return self._heal(group)
        except Exception:
            logger.exception("Registry healing failed for '%s'; treating as a new group.", group.name)
            return self._degrade(group)

    def _heal(self, group: BeamGroup) -> HealReport:
        registry = self.registry
        members = [sid for sid in group.member_ids if self.store.exists(sid)]
        carried = {sid: registry.read_span_group_id(sid) for sid in members}
        group_id = self._pick_identifier(group, carried)

        # 1. 식별자 없음 → 새로 발급
        if group_id is None:
            new_id = registry.mint_id()
            registry.resurrect(new_id, members, group)
            logger.info("Minted group id %s for %s.", new_id, group.name)
            return HealReport(group_id=new_id, members=members, minted=True)

        # 2. 스팬에는 id가 있으나 레지스트리 항목이 없음 → 현재 위상으로 부활
        if not registry.group_id_exists(group_id):
            owned = [sid for sid in members if carried[sid] in (group_id, None)]
            registry.resurrect(group_id, owned, group)
            logger.info("Resurrected registry entry %s for %s.", group_id, group.name)
            return HealReport(group_id=group_id, members=owned, resurrected=True)

        # 3. 유령 멤버 제거 (레지스트리 쪽만)
        registered = registry.get_members(group_id)
        alive_registered = [sid for sid in registered if self.store.exists(sid)]
        ghosts = [sid for sid in registered if sid not in alive_registered]
        if ghosts:
            logger.info("Purged %d ghost member(s) from %s.", len(ghosts), group_id)
            if not alive_registered:
                # 항목이 비었으면 현재 위상으로 다시 세웁니다.
                owned = [sid for sid in members if carried[sid] in (group_id, None)]
                registry.resurrect(group_id, owned, group)
                return HealReport(group_id=group_id, members=owned, resurrected=True, ghosts_purged=ghosts)
            registry.update_members(group_id, alive_registered)

        registered_set = set(alive_registered)
        duplicates = [sid for sid in members if carried[sid] == group_id and sid not in registered_set]
        newcomers = [sid for sid in members if carried[sid] is None and sid not in registered_set]

        # 4. 복제본 처리
        if duplicates and not any(sid in registered_set for sid in members):
            new_id = registry.mint_id()
            registry.resurrect(new_id, members, group)
            logger.info("Group %s is a copy of %s; assigned new id %s.", group.name, group_id, new_id)
            return HealReport(group_id=new_id, members=members, minted=True, ghosts_purged=ghosts)

        report = HealReport(group_id=group_id, members=[], ghosts_purged=ghosts)
        if duplicates:
            split_id = registry.mint_id()
            registry.resurrect(split_id, duplicates, group)
            self._detach(duplicates, members)
            report.split_group_id = split_id
            report.split_members = duplicates
            logger.info("Split %d duplicate span(s) of %s into %s.", len(duplicates), group_id, split_id)

        if newcomers:
            ordered = [sid for sid in members if sid in registered_set or sid in newcomers]
            ordered += [sid for sid in alive_registered if sid not in ordered]
            registry.update_members(group_id, ordered)
            for sid in newcomers:
                registry.add_member(group_id, sid)
            report.adopted = newcomers

        current = set(registry.get_members(group_id))
        report.members = [sid for sid in members if sid in current]
        return report

    @staticmethod
    def _pick_identifier(group: BeamGroup, carried: Dict[str, Optional[str]]) -> Optional[str]:
        """모 스팬의 id를 우선하고, 없으면 멤버들이 가장 많이 가진 id를 사용합니다."""
        mother = group.mother_id
        if mother and carried.get(mother):
            return carried[mother]
        counts = Counter(gid for gid in carried.values() if gid)
        if not counts:
            return None
        best = max(counts.values())
        return sorted(gid for gid, n in counts.items() if n == best)[0]

    def _detach(self, duplicates: List[str], members: List[str]):
        """분리된 복제본과 원래 그룹 사이의 주 링크를 끊습니다. 복제본끼리의 링크는 유지합니다."""
        links = LinkRules(self.store)
        split = set(duplicates)
        for sid in members:
            parent = links.get_parent(sid)
            if parent and (sid in split) != (parent in split):
                links.unregister_link(sid, parent)

    def _degrade(self, group: BeamGroup) -> HealReport:
        members = list(group.member_ids)
        new_id = GroupRegistry.mint_id()
        try:
            self.registry.resurrect(new_id, [sid for sid in members if self.store.exists(sid)], group)
        except Exception:
            logger.exception("Could not register fallback group id %s.", new_id)
        return HealReport(group_id=new_id, members=members, minted=True, degraded=True)
