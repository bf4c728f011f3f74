"""
test_registry.py: GroupRegistry 조회/쓰기와 RegistryHealer 자가 치유 시나리오.

치유 시나리오:
  - 첫 설계: 새 id 발급
  - 반복 치유: 변화 없음 (멱등)
  - 멤버 삭제: 유령 제거
  - 레지스트리 유실(실행 취소 등): 같은 id로 부활
  - 그룹 전체 복사 / 스팬 하나 복사: 복사본에 새 id, 원본은 그대로
  - 새 스팬 연결: 편입(adopt)
"""

import pytest

from core.topology.links import LinkRules
from core.topology.registry import GroupRegistry, RegistryHealer
from core.topology.store import GROUP_KEY, GROUP_REGISTRY_KEY, InMemoryDrawingStore


@pytest.fixture
def registry(store):
    return GroupRegistry(store)


@pytest.fixture
def healer(store, registry):
    return RegistryHealer(store, registry)


@pytest.fixture
def line(add_span):
    return [add_span(0, 5000), add_span(5000, 10000), add_span(10000, 15000)]


def _group_of(groups, span_id):
    return next(g for g in groups if span_id in g.member_ids)


class TestGroupRegistry:

    def test_register_and_roles(self, builder, registry, line):
        group = builder.build_groups(line)[0]
        group_id = registry.register(group)
        assert registry.group_id_exists(group_id)
        assert registry.get_members(group_id) == group.member_ids
        assert registry.get_role(group.mother_id) == "Mother"
        assert registry.get_role(group.member_ids[1]) == "Child"
        assert registry.get_role("UNKNOWN") == "None"
        assert registry.read_span_group_id(group.member_ids[2]) == group_id
        assert registry.get_entry(group_id)["name"] == group.name

    def test_elect_new_mother(self, store, builder, registry, line):
        group = builder.build_groups(line)[0]
        group_id = registry.register(group)
        store.erase_span(group.mother_id)
        assert registry.elect_new_mother(group_id) == group.member_ids[1]
        assert registry.get_members(group_id) == group.member_ids[1:]

    def test_elect_new_mother_without_survivors(self, store, builder, registry, line):
        group = builder.build_groups(line)[0]
        group_id = registry.register(group)
        for sid in line:
            store.erase_span(sid)
        assert registry.elect_new_mother(group_id) is None
        assert not registry.group_id_exists(group_id)

    def test_cleanup_invalid_entries(self, store, builder, registry, line, add_span):
        group = builder.build_groups(line)[0]
        kept = registry.register(group)
        lonely = add_span(0, 5000, y=9000)
        gone = registry.register(builder.build_groups([lonely])[0])
        store.erase_span(line[2])
        store.erase_span(lonely)
        assert registry.cleanup_invalid_entries() == 2
        assert registry.get_members(kept) == line[:2]
        assert not registry.group_id_exists(gone)

    def test_add_remove_member(self, builder, registry, line):
        group = builder.build_groups(line[:2])[0]
        group_id = registry.register(group)
        registry.add_member(group_id, line[2])
        assert registry.get_members(group_id) == line
        registry.remove_member(group_id, line[0])
        assert registry.get_members(group_id) == line[1:]

    def test_unregister_clears_span_tags(self, store, builder, registry, line):
        group_id = registry.register(builder.build_groups(line)[0])
        registry.unregister(group_id)
        assert store.read_record(line[0], GROUP_KEY) is None

    def test_dump(self, builder, registry, line):
        assert registry.dump() == "(empty registry)"
        group_id = registry.register(builder.build_groups(line)[0])
        assert group_id in registry.dump()


class TestRegistryHealer:

    def test_first_heal_mints_id(self, builder, healer, registry, line):
        group = builder.build_groups(line)[0]
        report = healer.heal(group)
        assert report.minted
        assert report.members == group.member_ids
        assert registry.get_members(report.group_id) == group.member_ids

    def test_heal_is_idempotent(self, builder, healer, registry, line):
        group = builder.build_groups(line)[0]
        first = healer.heal(group)
        snapshot = registry.all_groups()[first.group_id]["members"]
        second = healer.heal(builder.build_groups(line)[0])
        assert second.group_id == first.group_id
        assert not second.changed
        assert registry.get_members(second.group_id) == snapshot

    def test_deleted_member_purged_as_ghost(self, store, builder, healer, registry, line):
        group_id = healer.heal(builder.build_groups(line)[0]).group_id
        store.erase_span(line[2])
        report = healer.heal(builder.build_groups(line[:2])[0])
        assert report.group_id == group_id
        assert report.ghosts_purged == [line[2]]
        assert registry.get_members(group_id) == line[:2]

    def test_lost_registry_resurrected_with_same_id(self, store, builder, healer, registry, line):
        group_id = healer.heal(builder.build_groups(line)[0]).group_id
        store.write_global(GROUP_REGISTRY_KEY, {})
        report = healer.heal(builder.build_groups(line)[0])
        assert report.resurrected
        assert report.group_id == group_id
        assert registry.get_members(group_id) == line

    def test_all_members_ghosts_resurrects_same_id(self, store, builder, healer, registry, line):
        """레지스트리 멤버가 모두 사라졌지만 새 스팬이 같은 id를 가진 경우 (실행 취소 후 재생성)."""
        group_id = healer.heal(builder.build_groups(line)[0]).group_id
        registry.update_members(group_id, ["GHOST-1", "GHOST-2"])
        report = healer.heal(builder.build_groups(line)[0])
        assert report.group_id == group_id
        assert report.resurrected
        assert report.ghosts_purged == ["GHOST-1", "GHOST-2"]
        assert registry.get_members(group_id) == line

    def test_whole_group_copy_gets_new_id(self, store, builder, healer, registry, line):
        original_id = healer.heal(builder.build_groups(line)[0]).group_id
        copies = [store.copy_span(sid, dy=8000) for sid in line]

        groups = builder.build_groups(line + copies)
        assert len(groups) == 2
        original = healer.heal(_group_of(groups, line[0]))
        copied = healer.heal(_group_of(groups, copies[0]))

        assert original.group_id == original_id
        assert not original.changed
        assert copied.minted
        assert copied.group_id != original_id
        assert registry.get_members(original_id) == line
        assert registry.get_members(copied.group_id) == copies
        assert all(registry.read_span_group_id(sid) == copied.group_id for sid in copies)

    def test_single_span_copy_gets_new_id(self, store, builder, healer, registry, line):
        original_id = healer.heal(builder.build_groups(line)[0]).group_id
        copy_id = store.copy_span(line[1], dy=8000)
        groups = builder.build_groups(line + [copy_id])
        report = healer.heal(_group_of(groups, copy_id))
        assert report.group_id != original_id
        assert report.members == [copy_id]
        assert registry.get_members(original_id) == line

    def test_partial_copy_split_into_new_id(self, store, builder, healer, registry, line):
        """원래 그룹에 링크된 복사본 하나: 원본 항목은 그대로, 복사본만 새 id로 분리."""
        original_id = healer.heal(builder.build_groups(line)[0]).group_id
        entry = registry.get_entry(original_id)
        copy_id = store.copy_span(line[2], dy=8000)
        links = LinkRules(store)
        links.clear_links(copy_id)
        links.register_link(copy_id, line[0])

        group = builder.build_groups(line)[0]
        assert copy_id in group.member_ids
        report = healer.heal(group)

        assert report.group_id == original_id
        assert report.members == line
        assert report.split_members == [copy_id]
        assert report.split_group_id not in (None, original_id)
        assert registry.get_entry(original_id) == entry
        assert registry.get_members(report.split_group_id) == [copy_id]
        assert registry.read_span_group_id(copy_id) == report.split_group_id
        assert all(registry.read_span_group_id(sid) == original_id for sid in line)

    def test_partial_copy_detached_from_original(self, store, builder, healer, registry, line):
        original_id = healer.heal(builder.build_groups(line)[0]).group_id
        copy_id = store.copy_span(line[2], dy=8000)
        links = LinkRules(store)
        links.clear_links(copy_id)
        links.register_link(copy_id, line[0])
        split_id = healer.heal(builder.build_groups(line)[0]).split_group_id

        assert links.get_parent(copy_id) is None
        assert copy_id not in links.get_children(line[0])
        groups = builder.build_groups(line + [copy_id])
        assert _group_of(groups, line[0]).member_ids == line
        again = healer.heal(_group_of(groups, line[0]))
        copied = healer.heal(_group_of(groups, copy_id))
        assert (again.group_id, again.changed) == (original_id, False)
        assert (copied.group_id, copied.changed) == (split_id, False)

    def test_linked_newcomer_adopted(self, store, builder, healer, registry, line, add_span):
        group_id = healer.heal(builder.build_groups(line)[0]).group_id
        extra = add_span(15000, 20000)
        LinkRules(store).register_link(extra, line[0])
        report = healer.heal(builder.build_groups(line)[0])
        assert report.group_id == group_id
        assert report.adopted == [extra]
        assert registry.get_members(group_id) == line + [extra]
        assert registry.read_span_group_id(extra) == group_id

    def test_heal_never_raises(self, builder, line):
        class BrokenStore(InMemoryDrawingStore):
            def read_global(self, key):
                raise RuntimeError("storage offline")

        broken = BrokenStore()
        group = builder.build_groups(line)[0]
        report = RegistryHealer(broken).heal(group)
        assert report.degraded
        assert report.minted
        assert report.group_id.startswith("GRP-")
