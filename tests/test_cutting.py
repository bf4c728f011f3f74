"""
test_cutting.py: 순간격 판정과 RebarCuttingAlgorithm (절단, 엇갈림, 단부 정착).

정척 11700 mm, 보 규칙: 상부 MidSpan / 하부 Support, 거더 규칙: 상부 QuarterSpan / 하부 Support.
"""

from dataclasses import replace

import pytest

from core.cutting import (BarSegment, CuttingResult, RebarCuttingAlgorithm, count_splices_from_records,
                          fits_in_width, max_bars_per_layer, required_clear_spacing,
                          span_infos_from_lengths, usable_width)
from core.exceptions import MaterialError
from core.topology.geometry import SupportType


@pytest.fixture
def cutter(settings):
    return RebarCuttingAlgorithm(settings)


class TestClearSpacing:

    def test_required_spacing_governed_by_minimum(self, settings):
        assert required_clear_spacing(settings.beam, 20) == pytest.approx(30)

    def test_required_spacing_governed_by_diameter(self, settings):
        assert required_clear_spacing(settings.beam, 32) == pytest.approx(32)

    def test_required_spacing_governed_by_aggregate(self, settings):
        coarse = replace(settings.beam, aggregate_size=25.0)
        assert required_clear_spacing(coarse, 20) == pytest.approx(33.25)

    def test_diameter_rule_disabled(self, settings):
        plain = replace(settings.beam, use_bar_diameter_for_spacing=False)
        assert required_clear_spacing(plain, 32) == pytest.approx(30)

    def test_usable_width_and_capacity(self, settings):
        assert usable_width(settings.beam, 300) == pytest.approx(230)
        assert max_bars_per_layer(settings.beam, 300, 20) == 5
        assert max_bars_per_layer(settings.beam, 60, 20) == 0

    def test_fits_in_width_uses_largest_diameter(self, settings):
        # 3D25 + 1D16: 91 + 3 x 30 = 181
        assert fits_in_width(settings.beam, 300, [(3, 25), (1, 16)])
        assert not fits_in_width(settings.beam, 300, [(3, 25), (2, 25)])
        assert fits_in_width(settings.beam, 300, [(0, 25)])


class TestAutoCut:

    def test_short_group_no_splices(self, cutter):
        """9000 mm (4500 x 2) ≤ 정척 → 한 본, 이음 0."""
        spans = span_infos_from_lengths([4500, 4500])
        result = cutter.auto_cut_bars(9000, spans, is_top_bar=True)
        assert len(result.segments) == 1
        assert result.splice_count == 0

    def test_long_group_split_within_stock(self, cutter):
        spans = span_infos_from_lengths([6000] * 5)
        result = cutter.auto_cut_bars(30000, spans, is_top_bar=True)
        assert result.splice_count == len(result.segments) - 1
        assert result.splice_count >= 2
        assert result.max_segment_length <= cutter.stock_length + 1e-6
        assert result.segments[-1].end_pos == pytest.approx(30000)

    def test_top_splice_in_midspan_zone(self, cutter):
        # 목표 10000은 허용 구간 밖, 가장 가까운 MidSpan 구간 경계 9900에서 50 안쪽으로
        spans = span_infos_from_lengths([6000] * 5)
        result = cutter.auto_cut_bars(30000, spans, is_top_bar=True, group_type="Beam")
        splice = result.segments[0].end_pos
        zones = cutter.build_allowed_zones(spans, "MidSpan", 0.25)
        assert splice == pytest.approx(9850)
        assert any(lo <= splice <= hi for lo, hi in zones)

    def test_bottom_splice_near_support(self, cutter):
        spans = span_infos_from_lengths([6000, 6000, 6000])
        result = cutter.auto_cut_bars(18000, spans, is_top_bar=False, group_type="Beam")
        assert result.splice_count == 1

    def test_zero_length(self, cutter):
        assert cutter.auto_cut_bars(0, [], is_top_bar=True).segments == []


class TestAllowedZones:

    def test_support_zones(self):
        spans = span_infos_from_lengths([4000, 8000])
        zones = RebarCuttingAlgorithm.build_allowed_zones(spans, "Support", 0.25)
        assert zones == [(0, 1000), (3000, 4000), (4000, 6000), (10000, 12000)]

    def test_quarter_span_zones(self):
        zones = RebarCuttingAlgorithm.build_allowed_zones(span_infos_from_lengths([4000]), "QuarterSpan", 0.25)
        assert zones == [(1000, 3000)]

    def test_mid_span_zones(self):
        zones = RebarCuttingAlgorithm.build_allowed_zones(span_infos_from_lengths([4000]), "MidSpan", 0.25)
        assert zones[0] == pytest.approx((1400, 2600))

    def test_snap_inside_zone(self, cutter):
        assert cutter.find_valid_splice_point(1500, [(1000, 3000)], 1170) == 1500

    def test_snap_to_nearest_boundary(self, cutter):
        assert cutter.find_valid_splice_point(3500, [(1000, 3000)], 1170) == 2950

    def test_out_of_search_range_keeps_target(self, cutter):
        assert cutter.find_valid_splice_point(5000, [(1000, 3000)], 1170) == 5000


class TestStaggerAndAnchorage:

    def test_odd_splices_staggered(self, cutter):
        spans = span_infos_from_lengths([6000] * 6)
        result = cutter.process_complete(36000, spans, True, "Beam", SupportType.COLUMN, SupportType.COLUMN, 20, 4)
        staggered = [s for s in result.segments if s.is_staggered]
        assert staggered
        assert all(s.bar_index % 2 == 1 for s in staggered)
        for seg in staggered:
            nxt = result.segments[seg.bar_index + 1]
            assert seg.splice_position <= nxt.end_pos - 200 + 1e-6

    def test_single_bar_not_staggered(self, cutter):
        spans = span_infos_from_lengths([6000] * 6)
        result = cutter.process_complete(36000, spans, True, "Beam", SupportType.COLUMN, SupportType.COLUMN, 20, 1)
        assert not any(s.is_staggered for s in result.segments)

    def test_hooks_at_column_and_wall(self, cutter):
        spans = span_infos_from_lengths([6000, 6000])
        result = cutter.process_complete(12000, spans, True, "Beam", SupportType.WALL, SupportType.BEAM, 20, 2)
        assert result.segments[0].hook_at_start
        assert result.segments[0].hook_angle == 90
        assert result.segments[0].hook_length == pytest.approx(240)
        assert not result.segments[-1].hook_at_end
        assert result.has_hooks

    def test_total_splices_scale_with_bars(self, cutter):
        spans = span_infos_from_lengths([6000, 6000, 6000])
        result = cutter.process_complete(18000, spans, True, "Girder", SupportType.COLUMN, SupportType.COLUMN, 20, 4)
        assert result.splice_count == 1
        assert result.total_splices == 4

    def test_unknown_grade_rejected(self, cutter):
        spans = span_infos_from_lengths([6000])
        with pytest.raises(MaterialError):
            cutter.process_complete(6000, spans, True, "Beam", SupportType.COLUMN, SupportType.COLUMN, 20, 2,
                                    concrete_grade="C99")


class TestCuttingRecords:

    def test_end_splices_are_not_counted(self):
        segments = [BarSegment(0, 6000, 0, splice_at_end=True, splice_position=6000),
                    BarSegment(6000, 12000, 1, splice_at_start=True, splice_at_end=True, splice_position=12000)]
        assert CuttingResult(12000, 2, segments).splice_count == 1

    def test_records_round_trip_count(self, cutter):
        spans = span_infos_from_lengths([6000, 6000, 6000])
        top = cutter.process_complete(18000, spans, True, "Beam", SupportType.COLUMN, SupportType.COLUMN, 20, 3)
        bot = cutter.process_complete(18000, spans, False, "Beam", SupportType.COLUMN, SupportType.COLUMN, 20, 2)
        records = [top.to_record(), bot.to_record()]
        assert count_splices_from_records(records) == top.total_splices + bot.total_splices
        assert CuttingResult.from_record(records[0]).segments == top.segments

    def test_empty_records(self):
        assert count_splices_from_records([]) == 0
        assert count_splices_from_records(None) == 0
