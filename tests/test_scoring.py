"""
test_scoring.py: ConstructabilityScorer 세부 점수와 이음 개수 산정 경로.
"""

from dataclasses import replace

import pytest

from core.cutting import BarSegment, CuttingResult
from core.exceptions import ConfigurationError
from core.pipeline.context import ContinuousBeamSolution, RebarSpec
from core.scoring import (ConstructabilityScorer, SPLICES_ESTIMATED, SPLICES_FROM_ALGORITHM,
                          SPLICES_FROM_SEGMENTS)
from core.settings.config import ScoringWeights
from core.topology.builder import TopologyBuilder
from core.topology.store import SEGMENTS_KEY
from interface.project import add_straight_beam, empty_project


def _solution(**overrides):
    data = dict(option_name="3D20", backbone_diameter_top=20, backbone_diameter_bot=20,
                backbone_count_top=3, backbone_count_bot=3)
    data.update(overrides)
    return ContinuousBeamSolution(**data)


def _group(settings, lengths):
    project = empty_project(settings)
    add_straight_beam(project, lengths, 300, 600, 1200, 900)
    return project.store, TopologyBuilder(project.store, settings).build_groups(project.store.span_ids())[0]


class TestSpliceSources:

    def test_short_group_from_algorithm(self, settings):
        _, group = _group(settings, [4500, 4500])
        splices, source = ConstructabilityScorer(settings).count_splices(_solution(), group)
        assert (splices, source) == (0, SPLICES_FROM_ALGORITHM)

    def test_long_group_from_algorithm(self, settings, design_inputs):
        group, _ = design_inputs
        splices, source = ConstructabilityScorer(settings).count_splices(_solution(), group)
        assert (splices, source) == (6, SPLICES_FROM_ALGORITHM)

    def test_stored_segments_used_for_same_option(self, settings):
        store, group = _group(settings, [6000, 6000, 6000])
        layer = CuttingResult(18000, 3, [BarSegment(0, 9000, 0, splice_at_end=True, splice_position=9000),
                                         BarSegment(9000, 18000, 1, splice_at_start=True)])
        store.write_record(group.mother_id, SEGMENTS_KEY,
                           {"option_name": "3D20", "layers": [layer.to_record(), layer.to_record()]})
        splices, source = ConstructabilityScorer(settings, store).count_splices(_solution(), group)
        assert (splices, source) == (6, SPLICES_FROM_SEGMENTS)

    def test_stored_segments_ignored_for_other_option(self, settings):
        store, group = _group(settings, [4500, 4500])
        store.write_record(group.mother_id, SEGMENTS_KEY, {"option_name": "4D22", "layers": []})
        _, source = ConstructabilityScorer(settings, store).count_splices(_solution(), group)
        assert source == SPLICES_FROM_ALGORITHM

    def test_estimate_from_stock_length(self, settings):
        # 25000 / 11700 → 3본, 줄당 이음 2 x 6줄
        assert ConstructabilityScorer(settings)._splices_estimate(_solution(), 25000) == 12
        assert ConstructabilityScorer(settings)._splices_estimate(_solution(), 0) == 0

    def test_estimate_when_algorithm_fails(self, settings, design_inputs):
        group, _ = design_inputs
        bad_span = replace(group.spans[0].span, concrete_grade="C99")
        broken = replace(group, spans=(replace(group.spans[0], span=bad_span),) + group.spans[1:])
        splices, source = ConstructabilityScorer(settings).count_splices(_solution(), broken)
        assert (splices, source) == (6, SPLICES_ESTIMATED)


class TestComponentScores:

    def test_diversity(self):
        assert ConstructabilityScorer.diversity_score(_solution()) == 1.0
        assert ConstructabilityScorer.diversity_score(_solution(backbone_diameter_bot=22)) == 0.5

    @pytest.mark.parametrize("layer, expected", [(1, 1.0), (2, 0.8), (3, 0.5), (4, 0.3)])
    def test_layering(self, layer, expected):
        sol = _solution(reinforcements={"S1_Top_Left": RebarSpec(20, 2, "Top", layer)})
        assert ConstructabilityScorer.layering_score(sol) == expected

    def test_spacing_full_when_clear(self, settings):
        assert ConstructabilityScorer(settings).spacing_score(_solution(), 300) == 1.0

    def test_spacing_squared_ratio(self, settings):
        # 5D25: (230 - 125) / 4 = 26.25, 요구 30 → 0.875²
        sol = _solution(backbone_diameter_top=25, backbone_count_top=5)
        assert ConstructabilityScorer(settings).spacing_score(sol, 300) == pytest.approx(0.875 ** 2)

    def test_cuts(self, settings):
        scorer = ConstructabilityScorer(settings)
        assert scorer.cuts_score(_solution(), 0) == 1.0
        assert scorer.cuts_score(_solution(), 3) == pytest.approx(0.5)
        assert scorer.cuts_score(_solution(), 60) == 0.0


class TestScore:

    def test_total_in_range(self, settings, design_inputs):
        group, _ = design_inputs
        score = ConstructabilityScorer(settings).score(_solution(), group)
        # 이음 6 / 철근 6 → cuts 0, 나머지 만점
        assert score.cuts == 0.0
        assert score.total == pytest.approx(65.0)
        assert 0.0 <= score.total <= 100.0

    def test_weights_change_total(self, settings):
        _, group = _group(settings, [4500, 4500])
        fast = settings.with_scoring_preset("fast_construction")
        assert ConstructabilityScorer(fast).score(_solution(), group).total == pytest.approx(100.0)

    def test_invalid_solution_scores_zero(self, settings, design_inputs):
        group, _ = design_inputs
        score = ConstructabilityScorer(settings).score(_solution(is_valid=False), group)
        assert (score.total, score.cuts, score.diversity, score.spacing, score.layering) == (0, 0, 0, 0, 0)

    def test_bad_weights(self, settings, design_inputs):
        group, _ = design_inputs
        bad = replace(settings, scoring=ScoringWeights(cuts=0.9))
        with pytest.raises(ConfigurationError):
            ConstructabilityScorer(bad).score(_solution(), group)

    def test_scorer_does_not_modify_solution(self, settings, design_inputs):
        group, _ = design_inputs
        sol = _solution()
        ConstructabilityScorer(settings).score(sol, group)
        assert sol == _solution()

    def test_report(self, settings, design_inputs):
        group, _ = design_inputs
        report = ConstructabilityScorer(settings).generate_report(_solution(), group)
        assert report.startswith("=== CONSTRUCTABILITY REPORT ===")
        assert "Option: 3D20" in report
        assert "Cuts/Splices (35%)" in report
        assert "6 splices, algorithm" in report
