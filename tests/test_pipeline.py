"""
test_pipeline.py: RebarPipeline 단계 순서, 순위, 병렬 평가, 최선 노력 안.
"""

from dataclasses import replace

import pytest

from core.exceptions import ConfigurationError, ExternalDataMissingError
from core.analysis import InMemoryAnalysisSource
from core.pipeline.context import ExternalConstraints
from core.pipeline.pipeline import RebarPipeline, collect_span_results
from core.settings.config import ScoringWeights
from core.topology.builder import TopologyBuilder
from interface.project import add_straight_beam, empty_project


def _single_group(settings, lengths, top, bot):
    project = empty_project(settings)
    add_straight_beam(project, lengths, 300, 600, top, bot)
    group = TopologyBuilder(project.store, settings).build_groups(project.store.span_ids())[0]
    return group, collect_span_results(group, project.analysis)


class TestRanking:

    def test_solutions_sorted_and_limited(self, settings, design_inputs):
        result = RebarPipeline(settings).execute(*design_inputs)
        assert result.has_solution
        scores = [s.total_score for s in result.solutions]
        assert scores == sorted(scores, reverse=True)
        assert len(result.solutions) <= settings.beam.max_proposals
        assert result.best is result.solutions[0]

    def test_option_names_unique(self, settings, design_inputs):
        result = RebarPipeline(settings).execute(*design_inputs)
        names = [s.option_name for s in result.solutions]
        assert len(names) == len(set(names))

    def test_solutions_are_scored(self, settings, design_inputs):
        for sol in RebarPipeline(settings).execute(*design_inputs).solutions:
            assert sol.is_valid
            assert 0.0 <= sol.constructability_score <= 100.0
            assert sol.total_steel_weight > 0

    def test_max_proposals_setting(self, settings, design_inputs):
        limited = replace(settings, beam=replace(settings.beam, max_proposals=2))
        assert len(RebarPipeline(limited).execute(*design_inputs).solutions) <= 2

    def test_parallel_matches_sequential(self, settings, design_inputs):
        sequential = RebarPipeline(settings).execute(*design_inputs)
        parallel = RebarPipeline(settings, max_workers=4).execute(*design_inputs)
        assert [s.option_name for s in parallel.solutions] == [s.option_name for s in sequential.solutions]
        assert [s.total_score for s in parallel.solutions] == pytest.approx(
            [s.total_score for s in sequential.solutions])

    def test_forced_scenario(self, settings, design_inputs):
        constraints = ExternalConstraints(forced_backbone_diameter=20, forced_top_count=3, forced_bot_count=3)
        result = RebarPipeline(settings).execute(*design_inputs, constraints=constraints)
        assert [s.option_name for s in result.solutions] == ["3D20"]


class TestFailures:

    def test_bad_weights_rejected_before_scoring(self, settings, design_inputs):
        bad = replace(settings, scoring=ScoringWeights(0.5, 0.5, 0.5, 0.5))
        with pytest.raises(ConfigurationError):
            RebarPipeline(bad).execute(*design_inputs)

    def test_no_diameters(self, settings, design_inputs):
        result = RebarPipeline(settings).execute(*design_inputs, global_diameters=[40])
        assert not result.has_solution
        assert result.best_effort is None
        assert result.rejected[0].fail_stage == "Sanitize"

    def test_best_effort_when_nothing_fits(self, settings):
        group, results = _single_group(settings, [6000], 1200, 20000)
        result = RebarPipeline(settings).execute(group, results)
        assert not result.has_solution
        assert result.rejected
        assert result.best_effort is not None
        assert not result.best_effort.is_valid
        assert result.best_effort.validation_message.startswith("[")

    def test_missing_analysis(self, settings, builder, add_span):
        sid = add_span(0, 6000)
        group = builder.build_groups([sid])[0]
        with pytest.raises(ExternalDataMissingError):
            collect_span_results(group, InMemoryAnalysisSource())


class TestSpliceCounting:

    def test_short_group_has_no_splices(self, settings):
        group, results = _single_group(settings, [4500, 4500], 1200, 900)
        for sol in RebarPipeline(settings).execute(group, results).solutions:
            assert sol.splice_count == 0

    def test_long_group_one_splice_per_bar_line(self, settings, design_inputs):
        for sol in RebarPipeline(settings).execute(*design_inputs).solutions:
            assert sol.splice_count == sol.backbone_count_top + sol.backbone_count_bot
