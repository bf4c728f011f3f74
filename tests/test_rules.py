"""
test_rules.py: 설계 규칙(간격, 수직 정렬, 낭비, 철근량 부족)과 RuleEngine.
"""

import pytest

from core.pipeline.context import RebarSpec, Severity, ValidationResult
from core.pipeline.filler import ReinforcementFiller
from core.pipeline.rules import (DesignRule, RuleEngine, SpacingRule, SteelDeficitRule,
                                 VerticalAlignmentRule, WastePenaltyRule, DEFAULT_RULES)
from core.pipeline.scenario_generator import ScenarioGenerator


@pytest.fixture
def make_ctx(settings, design_inputs):
    group, results = design_inputs
    base = ScenarioGenerator(settings).create_base_context(group, results)

    def _make(top=(20, 3), bot=(20, 3), filled=False):
        ctx = base.clone()
        ctx.top_diameter, ctx.top_count = top
        ctx.bot_diameter, ctx.bot_count = bot
        ctx.scenario_id = "rule-test"
        if filled:
            ReinforcementFiller().execute(ctx)
        return ctx
    return _make


class TestVerticalAlignmentRule:

    def test_same_parity_passes(self, make_ctx):
        assert VerticalAlignmentRule().evaluate(make_ctx(top=(20, 4), bot=(20, 4))).severity == Severity.PASS

    def test_parity_mismatch_penalty(self, make_ctx, settings):
        result = VerticalAlignmentRule().evaluate(make_ctx(top=(20, 3), bot=(20, 4)))
        assert result.severity == Severity.WARNING
        assert result.penalty == pytest.approx(settings.beam.alignment_penalty)

    def test_large_difference_adds_to_parity_penalty(self, make_ctx):
        # 홀짝 불일치 25 + (3 - 2) x 5
        result = VerticalAlignmentRule().evaluate(make_ctx(top=(20, 2), bot=(20, 5)))
        assert result.penalty == pytest.approx(30)

    def test_difference_only(self, make_ctx):
        result = VerticalAlignmentRule().evaluate(make_ctx(top=(20, 2), bot=(20, 6)))
        assert result.penalty == pytest.approx(10)


class TestSpacingRule:

    def test_backbone_fits(self, make_ctx):
        assert SpacingRule().evaluate(make_ctx(filled=True)).severity == Severity.PASS

    def test_backbone_too_many(self, make_ctx):
        result = SpacingRule().evaluate(make_ctx(top=(25, 6)))
        assert result.severity == Severity.CRITICAL
        assert "Top backbone" in result.message

    def test_layer_one_overflow(self, make_ctx):
        ctx = make_ctx()
        ctx.reinforcements["S1_Top_Left"] = RebarSpec(20, 4, "Top", 1, (7,))
        assert SpacingRule().evaluate(ctx).severity == Severity.CRITICAL

    def test_too_many_layers(self, make_ctx):
        ctx = make_ctx()
        ctx.reinforcements["S1_Bot_Mid"] = RebarSpec(20, 5, "Bot", 3, (3, 3, 2))
        assert SpacingRule().evaluate(ctx).severity == Severity.CRITICAL


class TestWastePenaltyRule:

    def test_no_waste(self, make_ctx):
        assert WastePenaltyRule().evaluate(make_ctx()).severity == Severity.PASS

    def test_waste_penalty(self, make_ctx, settings):
        ctx = make_ctx()
        ctx.waste_count = 2
        result = WastePenaltyRule().evaluate(ctx)
        assert result.penalty == pytest.approx(2 * settings.beam.waste_penalty_per_bar)


class TestSteelDeficitRule:

    def test_designed_context_passes(self, make_ctx):
        assert SteelDeficitRule().evaluate(make_ctx(filled=True)).severity == Severity.PASS

    def test_missing_addon_is_critical(self, make_ctx):
        ctx = make_ctx(filled=True)
        ctx.reinforcements = {}
        result = SteelDeficitRule().evaluate(ctx)
        assert result.severity == Severity.CRITICAL
        assert "S1 Top zone 0" in result.message

    def test_full_length_addon_counts_in_every_zone(self, make_ctx):
        ctx = make_ctx(filled=True)
        ctx.reinforcements = {f"S{i}_Top_Full": RebarSpec(20, 1, "Top", 1, (4,), True) for i in (1, 2, 3)}
        assert SteelDeficitRule().evaluate(ctx).severity == Severity.PASS

    def test_tolerance(self, make_ctx):
        """98% 이상이면 통과 (3D20 = 942.6 ≥ 0.98 x 960)."""
        ctx = make_ctx()
        results = tuple(r.__class__(r.span_id, (960, 0, 960), (0, 900, 0)) for r in ctx.span_results)
        ctx.span_results = results
        assert SteelDeficitRule().evaluate(ctx).severity == Severity.PASS


class TestRuleEngine:

    def test_rules_sorted_by_priority(self):
        engine = RuleEngine()
        priorities = [r.priority for r in engine.rules]
        assert priorities == sorted(priorities)
        assert len(engine.rules) == len(DEFAULT_RULES)

    def test_critical_short_circuits(self, make_ctx):
        ctx = make_ctx(top=(25, 6), bot=(20, 3))
        RuleEngine().execute(ctx)
        assert not ctx.is_valid
        assert [r.rule_name for r in ctx.validation_results] == ["Spacing"]

    def test_warnings_accumulate(self, make_ctx):
        ctx = make_ctx(top=(20, 3), bot=(20, 4), filled=True)
        ctx.waste_count = 1
        RuleEngine().execute(ctx)
        assert ctx.is_valid
        assert ctx.total_penalty == pytest.approx(25 + 20)

    def test_custom_rule(self, make_ctx):
        class RejectAll(DesignRule):
            name = "RejectAll"
            priority = 1

            def evaluate(self, ctx):
                return ValidationResult.critical(self.name, "no")

        engine = RuleEngine()
        engine.add_rule(RejectAll())
        ctx = make_ctx(filled=True)
        engine.execute(ctx)
        assert ctx.fail_stage == "RejectAll"
        assert len(ctx.validation_results) == 1

    def test_invalid_context_skipped(self, make_ctx):
        ctx = make_ctx()
        ctx.fail("Earlier", "stop")
        RuleEngine().execute(ctx)
        assert ctx.validation_results == []
