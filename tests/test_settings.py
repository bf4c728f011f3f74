"""
test_settings.py: 설정 검증, 프리셋, JSON 직렬화, 재료 카탈로그.
"""

from dataclasses import replace

import pytest

from core.exceptions import ConfigurationError, MaterialError
from core.material.material import (Concrete, Rebar, Steel, bar_area, bar_unit_weight,
                                    diameters_in_range, parse_diameter_range)
from core.settings.config import DesignSettings, ScoringWeights, SCORING_PRESETS, BeamSettings


class TestScoringWeights:

    def test_default_weights_sum_to_one(self):
        assert ScoringWeights().total == pytest.approx(1.0)
        ScoringWeights().validate()

    def test_weights_not_summing_to_one_rejected(self):
        with pytest.raises(ConfigurationError):
            ScoringWeights(cuts=0.5, diversity=0.5, spacing=0.5, layering=0.5).validate()

    def test_negative_weight_rejected(self):
        with pytest.raises(ConfigurationError):
            ScoringWeights(cuts=1.2, diversity=-0.2, spacing=0.0, layering=0.0).validate()

    def test_all_presets_valid(self):
        for weights in SCORING_PRESETS.values():
            weights.validate()


class TestDesignSettings:

    def test_defaults_validate(self, settings):
        assert settings.validate() is settings

    def test_unknown_preset(self, settings):
        with pytest.raises(ConfigurationError):
            settings.with_scoring_preset("nonexistent")

    def test_preset_replaces_weights_only(self, settings):
        changed = settings.with_scoring_preset("fast_construction")
        assert changed.scoring == SCORING_PRESETS["fast_construction"]
        assert changed.beam == settings.beam

    def test_bad_diameter_range(self, settings):
        bad = replace(settings, beam=replace(settings.beam, main_bar_range="abc"))
        with pytest.raises(ConfigurationError):
            bad.validate()

    @pytest.mark.parametrize("field, value", [("stirrup_spacings", ()), ("stirrup_spacings", (0, 150)),
                                              ("stirrup_bar_range", "x"), ("side_bar_range", "")])
    def test_bad_transverse_settings(self, settings, field, value):
        bad = replace(settings, beam=replace(settings.beam, **{field: value}))
        with pytest.raises(ConfigurationError):
            bad.validate()

    def test_bad_steel_grade(self, settings):
        bad = replace(settings, anchorage=replace(settings.anchorage, steel_grade="SD999"))
        with pytest.raises(ConfigurationError):
            bad.validate()

    def test_json_round_trip(self, settings, tmp_path):
        path = tmp_path / "settings.json"
        custom = replace(settings, beam=replace(settings.beam, main_bar_range="18-22", max_layers=3))
        custom.save(str(path))
        loaded = DesignSettings.load(str(path))
        assert loaded == custom

    def test_from_dict_ignores_unknown_keys(self):
        loaded = DesignSettings.from_dict({"beam": {"cover_side": 40, "unknown": 1}, "bogus": {}})
        assert loaded.beam.cover_side == 40
        assert loaded.beam.min_clear_spacing == BeamSettings().min_clear_spacing

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            DesignSettings.load(str(tmp_path / "missing.json"))


class TestBeamSettings:

    @pytest.mark.parametrize("width, legs", [(200, 2), (250, 2), (300, 3), (400, 3), (500, 4), (900, 4)])
    def test_stirrup_legs_for_width(self, width, legs):
        assert BeamSettings().stirrup_legs_for_width(width) == legs

    def test_stirrup_legs_without_rules(self):
        assert BeamSettings(auto_legs_rules="").stirrup_legs_for_width(500) == 2


class TestAnchorage:

    def test_simplified_splice_length(self, settings):
        assert settings.anchorage.splice_length(20) == 800
        assert settings.anchorage.splice_length(20, is_tension_zone=False) == 600

    def test_manual_splice_table(self, settings):
        manual = replace(settings.anchorage, use_simplified_rules=False, manual_splice_lengths={20: 950.0})
        assert manual.splice_length(20) == 950.0
        assert manual.splice_length(22) == 22 * 40

    def test_hook_length_minimum(self, settings):
        assert settings.anchorage.hook90_length(6) == 75.0
        assert settings.anchorage.hook90_length(20) == 240.0


class TestMaterial:

    def test_bar_area_catalogue(self):
        assert bar_area(20) == pytest.approx(314.2)

    def test_bar_area_non_catalogue(self):
        assert bar_area(7) == pytest.approx(38.48, rel=1e-3)

    def test_bar_area_rejects_zero(self):
        with pytest.raises(MaterialError):
            bar_area(0)

    def test_unit_weight(self):
        assert bar_unit_weight(10) == pytest.approx(0.617)

    @pytest.mark.parametrize("text, expected", [("16-25", (16, 25)), ("25-16", (16, 25)), ("20", (20, 20))])
    def test_parse_diameter_range(self, text, expected):
        assert parse_diameter_range(text) == expected

    def test_diameters_in_range(self):
        assert diameters_in_range([10, 16, 20, 20, 25, 28], "16-25") == [16, 20, 25]

    def test_unknown_grades(self):
        with pytest.raises(MaterialError):
            Steel("SD400")
        with pytest.raises(MaterialError):
            Concrete("C30")
        with pytest.raises(MaterialError):
            Rebar(19)

    def test_known_grades(self):
        assert Steel("CB400V").fy == 400
        assert Concrete("B25").rb == 14.5
