"""
test_rebar_strings.py: 철근 표기 문자열 해석/검증과 스팬별 표기 생성.
"""

import pytest

from core.pipeline.context import ContinuousBeamSolution, RebarSpec
from services import rebar_strings


class TestParsing:

    @pytest.mark.parametrize("text", ["3D20", "3d20", "3phi20", "3fi20", "3Ø20", "3 D 20"])
    def test_notations(self, text):
        assert rebar_strings.get_details(text) == [(3, 20, pytest.approx(942.6))]

    def test_multiple_groups(self):
        assert rebar_strings.parse_area("3D20 + 2D22") == pytest.approx(942.6 + 760.2)

    def test_forced_marker_ignored(self):
        assert rebar_strings.parse_area("3D20*") == pytest.approx(942.6)

    def test_empty(self):
        assert rebar_strings.get_details("") == []
        assert rebar_strings.parse_area("-") == 0.0

    @pytest.mark.parametrize("text", ["320", "3D0", "0D20", "D20"])
    def test_marker_and_sizes_required(self, text):
        assert rebar_strings.get_details(text) == []
        assert rebar_strings.parse_area(text) == 0.0


class TestValidate:

    @pytest.mark.parametrize("text", ["3D20", "3D20 + 2D22*", "-", "20D10"])
    def test_valid(self, text):
        assert rebar_strings.validate(text) == (True, None)

    @pytest.mark.parametrize("text, fragment", [
        ("", "Empty"),
        ("   ", "Empty"),
        ("+", "No bar information"),
        ("3D50", "Unreasonable diameter"),
        ("25D20", "Unreasonable bar count"),
        ("3D19", "Unsupported rebar diameter"),
        ("abc", "Invalid format"),
        ("320", "Invalid format"),
        ("3D20 + 216", "Invalid format"),
        ("3D0", "Unreasonable diameter"),
    ])
    def test_invalid(self, text, fragment):
        ok, message = rebar_strings.validate(text)
        assert not ok
        assert fragment in message


class TestFormatting:

    def test_format_bars(self):
        assert rebar_strings.format_bars(3, 20) == "3D20"
        assert rebar_strings.format_bars(0, 20) == "-"

    def test_format_area(self):
        assert rebar_strings.format_area_cm2(942.6) == "9.43 cm²"


class TestCallouts:

    def test_zone_strings(self, design_inputs):
        group, _ = design_inputs
        sol = ContinuousBeamSolution(
            option_name="T:3D20/B:2D22", backbone_diameter_top=20, backbone_diameter_bot=22,
            backbone_count_top=3, backbone_count_bot=2,
            reinforcements={"S1_Top_Left": RebarSpec(20, 1, "Top"),
                            "S2_Bot_Mid": RebarSpec(16, 0, "Bot"),
                            "S3_Top_Full": RebarSpec(16, 2, "Top", 1, (5,), True)})
        callouts = rebar_strings.build_callouts(group, sol)

        assert [c.label for c in callouts] == ["S1", "S2", "S3"]
        assert callouts[0].top == ("3D20 + 1D20", "3D20", "3D20")
        assert callouts[1].bot == ("2D22", "2D22", "2D22")
        assert callouts[2].top == ("3D20 + 2D16",) * 3

    def test_row(self, design_inputs):
        group, _ = design_inputs
        sol = ContinuousBeamSolution(option_name="3D20", backbone_diameter_top=20, backbone_diameter_bot=20,
                                     backbone_count_top=3, backbone_count_bot=3)
        row = rebar_strings.build_callouts(group, sol)[0].as_row()
        assert row["label"] == "S1"
        assert row["top_left"] == "3D20"
        assert set(row) == {"span_id", "label", "top_left", "top_mid", "top_right",
                            "bot_left", "bot_mid", "bot_right",
                            "stirrup_left", "stirrup_mid", "stirrup_right", "web"}
        assert (row["stirrup_mid"], row["web"]) == ("-", "-")
