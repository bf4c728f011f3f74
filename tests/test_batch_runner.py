"""
test_batch_runner.py: BatchRunner 조합 생성, 실행 결과 행, CSV 단위 변환.
"""

import pandas as pd
import pytest

from interface.batch_runner import BatchRunner


@pytest.fixture
def params():
    return {
        "span_count": [2, 3],
        "span_length": [4500],
        "width": [300], "height": [600],
        "top_area": [1200], "bot_area": [900],
        "preset": ["balanced"],
    }


class TestBatchRunner:

    def test_combinations(self, params):
        runner = BatchRunner(params)
        combos = runner._generate_combinations()
        assert len(combos) == 2
        assert combos[0]["span_count"] == 2 and combos[1]["span_count"] == 3

    def test_run_records_designed_rows(self, params):
        runner = BatchRunner(params)
        runner.run()
        assert len(runner.results) == 2
        row = runner.results[0]
        assert row["status"] == "DESIGNED"
        assert row["total_length"] == 9000
        assert row["bd"] == 180000
        assert row["splice_count"] == 0
        assert row["is_valid"]

    def test_transverse_columns(self, params):
        runner = BatchRunner(params)
        runner.run()
        assert (runner.results[0]["stirrup"], runner.results[0]["web_bars"]) == ("-", "-")

        params.update(span_count=[2], height=[700], shear_area=[1.2])
        runner = BatchRunner(params)
        runner.run()
        row = runner.results[0]
        # 지점부 1.2 mm²/mm → 4-D8@150 (중앙부 2-D8@150보다 큼), 춤 700 → 구조 측면근
        assert row["stirrup"] == "4-D8@150"
        assert row["web_bars"] == "2D12"

    def test_unknown_preset_is_error_row(self, params):
        params["preset"] = ["nope"]
        runner = BatchRunner(params)
        runner.run()
        assert {r["status"] for r in runner.results} == {"Error"}
        assert "nope" in runner.results[0]["message"]

    def test_bad_span_count_is_critical_row(self, params):
        params["span_count"] = [0]
        runner = BatchRunner(params)
        runner.run()
        assert runner.results[0]["status"] == "Critical Error"

    def test_save_to_csv_converts_units(self, params, tmp_path):
        runner = BatchRunner(params)
        runner.run()
        path = tmp_path / "out.csv"
        runner.save_to_csv(str(path))

        df = pd.read_csv(path, encoding="utf-8-sig")
        assert len(df) == 2
        assert df.loc[0, "span_length"] == pytest.approx(4.5)
        assert df.loc[0, "total_length"] == pytest.approx(9.0)
        assert df.loc[0, "top_area"] == pytest.approx(12.0)
        assert df.loc[0, "bd"] == pytest.approx(1800.0)

    def test_save_without_results(self, params, tmp_path, capsys):
        path = tmp_path / "empty.csv"
        BatchRunner(params).save_to_csv(str(path))
        assert not path.exists()
        assert "결과가 없습니다" in capsys.readouterr().out
