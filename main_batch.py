# main_batch.py

import numpy as np
from interface.batch_runner import BatchRunner
from core.logging_config import setup_logging
import time


# =================================
# 사용자 배치 실행 시나리오 정의
# =================================

# --- 일반 보: 스팬 길이 변화에 따른 이음 수 ---
beam_span_sweep = {
    "span_count": [2, 3, 4],
    "span_length": np.linspace(4000, 9000, int((9000-4000)/500)+1),
    "width": [300], "height": [600],
    "top_area": [1200],     # mm2 (지점부 상부 소요량)
    "bot_area": [900],      # mm2 (중앙부 하부 소요량)
    "torsion_area": [0],
    "preset": ["balanced"],
}

# --- 단면 폭/소요량 변화 (간격 및 2단 배근 검토) ---
beam_section_sweep = {
    "span_count": [3],
    "span_length": [7200],
    "width": np.linspace(250, 500, int((500-250)/50)+1),
    "height": [600, 700],
    "top_area": np.linspace(800, 2400, int((2400-800)/400)+1),
    "bot_area": [1000, 1500],
    "torsion_area": [0, 200],
    "shear_area": [0.5, 1.5],     # mm2/mm (Av/s, 지점부)
    "preset": ["balanced"],
}

# --- 시공성 가중치 프리셋 비교 ---
preset_comparison = {
    "span_count": [3],
    "span_length": [6000, 8000],
    "width": [300, 400], "height": [600],
    "top_area": [1500], "bot_area": [1200],
    "torsion_area": [0],
    "preset": ["balanced", "economical", "fast_construction"],
}


def main():

    """
    Continuous Beam Rebar Designer (Batch Mode)의 메인 실행 함수.
    치수 단위 : mm, 철근량 단위 : mm2 (CSV 출력은 cm2, m)
    """
    print("="*50)
    print("    Continuous Beam Rebar Designer - Batch Mode")
    print("="*50)

    setup_logging("ERROR", json_output=True)

    # 실행할 배치 입력
    param = beam_span_sweep ; output_filename = 'batch_span_sweep_result'
    # param = beam_section_sweep ; output_filename = 'batch_section_sweep_result'
    # param = preset_comparison ; output_filename = 'batch_preset_result'

    outfile_name = str(output_filename + '.csv')

    start_time = time.time()

    runner = BatchRunner(param)
    runner.run()
    runner.save_to_csv(outfile_name)

    print(f"'{outfile_name}' 의 결과 파일로 저장됩니다.")
    end_time = time.time()
    print(f"총 실행 시간: {end_time - start_time:.2f} 초")

if __name__ == "__main__":
    main()
