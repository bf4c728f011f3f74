# main.py

import sys
from interface import cli
from core.exceptions import RBDException
from core.logging_config import setup_logging
from core.settings.config import DesignSettings, SCORING_PRESETS

# ==========================================================
# 사용자 설정 (User Configuration)
# ==========================================================
# 이 부분만 수정하면 프로그램 전체에 적용됩니다.
PROJECT_FILE = "project.json"
CALCULATION_DIAMETERS = [16, 20, 22, 25] # 사용자가 여기서 수정 (None: 설정의 주근 범위 전체)
LOG_LEVEL = "WARNING"
MAX_WORKERS = None          # 시나리오 병렬 평가 스레드 수 (None: 순차 실행)

def validate_configuration():
    """
    기본 설정값(재고 직경, 주근 범위, 가중치 합)이 올바른지 확인합니다.
    """
    try:
        DesignSettings().validate()
    except RBDException as e:
        print("="*50)
        print("❌ 설정 오류 (Configuration Error)")
        print(f"{e}")
        print("core/settings/config.py 의 기본 설정을 수정해주세요.")
        print("="*50)
        sys.exit(1) # 프로그램 비정상 종료

    all_supported_dias = set(DesignSettings().general.available_diameters)
    user_selected_dias = set(CALCULATION_DIAMETERS or [])
    if not user_selected_dias.issubset(all_supported_dias):
        unsupported_dias = user_selected_dias - all_supported_dias
        print("="*50)
        print("❌ 설정 오류 (Configuration Error)")
        print(f"다음 철근 직경은 재고 목록에 없습니다: {sorted(list(unsupported_dias))}")
        print(f"재고 직경 전체: {sorted(list(all_supported_dias))}")
        print("main.py 상단의 'CALCULATION_DIAMETERS' 설정을 수정해주세요.")
        print("="*50)
        sys.exit(1)

    if MAX_WORKERS is not None and MAX_WORKERS < 1:
        print("="*50)
        print("❌ 설정 오류 (Configuration Error)")
        print(f"MAX_WORKERS는 1 이상이어야 합니다: {MAX_WORKERS}")
        print("="*50)
        sys.exit(1)


def get_user_choice():
    """사용자로부터 실행할 모드를 입력받습니다."""
    while True:
        print("\n어떤 작업을 수행하시겠습니까?")
        print("  1: 연속보 배근 설계 (그룹 구성, 시나리오 평가, 제안)")
        print("  2: 그룹 레지스트리 점검")
        print("  Q: 종료 (Quit)")
        choice = input("선택: ").strip().upper()
        if choice in ['1', '2', 'Q']:
            return choice
        else:
            print("잘못된 입력입니다. 1, 2, Q 중에서 선택해주세요.")

def main():
    """
    Continuous Beam Rebar Designer 프로그램의 메인 실행 함수.
    """
    print("="*50)
    print("      Continuous Beam Rebar Designer")
    print("="*50)
    print("이 프로그램은 연속보의 주근 백본과 가설 철근, 이음 위치를 결정합니다.")
    print("모든 치수 단위는 'mm', 철근량 단위는 'mm²' 입니다 (출력은 cm²).")

    # --- 프로그램 시작 시 설정값부터 검증 ---
    validate_configuration()
    setup_logging(LOG_LEVEL)

    project = None
    while True:
        choice = get_user_choice()

        if choice == '1':
            project = cli.run_design_workflow(PROJECT_FILE, sorted(SCORING_PRESETS), CALCULATION_DIAMETERS, MAX_WORKERS) or project
        elif choice == '2':
            cli.run_registry_workflow(project)
        elif choice == 'Q':
            break

    print("\n프로그램을 종료합니다.")

if __name__ == "__main__":
    main()
