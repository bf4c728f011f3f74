# core/exceptions.py

"""
이 모듈은 Rebar Beam Designer 프로젝트에서 사용되는 모든 사용자 정의 예외 클래스를
중앙에서 관리합니다.

설계 공간이 소진되는 일반적인 상황(유효한 시나리오 없음, 레지스트리 불일치)은
예외가 아니라 결과값으로 처리됩니다. 여기 정의된 예외는 입력/설정 오류와
계약 위반에만 사용합니다. 모든 예외는 기본 RBDException을 상속받습니다.
"""

class RBDException(Exception):
    """
    이 프로젝트(Rebar Beam Design)의 모든 사용자 정의 예외에 대한 기본 클래스입니다.
    이 클래스를 직접 발생시키기보다는, 이를 상속받는 더 구체적인 예외를 사용합니다.
    """
    pass

# --- 입력값 및 정의 관련 오류 ---

class MaterialError(RBDException):
    """철근 직경, 강종, 콘크리트 등급 정의와 관련된 오류입니다."""
    pass

class ConfigurationError(RBDException):
    """설정값(허용 직경, 점수 가중치 등)이 유효하지 않을 때 발생합니다."""
    pass

class GeometryError(RBDException):
    """스팬의 폭/높이/길이를 사용할 수 없을 때 발생합니다 (InvalidGeometry)."""
    def __init__(self, span_id: str, message: str):
        self.span_id = span_id
        self.message = f"[{span_id}] {message}"
        super().__init__(self.message)

# --- 위상(Topology) 관련 오류 ---

class TopologyError(RBDException):
    """스팬 그래프 구성과 관련된 계약 위반에 대한 기본 클래스입니다."""
    pass

class LinkError(TopologyError):
    """
    존재하지 않는 엔티티를 연결하려 하는 등, 링크 요청 자체가 잘못되었을 때
    발생하는 예외입니다. 순환 참조처럼 정상적으로 거부되는 링크는 LinkResult로 반환됩니다.
    """
    def __init__(self, child_id: str, parent_id: str, reason: str):
        self.child_id = child_id
        self.parent_id = parent_id
        self.message = f"Cannot link '{child_id}' -> '{parent_id}': {reason}"
        super().__init__(self.message)

# --- 설계 계산 과정에서 발생하는 오류 ---

class DesignError(RBDException):
    """설계 계산 과정에서 발생하는 일반적인 오류에 대한 기본 클래스입니다."""
    pass

class ExternalDataMissingError(DesignError):
    """
    구조해석 결과(소요 철근량)가 스팬에 존재하지 않을 때 발생하는 예외입니다.
    오케스트레이터는 이 예외를 잡아 해당 그룹을 건너뛰고 진단 메시지를 남깁니다.
    """
    def __init__(self, span_id: str):
        self.span_id = span_id
        self.message = f"Required steel area is missing for span '{span_id}'."
        super().__init__(self.message)
