"""
Error taxonomy shared by the repository, parser, summary generator and HTTP layer.
Each error carries a user-facing message, a machine-readable code and an HTTP status.
"""


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "서버 오류가 발생했습니다."

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.message
        self.code = code or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(AppError):
    status_code = 400
    code = "INVALID_REQUEST"
    message = "요청 데이터가 올바르지 않습니다."


class AuthError(AppError):
    status_code = 401
    code = "UNAUTHENTICATED"
    message = "인증이 필요합니다."


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "할 일을 찾을 수 없습니다."


class UpstreamRateLimited(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    message = "AI 서비스 사용량이 초과되었습니다. 잠시 후 다시 시도해주세요."


class UpstreamAuthFailed(AppError):
    status_code = 401
    code = "AUTHENTICATION_FAILED"
    message = "AI 서비스 인증에 실패했습니다."


class UpstreamParseFailed(AppError):
    status_code = 500
    code = "PARSE_ERROR"
    message = "AI 응답을 처리할 수 없습니다. 다시 시도해주세요."


class UpstreamNetworkError(AppError):
    status_code = 500
    code = "NETWORK_ERROR"
    message = "네트워크 연결에 문제가 있습니다. 잠시 후 다시 시도해주세요."


class StoreError(AppError):
    status_code = 500
    code = "STORE_ERROR"
    message = "할 일 데이터를 처리하는 중 오류가 발생했습니다."


class InternalError(AppError):
    pass
