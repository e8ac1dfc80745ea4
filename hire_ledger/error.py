class HireLedgerError(Exception):
    """业务错误基类：status_code + code + message，由 main 里的 handler 统一转成 JSON。"""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(HireLedgerError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(HireLedgerError):
    status_code = 401
    code = "NOT_AUTHENTICATED"

    @property
    def headers(self) -> dict[str, str]:
        # 保留 WWW-Authenticate，符合 Bearer 规范
        return {"WWW-Authenticate": "Bearer"}


class AuthorizationError(HireLedgerError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(HireLedgerError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(HireLedgerError):
    status_code = 409
    code = "CONFLICT"
