"""tasklog 异常体系

NotFoundError / ValidationError / UnauthorizedError / StorageError 四类，
由 HTTP 层统一映射为 404 / 400 / 401 / 500。
"""


class TaskLogError(Exception):
    """tasklog 基础异常"""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(TaskLogError):
    """实体不存在，或不属于当前 owner（两者对外不可区分）"""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} with id {entity_id} does not exist")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(TaskLogError):
    """输入不合法（空标题、无法解析的时间等）"""

    code = "VALIDATION_ERROR"


class UnauthorizedError(TaskLogError):
    """身份解析失败 -- 由认证协作方产生，此处仅透传"""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "unauthorized") -> None:
        super().__init__(message)


class StorageError(TaskLogError):
    """存储后端 I/O 或约束失败"""

    code = "STORAGE_ERROR"

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class OpenSessionConflictError(StorageError):
    """同一 owner 已存在未结束会话，插入被存储层唯一约束拒绝

    SessionLedger 捕获此异常后重新执行 close-then-open。
    """

    code = "OPEN_SESSION_CONFLICT"

    def __init__(self, owner_id: str, original_error: Exception | None = None) -> None:
        super().__init__(
            f"owner {owner_id} already has an open work session",
            original_error=original_error,
        )
        self.owner_id = owner_id
