"""
上传服务异常分类：校验错误、配置错误、可恢复/不可恢复的远程错误
"""
from typing import Any, Optional


class UploaderError(Exception):
    """所有上传服务异常的基类，main.py 中统一映射为 JSON 响应"""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


# ===== 4xx：请求本身有问题，不重试 =====
class ValidationError(UploaderError):
    status_code = 400


class UnsupportedMediaTypeError(ValidationError):
    status_code = 415


class MissingFileError(ValidationError):
    status_code = 400


class FileTooLargeError(ValidationError):
    status_code = 413

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            f"File size ({size_bytes / 1024 / 1024:.2f}MB) exceeds "
            f"{limit_bytes / 1024 / 1024:g}MB limit",
            "FILE_TOO_LARGE",
            {"size_bytes": size_bytes, "limit_bytes": limit_bytes},
        )


# ===== 500：需要运维处理 =====
class ConfigurationError(UploaderError):
    status_code = 500


# ===== 远程仓库错误 =====
class RemoteError(UploaderError):
    status_code = 500


class RecoverableRemoteError(RemoteError):
    """可以在本地补救的远程错误（目前只有目标分支不存在）"""


class BranchNotFoundError(RecoverableRemoteError):
    def __init__(self, branch_name: str, reason: str = "") -> None:
        super().__init__(
            reason or f"Branch {branch_name} not found",
            "BRANCH_NOT_FOUND",
            {"branch": branch_name},
        )
        self.branch_name = branch_name


class UnrecoverableRemoteError(RemoteError):
    pass


class RemoteRequestError(UnrecoverableRemoteError):
    """GitHub 调用失败（鉴权、配额、冲突、网络等），附带远程返回的信息"""

    def __init__(self, action: str, reason: str, http_status: Optional[int] = None) -> None:
        super().__init__(
            reason,
            "REMOTE_REQUEST_FAILED",
            {"action": action, "http_status": http_status},
        )
        self.action = action
        self.reason = reason
        self.http_status = http_status
