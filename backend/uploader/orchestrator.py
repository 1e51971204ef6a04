"""
上传编排：乐观写入 → 分支不存在时从主分支创建 → 只重试一次
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from .config import UploaderConfig
from .errors import (
    BranchNotFoundError,
    ConfigurationError,
    RemoteRequestError,
    UnrecoverableRemoteError,
)
from .github_storage import CreateBranchStatus
from .keys import build_storage_key, sanitize_identifier
from .models import BranchRef, CommitResult, StorageKey, UploadRequest, UploadResult
from .urls import resolve_urls

logger = logging.getLogger(__name__)


class RepoClient(Protocol):
    def get_branch_head(self, branch_name: str) -> Optional[BranchRef]: ...

    def create_branch(self, branch_name: str, from_sha: str) -> CreateBranchStatus: ...

    def write_file(
        self,
        branch_name: str,
        repo_path: str,
        content: bytes,
        commit_message: str,
        author: dict,
    ) -> CommitResult: ...


class UploadState(str, Enum):
    START = "start"
    WRITE_ATTEMPTED = "write_attempted"
    RECOVERING_BRANCH = "recovering_branch"
    WRITE_RETRIED = "write_retried"
    DONE = "done"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UploadOrchestrator:
    """一次上传一个实例调用，不在请求之间共享可变状态"""

    def __init__(
        self,
        client: RepoClient,
        config: UploaderConfig,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.config = config
        self.clock = clock

    def _log_state(self, state: UploadState, key: StorageKey) -> None:
        logger.info(f"[{state.value}] {key.repo_path} on {key.branch_name}")

    def upload(self, request: UploadRequest) -> UploadResult:
        owner_id = sanitize_identifier(request.owner_identifier)
        key = build_storage_key(
            owner_id,
            request.original_file_name,
            self.clock(),
            branch_prefix=self.config.branch_prefix,
        )
        commit_message = f"Upload file: {key.repo_path} by user {owner_id}"
        self._log_state(UploadState.START, key)

        self._log_state(UploadState.WRITE_ATTEMPTED, key)
        try:
            commit = self._write(key, request.content, commit_message)
        except BranchNotFoundError:
            self._log_state(UploadState.RECOVERING_BRANCH, key)
            commit = self._recover_and_retry(key, request.content, commit_message)
        except RemoteRequestError as e:
            # 鉴权/配额/网络等问题建分支也解决不了，直接失败，避免重复提交
            self._log_state(UploadState.FAILED, key)
            raise UnrecoverableRemoteError(
                f"Failed to upload file: {e.reason}",
                "UPLOAD_FAILED",
                {"branch": key.branch_name, "path": key.repo_path, "http_status": e.http_status},
            ) from e

        self._log_state(UploadState.DONE, key)
        urls = resolve_urls(
            committed_path=key.repo_path,
            branch_name=key.branch_name,
            owner=self.config.repo_owner,
            repo=self.config.repo_name,
            cdn_base=self.config.cdn_base_url,
            hosting_url=commit.html_url,
        )
        logger.info(f"File successfully uploaded. CDN URL: {urls.cdn_url}")
        return UploadResult(
            committed_path=key.repo_path,
            branch_name=key.branch_name,
            hosting_url=urls.hosting_url,
            cdn_url=urls.cdn_url,
            mime_type=request.declared_mime_type,
            size_bytes=request.declared_size,
        )

    def _write(self, key: StorageKey, content: bytes, commit_message: str) -> CommitResult:
        return self.client.write_file(
            key.branch_name,
            key.repo_path,
            content,
            commit_message,
            self.config.author,
        )

    def _base_sha(self) -> str:
        base = self.config.main_branch
        try:
            ref = self.client.get_branch_head(base)
        except RemoteRequestError as e:
            logger.error(f"Cannot read base branch {base}: {e.reason}")
            raise ConfigurationError(
                f"Base branch {base} could not be read: {e.reason}",
                "BASE_BRANCH_UNREADABLE",
                {"branch": base, "http_status": e.http_status},
            ) from e
        if ref is None or not ref.head_sha:
            logger.error(f"Base branch {base} not found, check GITHUB_MAIN_BRANCH")
            raise ConfigurationError(
                f"Base branch {base} not found; cannot create upload branch",
                "BASE_BRANCH_MISSING",
                {"branch": base},
            )
        return ref.head_sha

    def _recover_and_retry(self, key: StorageKey, content: bytes, commit_message: str) -> CommitResult:
        base_sha = self._base_sha()
        logger.info(
            f"Creating branch {key.branch_name} from {self.config.main_branch} (SHA: {base_sha})"
        )
        try:
            status = self.client.create_branch(key.branch_name, base_sha)
        except RemoteRequestError as e:
            raise UnrecoverableRemoteError(
                f"Failed to create branch ({key.branch_name}): {e.reason}",
                "CREATE_BRANCH_FAILED",
                {"branch": key.branch_name, "http_status": e.http_status},
            ) from e
        logger.info(f"Branch {key.branch_name}: {status.value}")

        self._log_state(UploadState.WRITE_RETRIED, key)
        try:
            return self._write(key, content, commit_message)
        except (BranchNotFoundError, RemoteRequestError) as e:
            self._log_state(UploadState.FAILED, key)
            raise UnrecoverableRemoteError(
                f"Failed to upload file after creating branch: {e.message}",
                "RETRY_UPLOAD_FAILED",
                {"branch": key.branch_name, "path": key.repo_path},
            ) from e
