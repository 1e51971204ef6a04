"""
上传流程中使用的数据结构（不落库，远程仓库才是唯一的数据源）
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class UploadRequest:
    # content 的长度已由 HTTP 层保证等于 declared_size
    owner_identifier: str
    original_file_name: str
    content: bytes
    declared_mime_type: str
    declared_size: int


@dataclass(frozen=True)
class StorageKey:
    branch_name: str
    repo_path: str
    display_file_name: str


@dataclass(frozen=True)
class BranchRef:
    name: str
    head_sha: Optional[str] = None


@dataclass(frozen=True)
class CommitResult:
    path: str
    html_url: str
    content_sha: Optional[str] = None
    commit_sha: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    committed_path: str
    branch_name: str
    hosting_url: str
    cdn_url: str
    mime_type: str
    size_bytes: int
