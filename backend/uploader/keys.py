"""
用户标识清理 + 仓库内文件名/分支名生成
"""
import re
from datetime import datetime
from typing import Optional

from .models import StorageKey

IDENTIFIER_MAX_LENGTH = 50
FALLBACK_IDENTIFIER = "unknown-user"
DEFAULT_FILE_NAME = "untitled"

_IDENTIFIER_DISALLOWED = re.compile(r"[^a-z0-9_-]")
_FILE_NAME_DISALLOWED = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_identifier(raw: Optional[str]) -> str:
    """小写 → 非 [a-z0-9_-] 替换为 '-' → 截断到 50；结果为空时返回 unknown-user"""
    text = str(raw) if raw is not None else ""
    cleaned = _IDENTIFIER_DISALLOWED.sub("-", text.lower())[:IDENTIFIER_MAX_LENGTH]
    return cleaned or FALLBACK_IDENTIFIER


def split_file_name(file_name: str) -> tuple[str, str]:
    """在最后一个 '.' 处拆分，扩展名包含点号；没有 '.' 时扩展名为空"""
    idx = file_name.rfind(".")
    if idx < 0:
        return file_name, ""
    return file_name[:idx], file_name[idx:]


def to_millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def build_storage_key(
    sanitized_id: str,
    original_file_name: Optional[str],
    now: datetime,
    branch_prefix: str = "files",
) -> StorageKey:
    display_name = original_file_name or DEFAULT_FILE_NAME
    base, extension = split_file_name(display_name)
    cleaned_base = _FILE_NAME_DISALLOWED.sub("_", base)
    # 扩展名原样保留，只有路径分隔符需要处理
    extension = extension.replace("/", "_").replace("\\", "_")
    # 文件直接放在分支根目录
    repo_path = f"{to_millis(now)}-{cleaned_base}{extension}"
    return StorageKey(
        branch_name=f"{branch_prefix}/{sanitized_id}",
        repo_path=repo_path,
        display_file_name=display_name,
    )
