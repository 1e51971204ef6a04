"""
上传服务配置：从环境变量读取 GitHub / CDN / 上传限制
"""
from dataclasses import dataclass, field, replace
import os

from .errors import ConfigurationError

DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_CDN_BASE_URL = "https://cdn.jsdelivr.net/gh"


@dataclass(frozen=True)
class UploaderConfig:
    github_token: str
    repo_owner: str
    repo_name: str
    main_branch: str = "main"
    branch_prefix: str = "files"
    author_name: str = "FileUploaderWorker"
    author_email: str = "worker@noreply.localhost"
    cdn_base_url: str = DEFAULT_CDN_BASE_URL
    api_base_url: str = DEFAULT_API_BASE_URL
    max_file_size_mb: float = 5
    # 为空表示不检查 MIME 类型
    allowed_mime_types: tuple[str, ...] = field(default_factory=tuple)
    default_user_identifier: str = "shared"
    request_timeout: float = 30

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    @property
    def author(self) -> dict:
        return {"name": self.author_name, "email": self.author_email}

    def with_overrides(self, **changes) -> "UploaderConfig":
        """返回替换了部分字段的新配置（原配置不变）"""
        return replace(self, **changes)


def _parse_number(name: str, raw: str, default: float) -> float:
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than 0")
    return value


def _parse_mime_types(raw: str) -> tuple[str, ...]:
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


def load_config() -> UploaderConfig:
    token = (os.getenv("GITHUB_PAT") or os.getenv("GITHUB_TOKEN") or "").strip()
    owner = os.getenv("GITHUB_REPO_OWNER", "").strip()
    repo = os.getenv("GITHUB_REPO_NAME", "").strip()

    missing = [key for key, value in {
        "GITHUB_PAT": token,
        "GITHUB_REPO_OWNER": owner,
        "GITHUB_REPO_NAME": repo,
    }.items() if not value]
    if missing:
        raise ConfigurationError(
            "Server configuration error: GitHub credentials missing",
            "CONFIG_MISSING",
            {"missing": missing},
        )

    return UploaderConfig(
        github_token=token,
        repo_owner=owner,
        repo_name=repo,
        main_branch=os.getenv("GITHUB_MAIN_BRANCH", "").strip() or "main",
        branch_prefix=os.getenv("GITHUB_BRANCH_PREFIX", "").strip().strip("/") or "files",
        author_name=os.getenv("COMMIT_AUTHOR_NAME", "").strip() or "FileUploaderWorker",
        author_email=os.getenv("COMMIT_AUTHOR_EMAIL", "").strip() or "worker@noreply.localhost",
        cdn_base_url=os.getenv("CDN_BASE_URL", "").strip().rstrip("/") or DEFAULT_CDN_BASE_URL,
        api_base_url=os.getenv("GITHUB_API_BASE", "").strip().rstrip("/") or DEFAULT_API_BASE_URL,
        max_file_size_mb=_parse_number(
            "MAX_FILE_SIZE_MB", os.getenv("MAX_FILE_SIZE_MB", "").strip(), 5
        ),
        allowed_mime_types=_parse_mime_types(os.getenv("ALLOWED_MIME_TYPES", "")),
        default_user_identifier=os.getenv("DEFAULT_USER_IDENTIFIER", "").strip() or "shared",
        request_timeout=_parse_number(
            "GITHUB_TIMEOUT_SECONDS", os.getenv("GITHUB_TIMEOUT_SECONDS", "").strip(), 30
        ),
    )
