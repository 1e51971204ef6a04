"""
GitHub 仓库读写封装：读取分支、创建分支、写入文件（Contents API）
"""
from __future__ import annotations

import base64
import logging
from enum import Enum
from typing import Any, Optional
from urllib.parse import quote

import requests

from .config import UploaderConfig
from .errors import BranchNotFoundError, RemoteRequestError
from .models import BranchRef, CommitResult

logger = logging.getLogger(__name__)

USER_AGENT = "GitHub-File-Uploader"


class CreateBranchStatus(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


def is_branch_missing(status_code: int, message: str) -> bool:
    """Contents API 写入时目标分支不存在。GitHub 没有错误码，只能看措辞，改动时只改这里"""
    if status_code not in (404, 422):
        return False
    text = (message or "").lower()
    return "branch" in text and "not found" in text


def is_ref_conflict(status_code: int, message: str) -> bool:
    """创建分支时引用已存在（通常是并发请求抢先创建了）"""
    return status_code == 422 and "already exists" in (message or "").lower()


def _error_message(resp: requests.Response, action: str) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"{action} failed with status: {resp.status_code} {resp.reason or ''}".strip()


def _json_body(resp: requests.Response, action: str) -> dict:
    """解析 2xx 响应体；代理等返回非 JSON 或非对象时按远程错误处理"""
    try:
        data = resp.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        logger.error(f"GitHub API returned an unexpected body ({action}): {resp.status_code}")
        raise RemoteRequestError(action, "Unexpected response from GitHub", resp.status_code)
    return data


class GitHubRepoClient:
    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_base_url: str = "https://api.github.com",
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.token = token.strip()
        self.owner = owner.strip()
        self.repo = repo.strip()
        self.timeout = timeout
        self.api = f"{api_base_url.rstrip('/')}/repos/{self.owner}/{self.repo}"
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: UploaderConfig, session: Optional[requests.Session] = None) -> "GitHubRepoClient":
        return cls(
            token=config.github_token,
            owner=config.repo_owner,
            repo=config.repo_name,
            api_base_url=config.api_base_url,
            timeout=config.request_timeout,
            session=session,
        )

    def _headers(self) -> dict:
        return {
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }

    def _request(self, action: str, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            return self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"GitHub API network error ({action}): {e}")
            raise RemoteRequestError(action, f"Network error while calling GitHub: {e}") from e

    def close(self) -> None:
        self.session.close()

    def get_branch_head(self, branch_name: str) -> Optional[BranchRef]:
        """分支不存在返回 None（正常情况），其他失败抛 RemoteRequestError"""
        url = f"{self.api}/git/ref/heads/{quote(branch_name, safe='/')}"
        resp = self._request("get_branch_head", "GET", url)
        if resp.status_code == 404:
            return None
        if not resp.ok:
            reason = _error_message(resp, "Get branch ref")
            logger.warning(f"Get ref heads/{branch_name} failed: {resp.status_code} {reason}")
            raise RemoteRequestError("get_branch_head", reason, resp.status_code)
        data = _json_body(resp, "get_branch_head")
        obj = data.get("object")
        sha = obj.get("sha") if isinstance(obj, dict) else None
        return BranchRef(name=branch_name, head_sha=sha)

    def create_branch(self, branch_name: str, from_sha: str) -> CreateBranchStatus:
        payload = {"ref": f"refs/heads/{branch_name}", "sha": from_sha}
        resp = self._request("create_branch", "POST", f"{self.api}/git/refs", json=payload)
        if resp.status_code in (200, 201):
            return CreateBranchStatus.CREATED
        reason = _error_message(resp, "Create branch")
        if is_ref_conflict(resp.status_code, reason):
            logger.info(f"Branch {branch_name} already exists, continuing")
            return CreateBranchStatus.ALREADY_EXISTS
        logger.error(f"GitHub API error (create branch): {resp.status_code} {reason}")
        raise RemoteRequestError("create_branch", reason, resp.status_code)

    def write_file(
        self,
        branch_name: str,
        repo_path: str,
        content: bytes,
        commit_message: str,
        author: dict,
    ) -> CommitResult:
        """单次提交创建文件；分支不存在时抛 BranchNotFoundError，其余失败抛 RemoteRequestError"""
        url = f"{self.api}/contents/{quote(repo_path, safe='')}"
        payload = {
            "message": commit_message,
            "content": base64.b64encode(content).decode("utf-8"),
            "branch": branch_name,
            "committer": author,
            "author": author,
        }
        resp = self._request("write_file", "PUT", url, json=payload)
        if resp.status_code in (200, 201):
            data = _json_body(resp, "write_file")
            content_info = data.get("content")
            if not isinstance(content_info, dict):
                content_info = {}
            commit_info = data.get("commit")
            if not isinstance(commit_info, dict):
                commit_info = {}
            return CommitResult(
                path=content_info.get("path") or repo_path,
                html_url=content_info.get("html_url") or "",
                content_sha=content_info.get("sha"),
                commit_sha=commit_info.get("sha"),
            )

        reason = _error_message(resp, "Upload")
        if is_branch_missing(resp.status_code, reason):
            logger.warning(f"Branch {branch_name} not found while uploading {repo_path}")
            raise BranchNotFoundError(branch_name, reason)
        logger.error(f"GitHub API error (upload {repo_path} to {branch_name}): {resp.status_code} {reason}")
        raise RemoteRequestError("write_file", reason, resp.status_code)
