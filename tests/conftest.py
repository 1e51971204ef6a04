"""Pytest configuration and fixtures for the uploader.

HTTP tests run against uploader.main:app through httpx's ASGI transport with
the GitHub client replaced by an in-memory fake that records every call.
"""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from uploader.config import UploaderConfig
from uploader.github_storage import CreateBranchStatus
from uploader.main import app, get_config, get_repo_client
from uploader.models import BranchRef, CommitResult


class FakeRepoClient:
    """Scripted stand-in for GitHubRepoClient.

    write_results is consumed one item per write_file call; an exception
    instance is raised, anything else (or an exhausted list) is a success.
    """

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.write_results: list = []
        self.base_ref: BranchRef | Exception | None = BranchRef(name="main", head_sha="base-sha-123")
        self.create_result: CreateBranchStatus | Exception = CreateBranchStatus.CREATED

    @property
    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def get_branch_head(self, branch_name: str) -> BranchRef | None:
        self.calls.append(("get_branch_head", branch_name))
        if isinstance(self.base_ref, Exception):
            raise self.base_ref
        return self.base_ref

    def create_branch(self, branch_name: str, from_sha: str) -> CreateBranchStatus:
        self.calls.append(("create_branch", branch_name, from_sha))
        if isinstance(self.create_result, Exception):
            raise self.create_result
        return self.create_result

    def write_file(
        self,
        branch_name: str,
        repo_path: str,
        content: bytes,
        commit_message: str,
        author: dict,
    ) -> CommitResult:
        self.calls.append(("write_file", branch_name, repo_path, content, commit_message, author))
        outcome = self.write_results.pop(0) if self.write_results else None
        if isinstance(outcome, Exception):
            raise outcome
        return CommitResult(
            path=repo_path,
            html_url=f"https://github.com/octo/uploads/blob/{branch_name}/{repo_path}",
            content_sha="content-sha",
            commit_sha="commit-sha",
        )


@pytest.fixture
def config() -> UploaderConfig:
    """Minimal valid configuration (5 MB limit, no MIME allow-list)."""
    return UploaderConfig(
        github_token="test-token",
        repo_owner="octo",
        repo_name="uploads",
    )


@pytest.fixture
def fake_repo() -> FakeRepoClient:
    return FakeRepoClient()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)


@pytest.fixture
async def client(config: UploaderConfig, fake_repo: FakeRepoClient) -> AsyncClient:
    """Async HTTP client against the FastAPI app with GitHub replaced by fake_repo."""
    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_repo_client] = lambda: fake_repo
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
