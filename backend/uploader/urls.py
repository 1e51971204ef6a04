"""
CDN 地址拼接（jsDelivr 格式：<cdn>/<owner>/<repo>@<branch>/<path>）
"""
from dataclasses import dataclass
from urllib.parse import quote

# 与 JS encodeURIComponent 保持一致的不转义字符
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class ResolvedUrls:
    hosting_url: str
    cdn_url: str


def build_cdn_url(cdn_base: str, owner: str, repo: str, branch_name: str, path: str) -> str:
    encoded = quote(path, safe=_URI_COMPONENT_SAFE)
    return f"{cdn_base.rstrip('/')}/{owner}/{repo}@{branch_name}/{encoded}"


def resolve_urls(
    committed_path: str,
    branch_name: str,
    owner: str,
    repo: str,
    cdn_base: str,
    hosting_url: str,
) -> ResolvedUrls:
    return ResolvedUrls(
        hosting_url=hosting_url,
        cdn_url=build_cdn_url(cdn_base, owner, repo, branch_name, committed_path),
    )
