"""
FastAPI 主应用：上传接口、CORS、统一错误响应
"""
import logging
import os
from pathlib import Path
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv

from .config import UploaderConfig, load_config
from .errors import (
    FileTooLargeError,
    MissingFileError,
    UnsupportedMediaTypeError,
    UploaderError,
)
from .github_storage import GitHubRepoClient
from .models import UploadRequest
from .orchestrator import UploadOrchestrator
from .schemas import ErrorResponse, HealthResponse, UploadResponse

# 配置日志
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[2]  # 指向项目根目录
ENV_PATH = BASE_DIR / "backend" / ".env"
if ENV_PATH.exists():
    load_dotenv(dotenv_path=str(ENV_PATH))

IDENTIFIER_HEADER = "X-User-Identifier"
PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": f"Content-Type, {IDENTIFIER_HEADER}",
    "Access-Control-Max-Age": "86400",
}

app = FastAPI(
    title="GitHub File Uploader",
    description="把上传的文件提交到 GitHub 仓库分支，并返回 CDN 地址",
    version="1.0.0",
)

# 带 Origin 的浏览器预检由中间件应答，其余 OPTIONS 落到下面的路由
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", IDENTIFIER_HEADER],
    max_age=86400,
)


def get_config() -> UploaderConfig:
    """每个请求读取一次环境变量，缺少凭据时抛 ConfigurationError（500）"""
    return load_config()


def get_repo_client(config: UploaderConfig = Depends(get_config)):
    client = GitHubRepoClient.from_config(config)
    try:
        yield client
    finally:
        client.close()


def get_orchestrator(
    config: UploaderConfig = Depends(get_config),
    client=Depends(get_repo_client),
) -> UploadOrchestrator:
    return UploadOrchestrator(client, config)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


@app.get("/health", response_model=HealthResponse)
def health_check():
    """健康检查端点"""
    return HealthResponse(status="ok", service="GitHub File Uploader")


@app.options("/")
@app.options("/api/upload")
def upload_preflight():
    """没有 Origin 的 OPTIONS 也返回宽松的 CORS 头"""
    return Response(status_code=200, headers=PREFLIGHT_HEADERS)


@app.post("/", response_model=UploadResponse)
@app.post("/api/upload", response_model=UploadResponse)
async def upload_file(
    request: Request,
    config: UploaderConfig = Depends(get_config),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    """接收 multipart/form-data 中的 file 字段并提交到 GitHub"""
    content_type = request.headers.get("content-type") or ""
    if "multipart/form-data" not in content_type.lower():
        raise UnsupportedMediaTypeError("Content-Type must be multipart/form-data")

    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise MissingFileError(
            'No file found in form data (expected field name "file") or invalid file type'
        )

    form_identifier = form.get("userIdentifier")
    if isinstance(form_identifier, UploadFile):
        form_identifier = None
    identifier = (
        request.headers.get(IDENTIFIER_HEADER)
        or form_identifier
        or config.default_user_identifier
    )

    # Starlette 已知大小时先拒绝，避免把超限文件读进内存
    if upload.size is not None and upload.size > config.max_file_size_bytes:
        raise FileTooLargeError(upload.size, config.max_file_size_bytes)

    content = await upload.read()
    if len(content) > config.max_file_size_bytes:
        raise FileTooLargeError(len(content), config.max_file_size_bytes)

    mime_type = (upload.content_type or "").lower()
    if config.allowed_mime_types and mime_type not in config.allowed_mime_types:
        raise UnsupportedMediaTypeError(
            f"Invalid file type. Allowed types: {', '.join(config.allowed_mime_types)}"
        )

    result = await run_in_threadpool(
        orchestrator.upload,
        UploadRequest(
            owner_identifier=str(identifier),
            original_file_name=upload.filename or "",
            content=content,
            declared_mime_type=upload.content_type or "",
            declared_size=len(content),
        ),
    )
    return UploadResponse(
        url=result.cdn_url,
        github_url=result.hosting_url or None,
        path_in_repo=result.committed_path,
        branch=result.branch_name,
        file_type=result.mime_type,
        file_size=result.size_bytes,
    )


@app.exception_handler(UploaderError)
async def uploader_error_handler(request: Request, exc: UploaderError):
    if exc.status_code >= 500:
        logger.error(f"Upload failed ({exc.error_code}): {exc.message} {exc.details}")
    else:
        logger.info(f"Upload rejected ({exc.error_code}): {exc.message}")
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return _error_response(405, "Only POST requests are allowed")
    if exc.status_code == 404:
        return _error_response(404, "Not found")
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    """500 错误处理"""
    logger.error(f"Critical error in upload handler: {exc}", exc_info=True)
    return _error_response(500, str(exc) or "An unexpected error occurred during file upload")
