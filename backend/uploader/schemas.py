from pydantic import BaseModel
from typing import Optional


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class UploadResponse(BaseModel):
    success: bool = True
    message: str = "File uploaded successfully!"
    url: str
    github_url: Optional[str] = None
    path_in_repo: str
    branch: str
    file_type: Optional[str] = None
    file_size: int


class HealthResponse(BaseModel):
    status: str
    service: str
