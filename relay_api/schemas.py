from pydantic import BaseModel


class UploadData(BaseModel):
    url: str
    is_public: bool


class UploadResponse(BaseModel):
    code: int = 0
    data: UploadData
    msg: str


class ErrorResponse(BaseModel):
    code: int
    msg: str
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    message: str
