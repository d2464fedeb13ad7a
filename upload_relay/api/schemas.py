from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateUploadResponse(_CamelModel):
    upload_id: str = Field(alias="uploadId")
    key: str


class PartUploadResponse(_CamelModel):
    part_number: int = Field(alias="partNumber")
    url: str | None = None
    etag: str | None = None


class CompleteUploadResponse(BaseModel):
    url: str


class UploadTargetResponse(_CamelModel):
    upload_url: str = Field(alias="uploadUrl")
    url: str
    key: str
    method: str
    headers: dict[str, str]
    expires_in: int | None = Field(default=None, alias="expiresIn")
    original_filename: str = Field(alias="originalFilename")
