from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CreateAsset(CamelModel):
    gmr_vmr_no: str = Field(min_length=1, max_length=100)
    case_no: str = Field(min_length=1, max_length=100)
    description: str | None = None
    location: str | None = Field(default=None, max_length=200)
    officer: str | None = Field(default=None, max_length=200)
    remarks: str | None = None

    model_config = ConfigDict(str_strip_whitespace=True)


class Asset(CreateAsset):
    id: int
    created_at: datetime
    updated_at: datetime


class AssetList(CamelModel):
    assets: list[Asset]


class BookCreated(BaseModel):
    message: str
    sr_no: int | float = Field(serialization_alias="srNo")


class BookMessage(BaseModel):
    message: str
