"""City model returned by the locations endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class City(BaseModel):
    """A city suggestion, serialized as ``{"cityName": ...}``."""

    model_config = ConfigDict(populate_by_name=True)

    city_name: str = Field(alias="cityName", min_length=1)
