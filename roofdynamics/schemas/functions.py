"""Request bodies for the stage function endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class StageRequest(BaseModel):
    """Body for stages that only need the run id."""

    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(alias="runId")


class ImageryRequest(StageRequest):
    """Body for the imagery stage."""

    address: str
