from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.summaries import ServiceSummary, UserSummary


class ClinicUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: str = Field(min_length=1, max_length=300)
    phone: str = Field(min_length=1, max_length=50)


class ClinicCounts(BaseModel):
    users: int
    services: int
    appointments: int


class ClinicOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: str
    phone: str
    created_at: datetime
    users: list[UserSummary] = []
    services: list[ServiceSummary] = []
    counts: ClinicCounts
