from pydantic import BaseModel


class StatsOut(BaseModel):
    patients: int
    doctors: int
    appointments: int
    invoices: int
