from pydantic import BaseModel


class ActionResponse(BaseModel):
    """Outcome of a mutation that returns no resource."""

    success: bool
    message: str


class CountResponse(ActionResponse):
    count: int
