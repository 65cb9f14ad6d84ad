"""Pydantic schemas for the cancellation consent protocol."""
from contract_engine.schemas.contract import ActorPayload


class CancellationRequestCreate(ActorPayload):
    reason: str


class CancellationResponse(ActorPayload):
    """Confirm / reject / withdraw: only the acting party is needed."""
