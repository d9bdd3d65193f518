"""
API response models for the KGL REST endpoints.

These Pydantic v2 models define the HTTP transport contract. Stored records
are snake_case dicts (records/store.py); the wire format is camelCase, so every
model here uses the to_camel alias generator and FastAPI serializes by alias.

Request bodies are modelled in core/validation.py (WireBody subclasses) and
checked through its FieldValidator, which reports the first violated rule.

Separation of concerns: records/ = storage truth; api/ models = API contract.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class Envelope(_WireModel, Generic[T]):
    """Success envelope: {"message": ..., "data": ...}."""

    message: str
    data: T


class MessageResponse(_WireModel):
    message: str


class ErrorResponse(_WireModel):
    """Uniform error body for every 4xx/5xx response."""

    message: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserRef(_WireModel):
    """Short user description embedded in procurement and sale records."""

    id: int
    username: str
    email: str
    role: str


class UserOut(_WireModel):
    """A user account as returned to callers. password_hash is never included."""

    id: int
    username: str
    email: str
    role: str
    contact: Optional[str] = None
    created_at: str
    updated_at: str


class LoginResponse(_WireModel):
    message: str
    token: str
    user: UserRef


class MeResponse(_WireModel):
    id: int
    username: str
    role: str


# ---------------------------------------------------------------------------
# Procurement
# ---------------------------------------------------------------------------


class ProcurementOut(_WireModel):
    id: int
    produce_name: str
    produce_type: str
    date: str
    time: str
    tonnage: float
    cost: float
    dealer_name: str
    branch: str
    contact: str
    selling_price: float
    recorded_by: int
    recorded_by_user: Optional[UserRef] = None
    created_at: str
    updated_at: str


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


class SaleOut(_WireModel):
    """A cash or credit sale. Fields that do not apply to sale_type are null."""

    id: int
    sale_type: str
    produce_name: str
    produce_type: Optional[str] = None
    tonnage: float
    amount_paid: Optional[float] = None
    amount_due: Optional[float] = None
    buyer_name: str
    nin: Optional[str] = None
    location: Optional[str] = None
    contact: Optional[str] = None
    sales_agent_name: str
    sales_agent_id: int
    sales_agent: Optional[UserRef] = None
    date: Optional[str] = None
    time: Optional[str] = None
    due_date: Optional[str] = None
    dispatch_date: Optional[str] = None
    created_at: str
    updated_at: str


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class HealthResponse(_WireModel):
    status: str = "healthy"
    version: str
    components: dict[str, str]


class RootResponse(_WireModel):
    message: str
    version: str
    documentation: str
