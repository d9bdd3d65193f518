"""
api/routes/sales.py -- Cash and credit sales records.

Routes:
  POST   /sales/cash              -- record a cash sale (Sales Agent)
  POST   /sales/credit            -- record a credit sale (Sales Agent)
  GET    /sales                   -- list all sales (any authenticated user)
  GET    /sales/type/{sale_type}  -- list Cash or Credit sales only
  GET    /sales/{id}              -- sale detail (any authenticated user)
  PUT    /sales/{id}              -- partial update (Sales Agent)
  DELETE /sales/{id}              -- delete a sale (Sales Agent)

PUT validates against the schema of the stored sale's type, so a cash sale can
never acquire credit-only fields. The sale type itself is not updatable.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from api.dependencies import json_body, validated_body
from api.models import Envelope, MessageResponse, SaleOut, UserRef
from auth.dependencies import get_current_identity, require_role
from auth.models import Identity
from auth.policy import Operation
from core.errors import NotFound
from core.models import SaleType
from core.validation import FieldValidator, SchemaKind
from records.store import RecordKind, RecordStore, to_columns

router = APIRouter()

_SCHEMA_FOR_TYPE = {
    SaleType.CASH.value: SchemaKind.CASH_SALE,
    SaleType.CREDIT.value: SchemaKind.CREDIT_SALE,
}


def _hydrate(store: RecordStore, record: dict, users: dict[int, dict] | None = None) -> SaleOut:
    if users is None:
        user = store.find_by_id(RecordKind.USER, record["sales_agent_id"])
    else:
        user = users.get(record["sales_agent_id"])
    ref = UserRef.model_validate(user) if user is not None else None
    return SaleOut.model_validate({**record, "sales_agent": ref})


def _record_sale(request: Request, sale_type: SaleType, identity: Identity, body: dict) -> SaleOut:
    store: RecordStore = request.app.state.store
    fields = {**to_columns(body), "sale_type": sale_type.value, "sales_agent_id": identity.id}
    return _hydrate(store, store.create(RecordKind.SALE, fields))


@router.post("/sales/cash", response_model=Envelope[SaleOut], status_code=201)
def create_cash_sale(
    request: Request,
    identity: Identity = Depends(require_role(Operation.SALE_CREATE)),
    body: dict = Depends(validated_body(SchemaKind.CASH_SALE)),
) -> Envelope[SaleOut]:
    return Envelope[SaleOut](
        message="Cash sale recorded successfully",
        data=_record_sale(request, SaleType.CASH, identity, body),
    )


@router.post("/sales/credit", response_model=Envelope[SaleOut], status_code=201)
def create_credit_sale(
    request: Request,
    identity: Identity = Depends(require_role(Operation.SALE_CREATE)),
    body: dict = Depends(validated_body(SchemaKind.CREDIT_SALE)),
) -> Envelope[SaleOut]:
    return Envelope[SaleOut](
        message="Credit sale recorded successfully",
        data=_record_sale(request, SaleType.CREDIT, identity, body),
    )


@router.get("/sales", response_model=Envelope[list[SaleOut]])
def list_sales(
    request: Request,
    identity: Identity = Depends(get_current_identity),
) -> Envelope[list[SaleOut]]:
    store: RecordStore = request.app.state.store
    users = {u["id"]: u for u in store.find_all(RecordKind.USER)}
    data = [_hydrate(store, r, users) for r in store.find_all(RecordKind.SALE)]
    return Envelope[list[SaleOut]](message="Sales retrieved successfully", data=data)


@router.get("/sales/type/{sale_type}", response_model=Envelope[list[SaleOut]])
def list_sales_by_type(
    request: Request,
    sale_type: SaleType,
    identity: Identity = Depends(get_current_identity),
) -> Envelope[list[SaleOut]]:
    store: RecordStore = request.app.state.store
    users = {u["id"]: u for u in store.find_all(RecordKind.USER)}
    records = store.find_all(RecordKind.SALE, {"sale_type": sale_type.value})
    return Envelope[list[SaleOut]](
        message=f"{sale_type.value} sales retrieved successfully",
        data=[_hydrate(store, r, users) for r in records],
    )


@router.get("/sales/{record_id}", response_model=Envelope[SaleOut])
def get_sale(
    request: Request,
    record_id: int,
    identity: Identity = Depends(get_current_identity),
) -> Envelope[SaleOut]:
    store: RecordStore = request.app.state.store
    record = store.find_by_id(RecordKind.SALE, record_id)
    if record is None:
        raise NotFound("Sale")
    return Envelope[SaleOut](message="Sale retrieved successfully", data=_hydrate(store, record))


@router.put("/sales/{record_id}", response_model=Envelope[SaleOut])
def update_sale(
    request: Request,
    record_id: int,
    identity: Identity = Depends(require_role(Operation.SALE_UPDATE)),
    raw: Any = Depends(json_body),
) -> Envelope[SaleOut]:
    """Apply a partial update checked against the stored sale's own schema."""
    store: RecordStore = request.app.state.store
    existing = store.find_by_id(RecordKind.SALE, record_id)
    if existing is None:
        raise NotFound("Sale")

    validator: FieldValidator = request.app.state.validator
    changes = validator.validate(raw, _SCHEMA_FOR_TYPE[existing["sale_type"]], partial=True)
    record = store.update(RecordKind.SALE, record_id, to_columns(changes))
    if record is None:
        raise NotFound("Sale")
    return Envelope[SaleOut](message="Sale updated successfully", data=_hydrate(store, record))


@router.delete("/sales/{record_id}", response_model=MessageResponse)
def delete_sale(
    request: Request,
    record_id: int,
    identity: Identity = Depends(require_role(Operation.SALE_DELETE)),
) -> MessageResponse:
    store: RecordStore = request.app.state.store
    if store.delete(RecordKind.SALE, record_id) is None:
        raise NotFound("Sale")
    return MessageResponse(message="Sale deleted successfully")
