"""
api/routes/procurement.py -- Produce procurement records.

Routes:
  POST   /procurement       -- record a procurement (Manager)
  GET    /procurement       -- list procurements (any authenticated user)
  GET    /procurement/{id}  -- procurement detail (any authenticated user)
  PUT    /procurement/{id}  -- replace a procurement; full schema (Manager)
  DELETE /procurement/{id}  -- delete a procurement (Manager)

Every record returned carries recordedByUser, the Manager who created it, when
that account still exists.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.dependencies import validated_body
from api.models import Envelope, MessageResponse, ProcurementOut, UserRef
from auth.dependencies import get_current_identity, require_role
from auth.models import Identity
from auth.policy import Operation
from core.errors import NotFound
from core.validation import SchemaKind
from records.store import RecordKind, RecordStore, to_columns

router = APIRouter()


def _hydrate(store: RecordStore, record: dict, users: dict[int, dict] | None = None) -> ProcurementOut:
    """Attach the recording Manager's UserRef to a stored procurement."""
    if users is None:
        user = store.find_by_id(RecordKind.USER, record["recorded_by"])
    else:
        user = users.get(record["recorded_by"])
    ref = UserRef.model_validate(user) if user is not None else None
    return ProcurementOut.model_validate({**record, "recorded_by_user": ref})


@router.post("/procurement", response_model=Envelope[ProcurementOut], status_code=201)
def create_procurement(
    request: Request,
    identity: Identity = Depends(require_role(Operation.PROCUREMENT_CREATE)),
    body: dict = Depends(validated_body(SchemaKind.PROCUREMENT)),
) -> Envelope[ProcurementOut]:
    store: RecordStore = request.app.state.store
    record = store.create(RecordKind.PROCUREMENT, {**to_columns(body), "recorded_by": identity.id})
    return Envelope[ProcurementOut](
        message="Procurement recorded successfully",
        data=_hydrate(store, record),
    )


@router.get("/procurement", response_model=Envelope[list[ProcurementOut]])
def list_procurements(
    request: Request,
    identity: Identity = Depends(get_current_identity),
) -> Envelope[list[ProcurementOut]]:
    store: RecordStore = request.app.state.store
    users = {u["id"]: u for u in store.find_all(RecordKind.USER)}
    data = [_hydrate(store, r, users) for r in store.find_all(RecordKind.PROCUREMENT)]
    return Envelope[list[ProcurementOut]](message="Procurements retrieved successfully", data=data)


@router.get("/procurement/{record_id}", response_model=Envelope[ProcurementOut])
def get_procurement(
    request: Request,
    record_id: int,
    identity: Identity = Depends(get_current_identity),
) -> Envelope[ProcurementOut]:
    store: RecordStore = request.app.state.store
    record = store.find_by_id(RecordKind.PROCUREMENT, record_id)
    if record is None:
        raise NotFound("Procurement")
    return Envelope[ProcurementOut](
        message="Procurement retrieved successfully",
        data=_hydrate(store, record),
    )


@router.put("/procurement/{record_id}", response_model=Envelope[ProcurementOut])
def update_procurement(
    request: Request,
    record_id: int,
    identity: Identity = Depends(require_role(Operation.PROCUREMENT_UPDATE)),
    body: dict = Depends(validated_body(SchemaKind.PROCUREMENT)),
) -> Envelope[ProcurementOut]:
    store: RecordStore = request.app.state.store
    record = store.update(RecordKind.PROCUREMENT, record_id, to_columns(body))
    if record is None:
        raise NotFound("Procurement")
    return Envelope[ProcurementOut](
        message="Procurement updated successfully",
        data=_hydrate(store, record),
    )


@router.delete("/procurement/{record_id}", response_model=MessageResponse)
def delete_procurement(
    request: Request,
    record_id: int,
    identity: Identity = Depends(require_role(Operation.PROCUREMENT_DELETE)),
) -> MessageResponse:
    store: RecordStore = request.app.state.store
    if store.delete(RecordKind.PROCUREMENT, record_id) is None:
        raise NotFound("Procurement")
    return MessageResponse(message="Procurement deleted successfully")
