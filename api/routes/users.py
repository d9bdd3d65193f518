"""
api/routes/users.py -- Login and user account management endpoints.

Routes:
  POST   /users/login       -- username-or-email + password login; returns a token
  GET    /users/me          -- identity of the caller (requires auth)
  POST   /users             -- create account (requires auth)
  GET    /users             -- list accounts (requires auth)
  GET    /users/{id}        -- account detail (requires auth)
  PUT    /users/{id}        -- partial update; password is re-hashed (requires auth)
  DELETE /users/{id}        -- delete account (requires auth)

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  CredentialVerifier.authenticate() provides timing equalization -- use it,
  never inline a lookup + verify.
  Wrong username and wrong password both return 401 "Invalid credentials".
  Cache-Control: no-store on login responses.
  password_hash is never serialized: UserOut has no such field.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.dependencies import validated_body
from api.limiter import limiter, login_limit
from api.models import Envelope, LoginResponse, MeResponse, MessageResponse, UserOut, UserRef
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.passwords import CredentialVerifier
from auth.tokens import TokenService
from core.errors import CredentialMismatch, DuplicateIdentity, NotFound
from core.validation import SchemaKind
from records.store import RecordKind, RecordStore, to_columns

# Auth policy:
# - POST /users/login: public -- login endpoint must be unauthenticated
# - everything else:   requires a valid bearer token (get_current_identity)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(login_limit)
@router.post("/users/login", response_model=LoginResponse)
def login(
    request: Request,
    body: dict = Depends(validated_body(SchemaKind.LOGIN)),
) -> JSONResponse:
    """Authenticate with username (or email) and password; return a bearer token."""
    store: RecordStore = request.app.state.store
    verifier: CredentialVerifier = request.app.state.credentials
    try:
        user = verifier.authenticate(store, body["username"], body["password"])
    except CredentialMismatch as exc:
        resp = JSONResponse(status_code=exc.status_code, content={"message": exc.message})
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token_service: TokenService = request.app.state.token_service
    token = token_service.issue(user.identity())
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            message="Login successful",
            token=token,
            user=UserRef(id=user.id, username=user.username, email=user.email, role=user.role.value),
        ).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/users/me", response_model=MeResponse)
def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return the identity carried by the caller's token."""
    return MeResponse(id=identity.id, username=identity.username, role=identity.role.value)


@router.post("/users", response_model=Envelope[UserOut], status_code=201)
def create_user(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    body: dict = Depends(validated_body(SchemaKind.USER)),
) -> Envelope[UserOut]:
    """Create a Manager or Sales Agent account. No token is issued here."""
    store: RecordStore = request.app.state.store
    verifier: CredentialVerifier = request.app.state.credentials

    _ensure_unique(store, body.get("username"), body.get("email"))
    fields = to_columns({k: v for k, v in body.items() if k != "password"})
    fields["password_hash"] = verifier.hash(body["password"])
    try:
        record = store.create(RecordKind.USER, fields)
    except IntegrityError as exc:
        raise DuplicateIdentity() from exc
    return Envelope[UserOut](message="User created successfully", data=UserOut.model_validate(record))


@router.get("/users", response_model=Envelope[list[UserOut]])
def list_users(
    request: Request,
    identity: Identity = Depends(get_current_identity),
) -> Envelope[list[UserOut]]:
    store: RecordStore = request.app.state.store
    users = [UserOut.model_validate(r) for r in store.find_all(RecordKind.USER)]
    return Envelope[list[UserOut]](message="Users retrieved successfully", data=users)


@router.get("/users/{record_id}", response_model=Envelope[UserOut])
def get_user(
    request: Request,
    record_id: int,
    identity: Identity = Depends(get_current_identity),
) -> Envelope[UserOut]:
    store: RecordStore = request.app.state.store
    record = store.find_by_id(RecordKind.USER, record_id)
    if record is None:
        raise NotFound("User")
    return Envelope[UserOut](message="User retrieved successfully", data=UserOut.model_validate(record))


@router.put("/users/{record_id}", response_model=Envelope[UserOut])
def update_user(
    request: Request,
    record_id: int,
    identity: Identity = Depends(get_current_identity),
    body: dict = Depends(validated_body(SchemaKind.USER, partial=True)),
) -> Envelope[UserOut]:
    """Update any subset of username, email, password, role, contact."""
    store: RecordStore = request.app.state.store
    verifier: CredentialVerifier = request.app.state.credentials

    if store.find_by_id(RecordKind.USER, record_id) is None:
        raise NotFound("User")
    _ensure_unique(store, body.get("username"), body.get("email"), exclude_id=record_id)

    changes = {k: v for k, v in body.items() if k != "password"}
    fields = to_columns(changes)
    if "password" in body:
        fields["password_hash"] = verifier.hash(body["password"])
    try:
        record = store.update(RecordKind.USER, record_id, fields)
    except IntegrityError as exc:
        raise DuplicateIdentity() from exc
    if record is None:
        raise NotFound("User")
    return Envelope[UserOut](message="User updated successfully", data=UserOut.model_validate(record))


@router.delete("/users/{record_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    record_id: int,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    store: RecordStore = request.app.state.store
    if store.delete(RecordKind.USER, record_id) is None:
        raise NotFound("User")
    return MessageResponse(message="User deleted successfully")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ensure_unique(
    store: RecordStore,
    username: str | None,
    email: str | None,
    exclude_id: int | None = None,
) -> None:
    """Raise DuplicateIdentity if another account already holds username or email.

    The UNIQUE constraints remain the final guard against concurrent creates;
    this check gives the common case a clean 400 without relying on them.
    """
    for column, value in (("username", username), ("email", email)):
        if value is None:
            continue
        for existing in store.find_all(RecordKind.USER, {column: value}):
            if existing["id"] != exclude_id:
                raise DuplicateIdentity()
