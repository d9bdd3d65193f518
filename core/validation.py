"""
core/validation.py -- Request body models for every record kind.

Each body is a pydantic v2 model. Fields are declared in the order they are
checked and carry camelCase wire aliases. Per field the checks run in a fixed
order:
  1. required -- key absent, None, or a blank string (BeforeValidator)
  2. type     -- pydantic's own coercion (str / float / datetime)
  3. rules    -- AfterValidators in declared order, each raising
                 PydanticCustomError with the user-facing message
Keys a model does not declare fail with extra="forbid"; pydantic reports
those after every declared field.

FieldValidator wraps model_validate and turns the FIRST pydantic error into a
core.errors.ValidationError, so a response always names exactly one problem
and the same bad input always produces the same message.

Normalization is pydantic's: strings other than passwords are stripped
(str_strip_whitespace), numeric strings become floats, dates (ISO strings or
epoch seconds / milliseconds) become YYYY-MM-DD. The input mapping is never
mutated; validate() returns a new dict keyed by wire name holding only the
declared fields that were supplied.

The kind -> model table is passed to FieldValidator at construction.
DEFAULT_SCHEMAS is what the app uses; tests can inject their own table.

Layer rule: core/ is the kernel. No imports from api/, auth/ or records/.
"""

import re
from collections.abc import Callable, Mapping
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    StringConstraints,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from pydantic.fields import FieldInfo
from pydantic_core import PydanticCustomError

from core.errors import ValidationError
from core.models import Branch, Role

# ---------------------------------------------------------------------------
# Patterns (matched with re.fullmatch -- no anchors needed)
# ---------------------------------------------------------------------------

_NAME_RE = r"[A-Za-z0-9 ]+"
_ALPHA_RE = r"[A-Za-z ]+"
_ALNUM_RE = r"[A-Za-z0-9]+"
_TIME_RE = r"([01][0-9]|2[0-3]):[0-5][0-9]"
_PHONE_RE = r"(\+256|0)[0-9]{9}"
_NIN_RE = r"[0-9]{14}"
_EMAIL_RE = r"[^\s@]+@[^\s@]+\.[^\s@]+"

_MIN_AMOUNT_UGX = 10_000

_BRANCHES = tuple(b.value for b in Branch)
_ROLES = tuple(r.value for r in Role)


class SchemaKind(str, Enum):
    PROCUREMENT = "procurement"
    CASH_SALE = "cash_sale"
    CREDIT_SALE = "credit_sale"
    USER = "user"
    LOGIN = "login"


# ---------------------------------------------------------------------------
# Rules -- AfterValidators raising PydanticCustomError(rule_name, message)
# ---------------------------------------------------------------------------

_RULE_NAMES = frozenset({"required", "type", "pattern", "min_length", "min", "enum"})


def _rule(name: str, ok: Callable[[Any], bool], message: str) -> AfterValidator:
    def check(value: Any) -> Any:
        # None only reaches here for an omitted optional field
        if value is not None and not ok(value):
            raise PydanticCustomError(name, message)
        return value

    return AfterValidator(check)


def pattern(regex: str, message: str) -> AfterValidator:
    compiled = re.compile(regex)
    return _rule("pattern", lambda v: compiled.fullmatch(v) is not None, message)


def min_length(n: int, message: str) -> AfterValidator:
    return _rule("min_length", lambda v: len(v) >= n, message)


def minimum(n: float, message: str) -> AfterValidator:
    return _rule("min", lambda v: v >= n, message)


def one_of(values: tuple[str, ...], message: str) -> AfterValidator:
    return _rule("enum", lambda v: v in values, message)


def _presence(label: str, required: bool = True, number: bool = False) -> BeforeValidator:
    """Treat None and blank strings as missing; keep bools out of number fields."""

    def check(value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                raise PydanticCustomError("required", f"{label} is required")
            return None
        if number and isinstance(value, bool):
            raise PydanticCustomError("type", f"{label} must be a number")
        return value

    return BeforeValidator(check)


def _iso_date(value: datetime) -> str:
    return value.date().isoformat()


# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------


def text_field(label: str, *rules: AfterValidator, required: bool = True) -> Any:
    base = str if required else Optional[str]
    return Annotated[(base, Field(title=label), _presence(label, required), *rules)]


def secret_field(label: str, *rules: AfterValidator) -> Any:
    # passwords are taken verbatim
    base = Annotated[str, StringConstraints(strip_whitespace=False)]
    return Annotated[(base, Field(title=label), _presence(label), *rules)]


def number_field(label: str, *rules: AfterValidator) -> Any:
    return Annotated[(float, Field(title=label, allow_inf_nan=False), _presence(label, number=True), *rules)]


def date_field(label: str) -> Any:
    # kept as datetime during validation; dumped as YYYY-MM-DD
    return Annotated[datetime, Field(title=label), _presence(label), PlainSerializer(_iso_date, return_type=str)]


class WireBody(BaseModel):
    """Base for request bodies: camelCase keys, stripped strings, no extra keys.

    Every field defaults to None so partial updates can omit fields;
    FieldValidator supplies None for omitted fields in full mode, which the
    required check then rejects.
    """

    model_config = ConfigDict(alias_generator=to_camel, extra="forbid", str_strip_whitespace=True)


# ---------------------------------------------------------------------------
# Bodies
# ---------------------------------------------------------------------------


class ProcurementBody(WireBody):
    produce_name: text_field(
        "Produce name",
        pattern(_NAME_RE, "Produce name must contain only alphanumeric characters and spaces"),
    ) = None
    produce_type: text_field(
        "Produce type",
        pattern(_ALPHA_RE, "Produce type must contain only alphabetic characters"),
        min_length(2, "Produce type must be at least 2 characters"),
    ) = None
    date: date_field("Date") = None
    time: text_field("Time", pattern(_TIME_RE, "Time must be in HH:MM format")) = None
    tonnage: number_field("Tonnage", minimum(100, "Tonnage must be minimum 100kg")) = None
    cost: number_field("Cost", minimum(_MIN_AMOUNT_UGX, "Cost must be minimum 10000 UgX")) = None
    dealer_name: text_field(
        "Dealer name",
        pattern(_NAME_RE, "Dealer name must contain only alphanumeric characters and spaces"),
        min_length(2, "Dealer name must be at least 2 characters"),
    ) = None
    branch: text_field("Branch", one_of(_BRANCHES, "Branch must be either Maganjo or Matugga")) = None
    contact: text_field("Contact", pattern(_PHONE_RE, "Contact must be a valid Ugandan phone number")) = None
    selling_price: number_field(
        "Selling price",
        minimum(_MIN_AMOUNT_UGX, "Selling price must be minimum 10000 UgX"),
    ) = None


class CashSaleBody(WireBody):
    produce_name: text_field(
        "Produce name",
        pattern(_NAME_RE, "Produce name must contain only alphanumeric characters and spaces"),
    ) = None
    tonnage: number_field("Tonnage", minimum(1, "Tonnage must be minimum 1kg")) = None
    amount_paid: number_field(
        "Amount paid",
        minimum(_MIN_AMOUNT_UGX, "Amount paid must be minimum 10000 UgX"),
    ) = None
    buyer_name: text_field(
        "Buyer name",
        pattern(_NAME_RE, "Buyer name must contain only alphanumeric characters and spaces"),
        min_length(2, "Buyer name must be at least 2 characters"),
    ) = None
    sales_agent_name: text_field(
        "Sales agent name",
        pattern(_NAME_RE, "Sales agent name must contain only alphanumeric characters and spaces"),
        min_length(2, "Sales agent name must be at least 2 characters"),
    ) = None
    date: date_field("Date") = None
    time: text_field("Time", pattern(_TIME_RE, "Time must be in HH:MM format")) = None


class CreditSaleBody(WireBody):
    buyer_name: text_field(
        "Buyer name",
        pattern(_NAME_RE, "Buyer name must contain only alphanumeric characters and spaces"),
        min_length(2, "Buyer name must be at least 2 characters"),
    ) = None
    nin: text_field("NIN", pattern(_NIN_RE, "NIN must be 14 digits")) = None
    location: text_field(
        "Location",
        pattern(_NAME_RE, "Location must contain only alphanumeric characters and spaces"),
        min_length(2, "Location must be at least 2 characters"),
    ) = None
    contact: text_field("Contact", pattern(_PHONE_RE, "Contact must be a valid Ugandan phone number")) = None
    amount_due: number_field(
        "Amount due",
        minimum(_MIN_AMOUNT_UGX, "Amount due must be minimum 10000 UgX"),
    ) = None
    sales_agent_name: text_field(
        "Sales agent name",
        pattern(_NAME_RE, "Sales agent name must contain only alphanumeric characters and spaces"),
        min_length(2, "Sales agent name must be at least 2 characters"),
    ) = None
    due_date: date_field("Due date") = None
    produce_name: text_field(
        "Produce name",
        pattern(_NAME_RE, "Produce name must contain only alphanumeric characters and spaces"),
    ) = None
    produce_type: text_field(
        "Produce type",
        pattern(_ALPHA_RE, "Produce type must contain only alphabetic characters"),
        min_length(2, "Produce type must be at least 2 characters"),
    ) = None
    tonnage: number_field("Tonnage", minimum(1, "Tonnage must be minimum 1kg")) = None
    dispatch_date: date_field("Dispatch date") = None


class UserBody(WireBody):
    username: text_field(
        "Username",
        pattern(_ALNUM_RE, "Username must contain only alphanumeric characters"),
        min_length(2, "Username must be at least 2 characters"),
    ) = None
    email: text_field("Email", pattern(_EMAIL_RE, "Email must be a valid email address")) = None
    password: secret_field("Password", min_length(6, "Password must be at least 6 characters")) = None
    role: text_field("Role", one_of(_ROLES, "Role must be either Manager or Sales Agent")) = None
    contact: text_field(
        "Contact",
        pattern(_PHONE_RE, "Contact must be a valid Ugandan phone number"),
        required=False,
    ) = None


class LoginBody(WireBody):
    username: text_field("Username") = None
    password: secret_field("Password") = None


DEFAULT_SCHEMAS: Mapping[SchemaKind, type[WireBody]] = {
    SchemaKind.PROCUREMENT: ProcurementBody,
    SchemaKind.CASH_SALE: CashSaleBody,
    SchemaKind.CREDIT_SALE: CreditSaleBody,
    SchemaKind.USER: UserBody,
    SchemaKind.LOGIN: LoginBody,
}


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

# pydantic error type prefix -> wording of our single "type" message
_TYPE_MESSAGES = {
    "string": "must be a string",
    "float": "must be a number",
    "finite": "must be a number",
    "datetime": "must be a valid date",
}


def _wire_fields(model: type[BaseModel]) -> dict[str, FieldInfo]:
    return {info.alias or name: info for name, info in model.model_fields.items()}


def _first_violation(exc: PydanticValidationError, fields: Mapping[str, FieldInfo]) -> ValidationError:
    error = exc.errors()[0]
    name = str(error["loc"][0]) if error["loc"] else "body"
    kind = error["type"]
    if kind == "extra_forbidden":
        return ValidationError(name, "unknown", f'"{name}" is not allowed')
    if kind in _RULE_NAMES:
        return ValidationError(name, kind, error["msg"])

    info = fields.get(name)
    label = info.title if info is not None and info.title else name
    wording = _TYPE_MESSAGES.get(kind.split("_")[0], "is invalid")
    return ValidationError(name, "type", f"{label} {wording}")


class FieldValidator:
    """Validate raw request input against a body model, first violation wins.

    Usage:
        validator = FieldValidator()
        fields = validator.validate(body, SchemaKind.PROCUREMENT)
        changes = validator.validate(body, SchemaKind.CASH_SALE, partial=True)
    """

    def __init__(self, schemas: Mapping[SchemaKind, type[BaseModel]] = DEFAULT_SCHEMAS) -> None:
        self._schemas = dict(schemas)

    def validate(self, raw: Any, kind: SchemaKind, partial: bool = False) -> dict[str, Any]:
        """Return the normalized input keyed by wire name, or raise ValidationError.

        partial=True skips fields that are absent from raw (used for updates).
        A field that is present but blank still fails its required check.
        """
        if not isinstance(raw, Mapping):
            raise ValidationError("body", "type", "Request body must be a JSON object")

        model = self._schemas[kind]
        fields = _wire_fields(model)
        data = dict(raw) if partial else {**dict.fromkeys(fields), **raw}
        try:
            parsed = model.model_validate(data)
        except PydanticValidationError as exc:
            raise _first_violation(exc, fields) from None
        return parsed.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
