"""
auth/policy.py -- Which roles may invoke which route operation.

Static and read-only. Routes that only need an authenticated caller (reads,
user management) have no entry here; they depend on get_current_identity
alone.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType

from core.models import Role


class Operation(str, Enum):
    PROCUREMENT_CREATE = "procurement:create"
    PROCUREMENT_UPDATE = "procurement:update"
    PROCUREMENT_DELETE = "procurement:delete"
    SALE_CREATE = "sale:create"
    SALE_UPDATE = "sale:update"
    SALE_DELETE = "sale:delete"


ROLE_POLICY: Mapping[Operation, tuple[Role, ...]] = MappingProxyType(
    {
        Operation.PROCUREMENT_CREATE: (Role.MANAGER,),
        Operation.PROCUREMENT_UPDATE: (Role.MANAGER,),
        Operation.PROCUREMENT_DELETE: (Role.MANAGER,),
        Operation.SALE_CREATE: (Role.SALES_AGENT,),
        Operation.SALE_UPDATE: (Role.SALES_AGENT,),
        Operation.SALE_DELETE: (Role.SALES_AGENT,),
    }
)
