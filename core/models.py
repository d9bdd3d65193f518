"""
core/models.py -- Domain constants shared by every layer.

Closed enumerations only. All layers (api/, auth/, records/, CLI) import the
role, branch and sale-type vocabularies from here so the wire strings are
defined exactly once.
"""

from enum import Enum


class Role(str, Enum):
    """Closed set of account roles. Values are the wire strings clients send."""

    MANAGER = "Manager"
    SALES_AGENT = "Sales Agent"


class Branch(str, Enum):
    MAGANJO = "Maganjo"
    MATUGGA = "Matugga"


class SaleType(str, Enum):
    CASH = "Cash"
    CREDIT = "Credit"
