"""
zkvoid Core Types
"""

from zkvoid.core.types import (
    Note,
    WithdrawalRequest,
    MembershipPath,
    Inserted,
    Spent,
    is_field_element,
    to_field,
    field_to_hex,
    field_from_hex,
    address_to_field,
)

__all__ = [
    # Data
    "Note",
    "WithdrawalRequest",
    "MembershipPath",
    # Events
    "Inserted",
    "Spent",
    # Field helpers
    "is_field_element",
    "to_field",
    "field_to_hex",
    "field_from_hex",
    "address_to_field",
]
