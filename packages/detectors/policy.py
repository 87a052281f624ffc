# Name tables behind the detector heuristics. Edit policy here, not in the traversals.
from __future__ import annotations

# Callee identifiers that transfer control or value out of the contract.
EXTERNAL_CALL_NAMES = frozenset({"call", "send", "transfer"})

# Calls treated as state writes when they follow an external call.
REENTRANCY_STATE_CALLS = frozenset({"transfer", "mint", "burn", "approve"})

# Calls treated as state writes by the access-control check.
STATE_MUTATING_CALLS = frozenset(
    {"transfer", "mint", "burn", "approve", "transferFrom", "push", "pop", "delete"}
)

READ_ONLY_MUTABILITY = frozenset({"view", "pure"})

ACCESS_CONTROL_MODIFIERS = (
    "onlyOwner",
    "onlyAdmin",
    "onlyMinter",
    "onlyBurner",
    "onlyAuthorized",
    "onlyGovernance",
    "onlyController",
    "requireAuth",
    "onlyRole",
)
OWNER_MODIFIERS = frozenset({"onlyOwner", "onlyAdmin"})
OWNER_VARIABLES = frozenset({"owner", "admin", "_owner"})
OWNERSHIP_TRANSFER_NAMES = ("transferownership", "changeowner", "setowner")

# Lowercase substrings that make an unguarded function HIGH instead of MEDIUM.
DANGEROUS_FUNCTION_NAMES = ("transfer", "withdraw", "mint", "burn", "destroy")

OVERFLOW_OPERATORS = frozenset({"+", "-", "*", "**"})
OVERFLOW_ASSIGNMENTS = frozenset({"+=", "-=", "*="})
SAFE_MATH_LIBRARY = "SafeMath"
CHECKED_ARITHMETIC_MINOR = 8
VERSION_PATTERN = r"(\d+)\.(\d+)\.(\d+)"

LOOP_LENGTH_TERM = "length"
LOOP_BOUND_TERMS = ("min",)
STORAGE_READ_THRESHOLD = 2
REPEATED_CALL_THRESHOLD = 1
