"""
=============================================================================
VALIDATION CONSTRAINTS
=============================================================================

Each constraint is a function

    check(field, value, param) -> Optional[str]

returning None when the value passes and the error message otherwise.
`value` is None when the field is absent. Every constraint except
"required" passes on None: absence is "required"'s job to report.

    ┌──────────┬──────────────────────────────────────────────────────────┐
    │ required │ not None, not "", not an empty list/dict                │
    │ optional │ always passes                                           │
    │ string   │ must be a str                                           │
    │ email    │ must look like local@domain.tld                         │
    │ numeric  │ int/float (not bool) or a numeric string                │
    │ min:N    │ str: at least N characters, then a numeric str or      │
    │          │ number must be at least N                               │
    │ max:N    │ str: at most N characters, then a numeric str or       │
    │          │ number must be at most N                                │
    └──────────┴──────────────────────────────────────────────────────────┘

=============================================================================
"""

from typing import Any, Callable, Dict, Optional
import re


Check = Callable[[str, Any, Optional[str]], Optional[str]]

# Constraints whose parameter must be an integer
PARAMETERIZED = frozenset({"min", "max"})

_NUMERIC = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")

_EMAIL = re.compile(
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,63}$"
)


def is_numeric(value: Any) -> bool:
    """
    True for numbers and numeric strings.

        is_numeric(3)        → True
        is_numeric("4.5e3")  → True
        is_numeric(" 12 ")   → True
        is_numeric("12abc")  → False
        is_numeric(True)     → False
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and bool(_NUMERIC.match(value))


def is_email(value: Any) -> bool:
    return isinstance(value, str) and len(value) <= 254 and bool(_EMAIL.match(value))


# =============================================================================
# CONSTRAINTS
# =============================================================================

def required(field: str, value: Any, param: Optional[str] = None) -> Optional[str]:
    if value is None or value == "" or (isinstance(value, (list, dict)) and not value):
        return f"{field} is required"
    return None


def optional(field: str, value: Any, param: Optional[str] = None) -> Optional[str]:
    return None


def string(field: str, value: Any, param: Optional[str] = None) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        return f"{field} must be a string"
    return None


def email(field: str, value: Any, param: Optional[str] = None) -> Optional[str]:
    if value is not None and not is_email(value):
        return f"The {field} must be a valid email address"
    return None


def numeric(field: str, value: Any, param: Optional[str] = None) -> Optional[str]:
    if value is not None and not is_numeric(value):
        return f"The {field} must be numeric"
    return None


def minimum(field: str, value: Any, param: Optional[str] = None) -> Optional[str]:
    if value is None or param is None:
        return None
    limit = int(param)
    if isinstance(value, str) and len(value) < limit:
        return f"The {field} must be at least {limit} characters"
    # numeric strings also compare by value once their length passes
    if is_numeric(value) and float(value) < limit:
        return f"The {field} must be at least {limit}"
    return None


def maximum(field: str, value: Any, param: Optional[str] = None) -> Optional[str]:
    if value is None or param is None:
        return None
    limit = int(param)
    if isinstance(value, str) and len(value) > limit:
        return f"The {field} may not be greater than {limit} characters"
    if is_numeric(value) and float(value) > limit:
        return f"The {field} may not be greater than {limit}"
    return None


RULES: Dict[str, Check] = {
    "required": required,
    "optional": optional,
    "string": string,
    "email": email,
    "numeric": numeric,
    "min": minimum,
    "max": maximum,
}
