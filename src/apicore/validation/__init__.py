"""
Declarative input validation.

Exports:
- Validator: evaluates field rules against input data
- parse_rules: parses "required|min:6" into constraints
- Constraint, ValidationRule: parsed rule types
- RULES: the constraint registry
"""

from .rules import RULES, is_email, is_numeric
from .validator import Constraint, ValidationRule, Validator, parse_rules

__all__ = [
    "RULES",
    "is_email",
    "is_numeric",
    "Constraint",
    "ValidationRule",
    "Validator",
    "parse_rules",
]
