"""
=============================================================================
RULE PARSER AND VALIDATOR
=============================================================================

Rules are declared per field as pipe-delimited strings:

    {
        "name":     "required|string|max:100",
        "email":    "required|email",
        "password": "required|min:6",
        "price":    "required|numeric",
    }

    "required|min:6"
         │
         ▼  parse_rules()
    (Constraint("required"), Constraint("min", "6"))

Rule strings are parsed once, when the Validator is built. Every
constraint of a field is evaluated on every pass, even after an earlier
one failed, so the caller sees all problems at once:

    Validator({"password": "required|min:6"}).validate({})
    # {"password": ["password is required"]}

    Validator({"password": "min:6|max:4"}).validate({"password": "abcde"})
    # {"password": ["The password must be at least 6 characters",
    #               "The password may not be greater than 4 characters"]}

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging

from ..errors import ConfigurationFault
from .rules import RULES, PARAMETERIZED


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Constraint:
    """One token of a rule string: name plus optional parameter."""

    name: str
    param: Optional[str] = None

    @property
    def is_known(self) -> bool:
        return self.name in RULES

    def evaluate(self, field: str, value: Any) -> Optional[str]:
        """Error message, or None on pass. Unknown constraints pass."""
        check = RULES.get(self.name)
        if check is None:
            return None
        return check(field, value, self.param)


@dataclass(frozen=True)
class ValidationRule:
    """A field and its ordered constraints."""

    field: str
    constraints: Tuple[Constraint, ...]

    def evaluate(self, value: Any) -> List[str]:
        """All messages for this value, in constraint order."""
        messages = []
        for constraint in self.constraints:
            message = constraint.evaluate(self.field, value)
            if message is not None:
                messages.append(message)
        return messages


def parse_rules(rule_string: str) -> Tuple[Constraint, ...]:
    """
    Split a rule string into constraints.

        "required | min:6"  → (Constraint("required"), Constraint("min", "6"))
        "regex:a:b"         → (Constraint("regex", "a:b"),)

    Tokens are trimmed; empty tokens are dropped. Only the first ":"
    separates name and parameter.
    """
    constraints = []
    for token in rule_string.split("|"):
        token = token.strip()
        if not token:
            continue
        name, sep, param = token.partition(":")
        constraints.append(Constraint(name.strip(), param.strip() if sep else None))
    return tuple(constraints)


def _check_constraint(field: str, constraint: Constraint, strict: bool) -> None:
    if not constraint.is_known:
        if strict:
            raise ConfigurationFault(f"Unknown validation rule '{constraint.name}' for field '{field}'")
        logger.warning(f"Unknown validation rule '{constraint.name}' for field '{field}' always passes")
        return

    if constraint.name in PARAMETERIZED and constraint.param is not None:
        try:
            int(constraint.param)
        except ValueError:
            raise ConfigurationFault(
                f"Rule '{constraint.name}' for field '{field}' needs an integer, got '{constraint.param}'"
            )


class Validator:
    """
    Validates a mapping of input values against declared rules.

    Usage:
        validator = Validator({"email": "required|email"})
        errors = validator.validate({"email": "nope"})
        # {"email": ["The email must be a valid email address"]}
        validator.passes({"email": "a@example.com"})   # True
    """

    def __init__(self, rules: Mapping[str, str], strict: bool = False):
        """
        Args:
            rules: field -> rule string
            strict: Reject unknown rule names instead of passing them

        Raises:
            ConfigurationFault: malformed min/max parameter, or an
                unknown rule name when strict.
        """
        self.strict = strict
        self.rules: Tuple[ValidationRule, ...] = tuple(
            ValidationRule(field, parse_rules(rule_string))
            for field, rule_string in rules.items()
        )
        for rule in self.rules:
            for constraint in rule.constraints:
                _check_constraint(rule.field, constraint, strict)

    def validate(self, data: Mapping[str, Any]) -> Dict[str, List[str]]:
        """
        Evaluate every rule against `data`.

        Returns:
            field -> messages, only for fields with at least one failure
        """
        errors: Dict[str, List[str]] = {}
        for rule in self.rules:
            messages = rule.evaluate(data.get(rule.field))
            if messages:
                errors[rule.field] = messages
        return errors

    def passes(self, data: Mapping[str, Any]) -> bool:
        return not self.validate(data)

    @staticmethod
    def flatten(errors: Mapping[str, List[str]], separator: str = ", ") -> Dict[str, str]:
        """Join each field's messages into one string."""
        return {field: separator.join(messages) for field, messages in errors.items()}
