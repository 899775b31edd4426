"""
Validation middleware: rejects requests whose input breaks the declared rules.

    router.post(
        "/products",
        create_product,
        middleware=[ValidationMiddleware({"name": "required|string", "email": "required|email"})],
    )

The input is the query merged with the body (body wins). Any failure
answers 422 with one joined message per field:

    {
      "success": false,
      "message": "Validation failed",
      "errors": {"email": "email is required, The email must be a valid email address"}
    }
"""

from typing import Mapping

from ..http.request import Request
from ..http.response import validation_failed
from ..validation import Validator
from .base import GuardMiddleware, Outcome, Terminal, CONTINUE


class ValidationMiddleware(GuardMiddleware):

    def __init__(self, rules: Mapping[str, str], strict: bool = False):
        """
        Args:
            rules: field -> pipe-delimited rule string
            strict: Reject unknown rule names at construction
        """
        self.validator = Validator(rules, strict=strict)

    def check(self, request: Request) -> Outcome:
        errors = self.validator.validate(request.all())
        if errors:
            return Terminal(validation_failed(Validator.flatten(errors)))
        return CONTINUE
