"""
Middleware package - request/response processing pipeline.

Middleware wraps controller actions to add cross-cutting concerns:
- Authentication (bearer token → identity)
- Authorization (role checks)
- Input validation
- Access logging
- CORS headers

Exports:
- Middleware, GuardMiddleware: base classes
- CONTINUE, Terminal: guard outcomes
- MiddlewarePipeline, run_pipeline: chain execution
- FunctionMiddleware, function_middleware: middleware from functions
- AuthenticationMiddleware, RoleMiddleware, ValidationMiddleware
- LoggingMiddleware, CORSMiddleware, CORSConfig
"""

from .base import (
    Middleware,
    GuardMiddleware,
    Continue,
    CONTINUE,
    Terminal,
    MiddlewarePipeline,
    NextHandler,
    run_pipeline,
    normalize_result,
    FunctionMiddleware,
    function_middleware,
)
from .auth import AuthenticationMiddleware
from .role import RoleMiddleware
from .validation import ValidationMiddleware
from .logging import LoggingMiddleware, RequestLog
from .cors import CORSMiddleware, CORSConfig

__all__ = [
    "Middleware",
    "GuardMiddleware",
    "Continue",
    "CONTINUE",
    "Terminal",
    "MiddlewarePipeline",
    "NextHandler",
    "run_pipeline",
    "normalize_result",
    "FunctionMiddleware",
    "function_middleware",
    "AuthenticationMiddleware",
    "RoleMiddleware",
    "ValidationMiddleware",
    "LoggingMiddleware",
    "RequestLog",
    "CORSMiddleware",
    "CORSConfig",
]
