"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Defines the middleware protocol and the pipeline that chains stages
around a terminal handler. Implements the Chain of Responsibility pattern.

=============================================================================
RUSSIAN-DOLL COMPOSITION
=============================================================================

The pipeline built from stages [A, B, C] runs as A(B(C(handler))):

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   request ──► A ──► B ──► C ──► handler                             │
    │                                   │                                  │
    │   response ◄── A ◄── B ◄── C ◄────┘                                 │
    │                                                                      │
    │   A runs first and decides whether B ever runs.                     │
    │                                                                      │
    │   Short-circuit (B returns 401):                                    │
    │                                                                      │
    │   request ──► A ──► B ─┐          C and handler never run           │
    │   response ◄── A ◄─────┘                                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
EXECUTION
=============================================================================

There are no nested closures. _Chain is a cursor over the stage list:
calling it runs the stage at its index and hands that stage a new
cursor positioned one further. The cursor past the last stage invokes
the terminal handler.

Every stage result is normalized into a Response:

    Response          → as-is
    Terminal(resp)    → resp
    dict / list       → 200 success envelope carrying it as "data"
    anything else     → 500 "No response generated"

Exceptions never escape run_pipeline(): they are logged with the
request context and rendered as a generic 500.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Union
import logging

from ..errors import ConfigurationFault
from ..http.request import Request
from ..http.response import Response, success, server_error, no_response


logger = logging.getLogger(__name__)


# NextHandler is the signature of the continuation handed to each stage.
NextHandler = Callable[[Request], Response]


# =============================================================================
# GUARD OUTCOMES
# =============================================================================

class Continue:
    """Guard outcome: let the request through to the next stage."""

    def __repr__(self) -> str:
        return "CONTINUE"


CONTINUE = Continue()


@dataclass(frozen=True)
class Terminal:
    """Guard outcome: stop the chain and answer with this response."""

    response: Response


Outcome = Union[Continue, Terminal]


# =============================================================================
# MIDDLEWARE
# =============================================================================

class Middleware(ABC):
    """
    Abstract base class for middleware.

    =========================================================================
    THE MIDDLEWARE CONTRACT
    =========================================================================

        def handle(self, request: Request, next: NextHandler) -> Response

    Return next(request) to continue, or a Response to stop the chain.

        class TimingHeader(Middleware):
            def handle(self, request, next):
                started = time.perf_counter()
                response = next(request)
                elapsed = time.perf_counter() - started
                return response.set_header("X-Elapsed", f"{elapsed:.3f}")

    =========================================================================
    """

    @abstractmethod
    def handle(self, request: Request, next: NextHandler) -> Any:
        """
        Process the request.

        Args:
            request: The normalized request
            next: The rest of the chain (call it to continue)

        Returns:
            A Response, or anything the pipeline can normalize into one
        """

    def __call__(self, request: Request, next: NextHandler) -> Any:
        return self.handle(request, next)

    @property
    def name(self) -> str:
        """Get the middleware name for logging."""
        return self.__class__.__name__


class GuardMiddleware(Middleware):
    """
    A stage that only decides: let through, or answer.

    Subclasses implement check() and return CONTINUE or Terminal(response);
    they never call the continuation themselves.

        class RequireJson(GuardMiddleware):
            def check(self, request):
                if request.is_json:
                    return CONTINUE
                return Terminal(bad_request("JSON body expected"))
    """

    @abstractmethod
    def check(self, request: Request) -> Outcome:
        """Decide whether the request may continue."""

    def handle(self, request: Request, next: NextHandler) -> Response:
        outcome = self.check(request)
        if isinstance(outcome, Terminal):
            return outcome.response
        if isinstance(outcome, Continue):
            return next(request)
        raise ConfigurationFault(
            f"{self.name}.check() must return CONTINUE or Terminal, got {outcome!r}"
        )


class FunctionMiddleware(Middleware):
    """
    Middleware created from a plain function.

        def add_version(request, next):
            return next(request).set_header("X-API-Version", "1")

        pipeline.add(FunctionMiddleware(add_version))
    """

    def __init__(self, func: Callable[[Request, NextHandler], Any], name: Optional[str] = None):
        self._func = func
        self._name = name or func.__name__

    def handle(self, request: Request, next: NextHandler) -> Any:
        return self._func(request, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(func: Callable[[Request, NextHandler], Any]) -> FunctionMiddleware:
    """
    Decorator form of FunctionMiddleware.

        @function_middleware
        def add_version(request, next):
            return next(request).set_header("X-API-Version", "1")
    """
    return FunctionMiddleware(func)


# =============================================================================
# EXECUTION
# =============================================================================

def normalize_result(result: Any) -> Response:
    """Turn whatever a stage or handler returned into a Response."""
    if isinstance(result, Response):
        return result
    if isinstance(result, Terminal):
        return result.response
    if isinstance(result, (dict, list)):
        return success(result)
    logger.error(f"Handler returned {type(result).__name__}, expected a Response or payload")
    return no_response()


class _Chain:
    """Cursor over a stage list; calling it runs the stage at `index`."""

    __slots__ = ("_stages", "_terminal", "_index")

    def __init__(self, stages: Sequence[Any], terminal: Callable[[Request], Any], index: int = 0):
        self._stages = stages
        self._terminal = terminal
        self._index = index

    def __call__(self, request: Request) -> Response:
        if self._index >= len(self._stages):
            return normalize_result(self._terminal(request))

        stage = self._stages[self._index]
        if not isinstance(stage, Middleware):
            raise ConfigurationFault(
                f"Pipeline stage {self._index} is not a Middleware: {stage!r}"
            )

        following = _Chain(self._stages, self._terminal, self._index + 1)
        return normalize_result(stage.handle(request, following))


def run_pipeline(
    stages: Iterable[Any],
    request: Request,
    terminal: Callable[[Request], Any],
) -> Response:
    """
    Run `request` through `stages` around `terminal`.

    Always returns a Response. Any exception raised by a stage or the
    terminal is logged with the request context and becomes a 500.

    Args:
        stages: Middleware instances, outermost first
        request: The normalized request
        terminal: Final handler (controller action or router dispatch)
    """
    try:
        return _Chain(tuple(stages), terminal)(request)
    except Exception as e:
        logger.exception(f"Unhandled {type(e).__name__} while processing {request.method} {request.path}: {e}")
        return server_error()


class MiddlewarePipeline:
    """
    An ordered, reusable list of stages.

    =========================================================================
    USAGE
    =========================================================================

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())      # first added = outermost
        pipeline.add(CORSMiddleware())

        response = pipeline.run(request, router.dispatch)

    =========================================================================
    """

    def __init__(self, stages: Iterable[Middleware] = ()):
        self._middleware: List[Middleware] = []
        self.use(*stages)

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """
        Append a stage. First added runs outermost.

        Raises:
            ConfigurationFault: if `middleware` is not a Middleware.
        """
        if not isinstance(middleware, Middleware):
            raise ConfigurationFault(f"Not a Middleware: {middleware!r}")
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        """
        Add several stages at once.

            pipeline.use(LoggingMiddleware(), CORSMiddleware())
        """
        for mw in middleware:
            self.add(mw)
        return self

    def run(self, request: Request, terminal: Callable[[Request], Any]) -> Response:
        """Run the request through every stage around `terminal`."""
        return run_pipeline(self._middleware, request, terminal)

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)
