"""Response cache helpers for fastapi-cache."""
import hashlib
from typing import Any, Callable, Dict, Optional, Tuple

from starlette.requests import Request
from starlette.responses import Response


def report_key_builder(
    func: Callable[..., Any],
    namespace: str = "",
    *,
    request: Optional[Request] = None,
    response: Optional[Response] = None,
    args: Tuple[Any, ...] = (),
    kwargs: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Cache key from the endpoint and its query parameters.

    The injected database session differs on every request, so it is left
    out of the key.
    """
    params = {k: v for k, v in (kwargs or {}).items() if k != "db"}
    raw = f"{func.__module__}:{func.__name__}:{args}:{sorted(params.items())}"
    return f"{namespace}:{hashlib.md5(raw.encode()).hexdigest()}"
