import time
import inspect
import functools
import logging

logger = logging.getLogger(__name__)

def timeit(label: str = None):
    """
    Decorator that logs execution time for a function (sync or async).

    Usage:
        @router.post("/send-otp")
        @timeit("send_otp")
        async def send_otp(...):
            ...
    """

    def _decorate(func):
        name = label or getattr(func, "__qualname__", getattr(func, "__name__", "function"))

        def _report(start: float) -> None:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            logger.info(f"[timing] {name} took {elapsed_ms:.2f} ms")

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def _aw(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _report(start)

            return _aw

        @functools.wraps(func)
        def _w(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _report(start)

        return _w

    return _decorate
