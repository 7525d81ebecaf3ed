"""Deadline enforcement for calls that leave the process."""

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, TypeVar

from core.errors import StageTimeoutError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def _run_into(future: Future, func: Callable[..., T], args, kwargs) -> None:
    if not future.set_running_or_notify_cancel():
        return
    try:
        future.set_result(func(*args, **kwargs))
    except BaseException as exc:
        future.set_exception(exc)


def call_with_timeout(
    func: Callable[..., T],
    *args,
    timeout: Optional[float] = None,
    stage: str = "pipeline",
    **kwargs,
) -> T:
    """
    Run `func` and raise StageTimeoutError if it does not finish in time.

    The call runs in a daemon worker thread, so an abandoned call never keeps
    the interpreter alive at exit. Callers that talk to a network SDK should
    also hand the same deadline to the SDK client so the request itself is
    closed. Exceptions raised by `func` propagate unchanged. `timeout=None`
    runs the call inline.
    """
    if timeout is None:
        return func(*args, **kwargs)
    if timeout <= 0:
        raise ValueError("timeout must be positive")

    future: Future = Future()
    worker = threading.Thread(
        target=_run_into,
        args=(future, func, args, kwargs),
        name=f"rag-{stage}",
        daemon=True,
    )
    worker.start()
    try:
        return future.result(timeout=timeout)
    except StageTimeoutError:
        raise
    except FutureTimeoutError as exc:
        future.cancel()
        LOGGER.warning("%s call exceeded %.1fs deadline", stage, timeout)
        raise StageTimeoutError(
            f"call did not finish within {timeout:g}s",
            stage=stage,
            details={"timeout": timeout},
        ) from exc
