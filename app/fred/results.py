"""
Tagged results for data access actions.

Actions never raise on data-layer errors; they return `Failure(message)` with a
message fit to show the user, and callers render it inline.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from flask import Flask, current_app
from sqlalchemy.orm import Session

from app.fred.db import new_session

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success(Generic[T]):
    data: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    message: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Success[T], Failure]

Read = Callable[[Session], "Result[Any]"]


def _run_read(app: Flask, read: Read) -> "Result[Any]":
    s = new_session(app)
    try:
        return read(s)
    finally:
        s.close()


def fetch_all(*reads: Read, app: Flask | None = None) -> "Result[tuple[Any, ...]]":
    """
    Run independent reads concurrently, each on its own session.

    All must succeed: the first Failure is returned as soon as it completes and
    work that has not started yet is cancelled. A read already running when that
    happens is not interrupted: it finishes on its worker thread after the
    caller has returned and closes its own session then. On success the data
    comes back in the same order as `reads`.
    """
    app = app or current_app._get_current_object()  # type: ignore[attr-defined]
    workers = min(len(reads), int(app.config.get("REFERENCE_FETCH_WORKERS") or len(reads))) or 1
    data: list[Any] = [None] * len(reads)

    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fred-read")
    try:
        futures = {pool.submit(_run_read, app, read): i for i, read in enumerate(reads)}
        for fut in as_completed(futures):
            res = fut.result()
            if isinstance(res, Failure):
                logger.info("fetch_all short-circuit: %s", res.message)
                return res
            data[futures[fut]] = res.data
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
    return Success(tuple(data))
