"""Bounded retry for store calls that fail on lock or statement timeouts."""

import logging
from typing import Callable, TypeVar

from django.conf import settings
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger.domain.errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retry(fn: Callable[..., T], *args, **kwargs) -> T:
    """Call fn, retrying on TransientError; the last failure is re-raised."""
    conf = settings.LEDGER
    retrying = Retrying(
        retry=retry_if_exception_type(TransientError),
        stop=stop_after_attempt(conf["RETRY_ATTEMPTS"]),
        wait=wait_exponential(
            multiplier=conf["RETRY_BACKOFF_SECONDS"],
            max=conf["RETRY_BACKOFF_MAX_SECONDS"],
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    return retrying(fn, *args, **kwargs)
