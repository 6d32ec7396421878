"""Scoped acquisition with guaranteed release."""

import logging
from contextlib import contextmanager

from .errors import ExecutionError, wrap_errors

logger = logging.getLogger(__name__)


def close_quietly(resource, what: str = "resource") -> None:
    """Close ``resource`` while another error is propagating; log failures."""
    try:
        resource.close()
    except Exception as e:
        logger.warning("Failed to close %s while unwinding: %s", what, e)


@contextmanager
def released(resource, what: str = "resource", error_cls=ExecutionError):
    """Yield ``resource`` and close it when the block exits.

    If the block raised, a failing close() is logged and the block's error
    propagates. On the normal path a failing close() is raised as ``error_cls``.
    """
    try:
        yield resource
    except BaseException:
        close_quietly(resource, what)
        raise
    with wrap_errors(error_cls, f"Failed to close {what}"):
        resource.close()
