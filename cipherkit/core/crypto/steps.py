"""
Cipher Operation Steps
======================

Names for each stage of a cipher call and the context manager that turns
backend exceptions raised inside a stage into the cipherkit taxonomy.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Iterator

from cryptography.exceptions import (
    AlreadyFinalized,
    AlreadyUpdated,
    InvalidTag,
    NotYetFinalized,
    UnsupportedAlgorithm,
)

from cipherkit.core.errors import (
    AuthenticationFailure,
    CipherKitError,
    OperationError,
    ResourceExhaustionError,
)

_BACKEND_ERRORS = (
    ValueError,
    TypeError,
    OverflowError,
    UnsupportedAlgorithm,
    AlreadyFinalized,
    AlreadyUpdated,
    NotYetFinalized,
)


class CipherStep(str, Enum):
    """Stages of a cipher call, in the order they run."""

    CREATE_CONTEXT = "create_context"
    INIT = "init"
    SET_IV_LENGTH = "set_iv_length"
    SET_TAG_LENGTH = "set_tag_length"
    SET_EXPECTED_TAG = "set_expected_tag"
    DECLARE_LENGTH = "declare_length"
    AAD = "aad"
    UPDATE = "update"
    FINALIZE = "finalize"
    GET_TAG = "get_tag"
    DERIVE_KEY = "derive_key"


def describe(exc: BaseException) -> str:
    """Render a backend exception as a one-line diagnostic."""
    message = str(exc)
    if message:
        return f"{type(exc).__name__}: {message}"
    return type(exc).__name__


@contextmanager
def cipher_step(
    step: CipherStep,
    failure: type[CipherKitError] = OperationError,
) -> Iterator[None]:
    """
    Run one stage of a cipher call.

    Backend errors become ``failure`` (``OperationError`` unless the caller
    says otherwise), ``InvalidTag`` becomes ``AuthenticationFailure`` and
    ``MemoryError`` becomes ``ResourceExhaustionError``. The original
    exception is kept as ``__cause__``. cipherkit errors pass through.

    Usage:
        with cipher_step(CipherStep.UPDATE):
            output += context.update(data)
    """
    try:
        yield
    except CipherKitError:
        raise
    except InvalidTag as exc:
        raise AuthenticationFailure(step.value) from exc
    except MemoryError as exc:
        raise ResourceExhaustionError(step.value, describe(exc)) from exc
    except _BACKEND_ERRORS as exc:
        raise failure(step.value, describe(exc)) from exc
