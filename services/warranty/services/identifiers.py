"""
Identifier Generation
=====================

Random human-facing identifiers, made unique by inserting first and
letting the storage uniqueness constraint decide. A collision on the
generated key is retried a bounded number of times; any other failure,
including a collision on a different field, propagates unchanged.

Formats:
- policy number: 7 digits
- claim id: SML + 6 digits
- member id: SMC + 6 digits
- shop id: SMP + 6 digits
- staff id: STF + 3 digits

Version: 0.1.0
"""

from __future__ import annotations

import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
)

from services.warranty.errors import DuplicateKeyError, IdentifierExhaustedError
from shared.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

CLAIM_PREFIX = "SML"
MEMBER_PREFIX = "SMC"
SHOP_PREFIX = "SMP"
STAFF_PREFIX = "STF"


def generate_policy_number() -> str:
    return str(random.randint(1_000_000, 9_999_999))


def _prefixed(prefix: str, digits: int) -> str:
    low = 10 ** (digits - 1) if digits > 1 else 0
    return f"{prefix}{random.randint(low, 10**digits - 1):0{digits}d}"


def generate_claim_id() -> str:
    return _prefixed(CLAIM_PREFIX, 6)


def generate_member_id() -> str:
    return _prefixed(MEMBER_PREFIX, 6)


def generate_shop_id() -> str:
    return _prefixed(SHOP_PREFIX, 6)


def generate_staff_id() -> str:
    return _prefixed(STAFF_PREFIX, 3)


async def insert_unique(
    insert: Callable[[str], Awaitable[T]],
    generate: Callable[[], str],
    key_field: str,
    attempts: int,
) -> T:
    """
    Insert with a freshly generated key, retrying on key collisions.

    Args:
        insert: Coroutine taking the candidate key and persisting the record
        generate: Produces a candidate key
        key_field: Storage field the key lives in
        attempts: Maximum number of inserts to try

    Returns:
        Whatever `insert` returns for the first non-colliding key

    Raises:
        IdentifierExhaustedError: Every attempt collided on `key_field`
    """

    def collided(exc: BaseException) -> bool:
        return isinstance(exc, DuplicateKeyError) and exc.field == key_field

    retrying = AsyncRetrying(
        retry=retry_if_exception(collided),
        stop=stop_after_attempt(attempts),
        before_sleep=lambda retry_state: logger.debug(
            "identifier_collision",
            key_field=key_field,
            attempt=retry_state.attempt_number,
        ),
    )

    try:
        async for attempt in retrying:
            with attempt:
                return await insert(generate())
    except RetryError as e:
        logger.error("identifier_exhausted", key_field=key_field, attempts=attempts)
        raise IdentifierExhaustedError(key_field, attempts) from e

    raise IdentifierExhaustedError(key_field, attempts)
