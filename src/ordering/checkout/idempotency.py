"""Idempotency store: at-most-once execution of checkout per (key, user).

A claim inserts an ``in_progress`` record; the ``UNIQUE(key, user_id)``
constraint makes concurrent claims for the same key mutually exclusive.
The loser of the race reads the winner's record and either replays it,
reports a conflict, or (for a ``failed`` record) takes it over.

The request fingerprint is the SHA-256 of the canonical JSON request body.
A key presented again with a different body is rejected with
``IdempotencyKeyReused`` instead of replaying an unrelated response.
"""

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import structlog
from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import IntegrityError

from ordering.checkout.exceptions import ConflictInProgress, IdempotencyKeyReused
from shared.database import Database, as_utc, utcnow
from shared.tables import idempotency_records

logger = structlog.get_logger(__name__)

# A failed record taken over by one caller can be re-claimed by another
# before the takeover's insert lands; bounded so a hot key cannot spin forever
MAX_CLAIM_ATTEMPTS = 3


class IdempotencyStatus(Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ClaimOutcome(Enum):
    PROCEED = "proceed"
    REPLAY = "replay"


@dataclass(frozen=True)
class Claim:
    outcome: ClaimOutcome
    response: dict | None = None


@dataclass(frozen=True)
class IdempotencyRecord:
    key: str
    user_id: str
    fingerprint: str
    status: str
    response: dict | None
    error: dict | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row) -> "IdempotencyRecord":
        return cls(
            key=row.key,
            user_id=row.user_id,
            fingerprint=row.fingerprint,
            status=row.status,
            response=row.response,
            error=row.error,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )


def fingerprint(payload: dict) -> str:
    """SHA-256 over the canonical (sorted-key) JSON form of ``payload``."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _key(key: str, user_id: str):
    return and_(idempotency_records.c.key == key, idempotency_records.c.user_id == str(user_id))


class IdempotencyStore:
    def __init__(self, database: Database) -> None:
        self.database = database

    def claim(self, key: str, user_id: str, request_fingerprint: str) -> Claim:
        """Claim ``key`` for ``user_id`` or resolve against the existing record.

        Raises:
            ConflictInProgress: another attempt holds the key.
            IdempotencyKeyReused: the key belongs to a different request body.
        """
        for _ in range(MAX_CLAIM_ATTEMPTS):
            now = utcnow()
            try:
                with self.database.transaction() as tx:
                    tx.execute(
                        insert(idempotency_records).values(
                            key=key,
                            user_id=str(user_id),
                            fingerprint=request_fingerprint,
                            status=IdempotencyStatus.IN_PROGRESS.value,
                            response=None,
                            error=None,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                logger.debug("Idempotency key claimed", key=key, user_id=user_id)
                return Claim(ClaimOutcome.PROCEED)
            except IntegrityError:
                existing = self.get(key, user_id)

            if existing is None:
                # Deleted between our insert and read; try again
                continue

            status = IdempotencyStatus(existing.status)
            if status == IdempotencyStatus.FAILED:
                with self.database.transaction() as tx:
                    tx.execute(
                        delete(idempotency_records).where(
                            _key(key, user_id),
                            idempotency_records.c.status == IdempotencyStatus.FAILED.value,
                        )
                    )
                logger.info("Retrying previously failed request", key=key, user_id=user_id)
                continue

            if existing.fingerprint != request_fingerprint:
                logger.warning("Idempotency key reused with a different request", key=key, user_id=user_id)
                raise IdempotencyKeyReused(key)

            if status == IdempotencyStatus.COMPLETED:
                logger.info("Replaying completed request", key=key, user_id=user_id)
                return Claim(ClaimOutcome.REPLAY, response=existing.response)

            raise ConflictInProgress(key)

        raise ConflictInProgress(key)

    def complete(self, key: str, user_id: str, response: dict) -> bool:
        return self._finish(key, user_id, IdempotencyStatus.COMPLETED, response=response)

    def fail(self, key: str, user_id: str, error_info: dict | None = None) -> bool:
        return self._finish(key, user_id, IdempotencyStatus.FAILED, error=error_info)

    def _finish(self, key: str, user_id: str, target: IdempotencyStatus, **values) -> bool:
        with self.database.transaction() as tx:
            result = tx.execute(
                update(idempotency_records)
                .where(_key(key, user_id), idempotency_records.c.status == IdempotencyStatus.IN_PROGRESS.value)
                .values(status=target.value, updated_at=utcnow(), **values)
            )
        if result.rowcount == 0:
            logger.warning(
                "Idempotency record was not in progress",
                key=key,
                user_id=user_id,
                target=target.value,
            )
            return False
        return True

    def get(self, key: str, user_id: str) -> IdempotencyRecord | None:
        with self.database.connect() as conn:
            row = conn.execute(select(idempotency_records).where(_key(key, user_id))).first()
        return IdempotencyRecord.from_row(row) if row is not None else None
