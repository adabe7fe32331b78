"""All-or-nothing unit of work shared by the catalog and the ledger."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import ConflictError, LedgerError, StorageUnavailableError

logger = logging.getLogger("stockledger.db")


@contextmanager
def atomic(db: Session, operation: str) -> Iterator[Session]:
    """Commit everything done in the block, or roll all of it back.

    Database failures are translated into ledger errors: unique/check
    violations become :class:`ConflictError`, anything else the driver raises
    (locked database, lost connection) becomes the retriable
    :class:`StorageUnavailableError`.
    """

    try:
        yield db
        db.commit()
    except LedgerError as exc:
        db.rollback()
        logger.info(
            f"{operation}.rejected",
            extra={"extra_data": {"operation": operation, "code": exc.code, **exc.details}},
        )
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning(f"{operation}.conflict", extra={"extra_data": {"operation": operation}})
        raise ConflictError(f"{operation} conflicts with an existing record", operation=operation) from exc
    except DBAPIError as exc:
        db.rollback()
        logger.error(f"{operation}.storage_error", exc_info=True, extra={"extra_data": {"operation": operation}})
        raise StorageUnavailableError(
            "The stock database is unavailable, try again", operation=operation
        ) from exc
    except Exception:
        db.rollback()
        raise
