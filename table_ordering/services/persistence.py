import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..errors import PersistenceFailure

logger = logging.getLogger(__name__)


def commit(session: Session, action: str):
    """Commit the session; on a database error roll back and raise PersistenceFailure."""
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to {action}: {e}", exc_info=True)
        raise PersistenceFailure(f"Failed to {action}: {e}") from e
