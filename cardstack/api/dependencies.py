"""Shared FastAPI dependencies and error translation for the API routers."""

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError

from cardstack.core.config import get_settings
from cardstack.core.logging_config import get_logger
from cardstack.models.entities import User
from cardstack.services import repository
from cardstack.services.auth import identity_from_headers
from cardstack.services.database import SessionFactory, get_session_factory, session_scope
from cardstack.services.repository import EntityNotFoundError, InvalidInputError

logger = get_logger(__name__)


def get_current_user(
    request: Request,
    session_factory: SessionFactory = Depends(get_session_factory),
) -> User:
    """Resolve the authenticated user or fail with 401."""
    identity = identity_from_headers(request.headers, get_settings())
    if identity is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    with session_scope(session_factory) as session:
        return repository.get_or_create_user(session, identity.external_id, identity.email)


@contextmanager
def repository_errors(action: str) -> Iterator[None]:
    """Translate repository and database failures into HTTP errors.

    Args:
        action: Short verb phrase used in 500 details, e.g. "update deck".
    """
    try:
        yield
    except HTTPException:
        raise
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SQLAlchemyError as e:
        logger.exception(f"Failed to {action}")
        raise HTTPException(status_code=500, detail=f"Failed to {action}: {str(e)}") from e
