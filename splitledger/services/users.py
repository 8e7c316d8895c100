from typing import List, Optional

import structlog
from sqlalchemy import select

from .. import models, schemas
from ..database import ConstraintViolation, Store, utcnow
from ..results import Failure, Result, Success, invalid_state
from .validation import get_user, store_guarded

logger = structlog.get_logger(__name__)


@store_guarded("create user")
def create_user(store: Store, name: str, email: str, avatar: Optional[str] = None) -> Result[schemas.UserOut]:
    try:
        with store.transaction() as session:
            if session.scalar(select(models.User.id).where(models.User.email == email)) is not None:
                return invalid_state("User with this email already exists", email=email)
            user = models.User(name=name, email=email, avatar=avatar)
            session.add(user)
            session.flush()
            out = schemas.UserOut.model_validate(user)
    except ConstraintViolation:
        return invalid_state("User with this email already exists", email=email)
    logger.info("user_created", user_id=out.id)
    return Success(out)


@store_guarded("list users")
def list_users(store: Store) -> Result[List[schemas.UserOut]]:
    with store.snapshot() as session:
        users = session.scalars(select(models.User).order_by(models.User.id)).all()
        return Success([schemas.UserOut.model_validate(u) for u in users])


@store_guarded("load user")
def find_user(store: Store, user_id: int) -> Result[schemas.UserOut]:
    with store.snapshot() as session:
        user = get_user(session, user_id)
        if isinstance(user, Failure):
            return user
        return Success(schemas.UserOut.model_validate(user))


@store_guarded("update user")
def update_user(store: Store, user_id: int, name: Optional[str] = None,
                avatar: Optional[str] = None) -> Result[schemas.UserOut]:
    with store.transaction() as session:
        user = get_user(session, user_id)
        if isinstance(user, Failure):
            return user
        if name is not None:
            user.name = name
        if avatar is not None:
            user.avatar = avatar
        user.updated_at = utcnow()
        session.flush()
        return Success(schemas.UserOut.model_validate(user))


@store_guarded("delete user")
def delete_user(store: Store, user_id: int) -> Result[None]:
    """Delete a user who no longer appears in any balance, transaction or settlement."""
    try:
        with store.transaction() as session:
            user = get_user(session, user_id)
            if isinstance(user, Failure):
                return user
            session.delete(user)
    except ConstraintViolation:
        return invalid_state("User still has ledger history and cannot be deleted", user_id=user_id)
    logger.info("user_deleted", user_id=user_id)
    return Success(None)
