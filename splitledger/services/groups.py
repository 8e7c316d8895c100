from typing import List, Optional, Sequence

import structlog
from sqlalchemy import delete, select

from .. import models, schemas
from ..database import ConstraintViolation, Store, utcnow
from ..money import ZERO
from ..results import Failure, Result, Success, invalid_input, invalid_state, not_found
from .validation import get_group, get_user, is_member, lock_balances, store_guarded

logger = structlog.get_logger(__name__)


@store_guarded("create group")
def create_group(store: Store, name: str, created_by: int,
                 description: Optional[str] = None) -> Result[schemas.GroupOut]:
    """Create a group with its creator as the first member (balance 0.00)."""
    with store.transaction() as session:
        creator = get_user(session, created_by)
        if isinstance(creator, Failure):
            return not_found("Creator user not found", user_id=created_by)
        group = models.Group(name=name, description=description, created_by=created_by)
        session.add(group)
        session.flush()
        session.add(models.Membership(group_id=group.id, user_id=created_by))
        session.add(models.Balance(group_id=group.id, user_id=created_by, balance=ZERO))
        session.flush()
        out = schemas.GroupOut.model_validate(group)
    logger.info("group_created", group_id=out.id, created_by=created_by)
    return Success(out)


@store_guarded("list groups")
def list_groups(store: Store) -> Result[List[schemas.GroupOut]]:
    with store.snapshot() as session:
        groups = session.scalars(select(models.Group).order_by(models.Group.id)).all()
        return Success([schemas.GroupOut.model_validate(g) for g in groups])


@store_guarded("load group")
def find_group(store: Store, group_id: int) -> Result[schemas.GroupOut]:
    with store.snapshot() as session:
        group = get_group(session, group_id)
        if isinstance(group, Failure):
            return group
        return Success(schemas.GroupOut.model_validate(group))


@store_guarded("load group members")
def get_group_with_members(store: Store, group_id: int) -> Result[schemas.GroupWithMembersOut]:
    with store.snapshot() as session:
        group = get_group(session, group_id)
        if isinstance(group, Failure):
            return group
        rows = session.execute(
            select(models.User.id, models.User.name, models.User.email, models.Membership.joined_at)
            .join(models.Membership, models.Membership.user_id == models.User.id)
            .where(models.Membership.group_id == group_id)
            .order_by(models.Membership.joined_at, models.User.id)
        ).all()
        return Success(schemas.GroupWithMembersOut(
            **schemas.GroupOut.model_validate(group).model_dump(),
            members=[schemas.MemberOut(id=uid, name=name, email=email, joined_at=joined)
                     for uid, name, email, joined in rows],
        ))


@store_guarded("list user groups")
def list_user_groups(store: Store, user_id: int) -> Result[List[schemas.UserGroupOut]]:
    with store.snapshot() as session:
        rows = session.execute(
            select(models.Group, models.Membership.joined_at)
            .join(models.Membership, models.Membership.group_id == models.Group.id)
            .where(models.Membership.user_id == user_id)
            .order_by(models.Group.id)
        ).all()
        return Success([
            schemas.UserGroupOut(**schemas.GroupOut.model_validate(g).model_dump(), joined_at=joined)
            for g, joined in rows
        ])


@store_guarded("add members")
def add_members(store: Store, group_id: int, user_ids: Sequence[int]) -> Result[List[schemas.AddedMemberOut]]:
    """Add users to a group, each with a 0.00 balance, all or none."""
    if not user_ids:
        return invalid_input("At least one user id is required")
    if len(set(user_ids)) != len(user_ids):
        return invalid_input("User ids must be unique")
    try:
        with store.transaction() as session:
            group = get_group(session, group_id)
            if isinstance(group, Failure):
                return group
            # All checks run before the first insert; returning commits the unit.
            new_users = []
            for user_id in user_ids:
                user = get_user(session, user_id)
                if isinstance(user, Failure):
                    return user
                if is_member(session, group_id, user_id):
                    return invalid_state(f"User {user.name} is already in this group", user_id=user_id)
                new_users.append(user)
            added = []
            for user in new_users:
                membership = models.Membership(group_id=group_id, user_id=user.id)
                session.add(membership)
                session.add(models.Balance(group_id=group_id, user_id=user.id, balance=ZERO))
                session.flush()
                added.append(schemas.AddedMemberOut(user_id=user.id, user_name=user.name,
                                                    joined_at=membership.joined_at))
    except ConstraintViolation as exc:
        logger.info("membership_race", group_id=group_id, user_ids=list(user_ids), error=str(exc))
        return invalid_state("User is already a member of this group", user_ids=list(user_ids))
    logger.info("members_added", group_id=group_id, user_ids=list(user_ids))
    return Success(added)


@store_guarded("remove member")
def remove_member(store: Store, group_id: int, user_id: int) -> Result[None]:
    """Remove a member and their balance row; refused while the balance is not zero."""
    with store.transaction() as session:
        group = get_group(session, group_id)
        if isinstance(group, Failure):
            return group
        locked = lock_balances(session, group_id, [user_id])
        if not is_member(session, group_id, user_id):
            return not_found("User is not a member of this group", user_id=user_id)
        if locked and locked[0].balance != ZERO:
            logger.info("member_removal_refused", group_id=group_id, user_id=user_id,
                        balance=str(locked[0].balance))
            return invalid_state("Cannot remove user with outstanding balance",
                                 user_id=user_id, balance=str(locked[0].balance))
        session.execute(delete(models.Balance).where(
            models.Balance.group_id == group_id, models.Balance.user_id == user_id))
        session.execute(delete(models.Membership).where(
            models.Membership.group_id == group_id, models.Membership.user_id == user_id))
    logger.info("member_removed", group_id=group_id, user_id=user_id)
    return Success(None)


@store_guarded("update group")
def update_group(store: Store, group_id: int, name: Optional[str] = None,
                 description: Optional[str] = None) -> Result[schemas.GroupOut]:
    with store.transaction() as session:
        group = get_group(session, group_id)
        if isinstance(group, Failure):
            return group
        if name is not None:
            group.name = name
        if description is not None:
            group.description = description
        group.updated_at = utcnow()
        session.flush()
        return Success(schemas.GroupOut.model_validate(group))


@store_guarded("delete group")
def delete_group(store: Store, group_id: int) -> Result[None]:
    """Delete a group; memberships, balances, transactions and settlements go with it."""
    with store.transaction() as session:
        group = get_group(session, group_id)
        if isinstance(group, Failure):
            return group
        session.delete(group)
    logger.info("group_deleted", group_id=group_id)
    return Success(None)
