from fastapi import APIRouter, Depends, status
from ..database import Store
from ..deps import get_store, unwrap
from .. import schemas
from ..services import groups as groups_service

router = APIRouter()

@router.post("", response_model=schemas.GroupOut, status_code=status.HTTP_201_CREATED)
def create_group(group: schemas.GroupCreate, store: Store = Depends(get_store)):
    return unwrap(groups_service.create_group(store, name=group.name, created_by=group.created_by,
                                              description=group.description))

@router.get("", response_model=list[schemas.GroupOut])
def list_groups(store: Store = Depends(get_store)):
    return unwrap(groups_service.list_groups(store))

@router.get("/user/{user_id}", response_model=list[schemas.UserGroupOut])
def list_user_groups(user_id: int, store: Store = Depends(get_store)):
    return unwrap(groups_service.list_user_groups(store, user_id))

@router.get("/{group_id}", response_model=schemas.GroupOut)
def get_group(group_id: int, store: Store = Depends(get_store)):
    return unwrap(groups_service.find_group(store, group_id))

@router.get("/{group_id}/members", response_model=schemas.GroupWithMembersOut)
def get_group_members(group_id: int, store: Store = Depends(get_store)):
    return unwrap(groups_service.get_group_with_members(store, group_id))

@router.post("/{group_id}/members", response_model=list[schemas.AddedMemberOut], status_code=status.HTTP_201_CREATED)
def add_members(group_id: int, member: schemas.AddMembers, store: Store = Depends(get_store)):
    return unwrap(groups_service.add_members(store, group_id, member.user_ids))

@router.delete("/{group_id}/members/{user_id}")
def remove_member(group_id: int, user_id: int, store: Store = Depends(get_store)):
    unwrap(groups_service.remove_member(store, group_id, user_id))
    return {"message": "User removed from group successfully"}

@router.patch("/{group_id}", response_model=schemas.GroupOut)
def update_group(group_id: int, data: schemas.GroupUpdate, store: Store = Depends(get_store)):
    return unwrap(groups_service.update_group(store, group_id, name=data.name, description=data.description))

@router.delete("/{group_id}")
def delete_group(group_id: int, store: Store = Depends(get_store)):
    unwrap(groups_service.delete_group(store, group_id))
    return {"message": "Group deleted successfully"}
