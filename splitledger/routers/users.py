from fastapi import APIRouter, Depends, status
from ..database import Store
from ..deps import get_store, unwrap
from .. import schemas
from ..services import users as users_service

router = APIRouter()

@router.post("", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def create_user(user: schemas.UserCreate, store: Store = Depends(get_store)):
    return unwrap(users_service.create_user(store, name=user.name, email=user.email, avatar=user.avatar))

@router.get("", response_model=list[schemas.UserOut])
def list_users(store: Store = Depends(get_store)):
    return unwrap(users_service.list_users(store))

@router.get("/{user_id}", response_model=schemas.UserOut)
def get_user(user_id: int, store: Store = Depends(get_store)):
    return unwrap(users_service.find_user(store, user_id))

@router.patch("/{user_id}", response_model=schemas.UserOut)
def update_user(user_id: int, data: schemas.UserUpdate, store: Store = Depends(get_store)):
    return unwrap(users_service.update_user(store, user_id, name=data.name, avatar=data.avatar))

@router.delete("/{user_id}")
def delete_user(user_id: int, store: Store = Depends(get_store)):
    unwrap(users_service.delete_user(store, user_id))
    return {"message": "User deleted successfully"}
