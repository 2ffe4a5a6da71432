# skillshare/auth/auth_routes.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from skillshare.auth import auth_utils
from skillshare.database import crud
from skillshare.database.db import get_db
from skillshare.database.models import User
from skillshare.schemas import AuthResponse, ProfileUpdate, UserCard, UserCreate, UserOut

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    if crud.get_user_by_email(db, user_data.email):
        raise HTTPException(status_code=400, detail="User already exists")
    if crud.get_user_by_username(db, user_data.username):
        raise HTTPException(status_code=400, detail="Username is already taken")

    try:
        user = crud.create_user(
            db,
            user_data.username,
            user_data.email,
            auth_utils.hash_password(user_data.password),
            skills_teach=user_data.skills_teach,
            skills_learn=user_data.skills_learn,
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Registration failed for {user_data.username}: {str(e)}")
        raise HTTPException(status_code=500, detail="Server error")

    logger.info(f"Registered user {user.username} (id={user.id})")
    return {"access_token": auth_utils.create_user_token(user), "token_type": "bearer", "user": user}


@router.post("/login", response_model=AuthResponse)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    # The username field accepts either the username or the email address
    user = crud.get_user_by_username(db, form_data.username) or crud.get_user_by_email(db, form_data.username)
    if not user or not auth_utils.verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return {"access_token": auth_utils.create_user_token(user), "token_type": "bearer", "user": user}


@router.post("/logout")
def logout():
    # Tokens are stateless; the client just drops its copy
    return {"message": "Logged out successfully"}


@router.get("/profile", response_model=UserOut)
def get_profile(current_user: User = Depends(auth_utils.get_current_user)):
    return current_user


@router.put("/profile", response_model=UserOut)
def update_profile(
    update: ProfileUpdate,
    current_user: User = Depends(auth_utils.get_current_user),
    db: Session = Depends(get_db),
):
    if update.username and update.username != current_user.username:
        if crud.get_user_by_username(db, update.username):
            raise HTTPException(status_code=400, detail="Username is already taken")

    try:
        return crud.update_profile(
            db,
            current_user,
            username=update.username,
            skills_teach=update.skills_teach,
            skills_learn=update.skills_learn,
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Profile update failed for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/users", response_model=List[UserCard])
def list_users(current_user: User = Depends(auth_utils.get_current_user), db: Session = Depends(get_db)):
    """Every other user, best rated first."""
    return crud.list_other_users(db, current_user.id)
