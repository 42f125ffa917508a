from datetime import datetime, timedelta
from typing import Optional
import os

from dotenv import load_dotenv
from fastapi import HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from models.user import User
from schemas.user import UserCreate

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_MANIFESTGUARD_DEV_KEY")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12
)


class AuthService:
    """Service layer for warehouse staff authentication."""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def get_password_hash(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT carrying the user's email (sub), role and org."""
        to_encode = data.copy()
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> dict:
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            raise credentials_exception
        if payload.get("sub") is None:
            raise credentials_exception
        return payload

    @staticmethod
    def register_user(user_in: UserCreate, db: Session) -> User:
        db_user = db.query(User).filter(  # type: ignore
            (User.email == user_in.email) | (User.username == user_in.username)
        ).first()

        if db_user:
            raise HTTPException(
                status_code=400,
                detail="User with this email or username already exists."
            )

        new_user = User(
            email=user_in.email,
            username=user_in.username,
            org_id=user_in.org_id,
            hashed_password=AuthService.get_password_hash(user_in.password),
            role=user_in.role.upper()
        )

        db.add(new_user)
        db.commit()
        db.refresh(new_user)
        return new_user

    @staticmethod
    def authenticate_user(email: str, password: str, db: Session) -> User:
        user = db.query(User).filter(User.email == email).first()  # type: ignore

        if not user or not AuthService.verify_password(password, str(user.hashed_password)):
            raise HTTPException(status_code=401, detail="Incorrect email or password")
        if not user.is_active:
            raise HTTPException(status_code=403, detail="Account is disabled")
        return user

    @staticmethod
    def get_user_from_token(token: str, db: Session) -> User:
        payload = AuthService.verify_token(token)
        email = str(payload.get("sub"))

        user = db.query(User).filter(User.email == email).first()  # type: ignore
        if user is None or not user.is_active:
            raise HTTPException(status_code=401, detail="User not found")
        return user
