from sqlalchemy import Column, String, Boolean
from sqlalchemy.dialects.postgresql import UUID
import uuid
from core.database import Base

class User(Base):
    __tablename__ = "users"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)  # type: ignore
    org_id = Column(UUID(as_uuid=True), index=True, nullable=False)  # type: ignore
    username = Column(String, unique=True, index=True, nullable=False)  # type: ignore
    email = Column(String, unique=True, index=True, nullable=False)  # type: ignore
    is_active = Column(Boolean, default=True)  # type: ignore
    hashed_password = Column(String, nullable=False)  # type: ignore
    role = Column(String, default="OPERATOR")  # type: ignore  # OPERATOR, SUPERVISOR, ADMIN or SUPERUSER
