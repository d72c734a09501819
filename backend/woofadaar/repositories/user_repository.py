from uuid import UUID

from sqlalchemy.orm import Session

from woofadaar.models.user import User
from woofadaar.schemas.user import UserCreate


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: UUID) -> User | None:
        return self.db.query(User).filter(User.id == user_id).first()

    def create(self, data: UserCreate) -> User:
        user = User(email=data.email.lower(), name=data.name, is_admin=data.is_admin)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
