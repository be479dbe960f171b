import enum

from sqlalchemy import Column, String, Boolean, Text, Enum

from models.base_model import Base, BaseModel


class UserRole(str, enum.Enum):
    CLIENT = "CLIENT"
    ADMINISTRATOR = "ADMINISTRATOR"


class User(BaseModel, Base):
    """
    A principal. Carts, orders and wishlists reference users by id;
    this record holds no back-references to them.
    """
    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(30), nullable=True)
    last_name = Column(String(30), nullable=True)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.CLIENT)
    is_enabled = Column(Boolean, nullable=False, default=True)
    is_non_locked = Column(Boolean, nullable=False, default=True)
    # None means no active session
    refresh_token = Column(Text, nullable=True)
    password_reset_token = Column(Text, nullable=True)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @property
    def registered_at(self):
        return self.created_at

    @property
    def is_active(self) -> bool:
        return bool(self.is_enabled) and bool(self.is_non_locked)

    def __repr__(self):
        return f"<User email={self.email}>"
