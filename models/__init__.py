from models.base_model import Base
from models.user import User, UserRole
from models.db_storage import DBStorage
from models.credential_store import CredentialStore

__all__ = ["Base", "User", "UserRole", "DBStorage", "CredentialStore"]
