from .tenant import Tenant  # noqa: F401
from .user import User  # noqa: F401
from .note import Note  # noqa: F401
