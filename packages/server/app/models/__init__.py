# SQLModel definitions, imported here so metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .profile import Profile  # noqa: F401
from .work import Work  # noqa: F401
from .work_like import WorkLike  # noqa: F401
from .request import CommissionRequest  # noqa: F401
from .message import Message  # noqa: F401
