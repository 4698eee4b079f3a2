import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, LargeBinary, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from llmgate.db.base import Base


class GitSettings(Base):
    __tablename__ = "git_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    provider: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Personal access token (Fernet-encrypted)
    token_encrypted: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )
