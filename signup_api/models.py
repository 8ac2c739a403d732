import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from signup_api.db.base import Base


class Signup(Base):
    __tablename__ = "signups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str] = mapped_column(Text, unique=True, index=True, nullable=False)
    role: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(Text, nullable=True)
    organization: Mapped[str | None] = mapped_column(Text, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    updates_opt_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    ip: Mapped[str | None] = mapped_column(Text, nullable=True)
    ua: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
