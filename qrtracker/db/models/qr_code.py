from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qrtracker.db.base import Base

DEFAULT_BACKGROUND_COLOR = "#FFFFFF"
DEFAULT_FOREGROUND_COLOR = "#000000"
DEFAULT_SIZE = 256


class QRCode(Base):
    __tablename__ = "qr_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    owner_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    target_url: Mapped[str] = mapped_column(Text, nullable=False)
    background_color: Mapped[str] = mapped_column(String(16), default=DEFAULT_BACKGROUND_COLOR)
    foreground_color: Mapped[str] = mapped_column(String(16), default=DEFAULT_FOREGROUND_COLOR)
    size: Mapped[int] = mapped_column(Integer, default=DEFAULT_SIZE)
    logo_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", back_populates="qr_codes")
    scans = relationship("ScanEvent", back_populates="qr_code", cascade="all, delete-orphan", passive_deletes=True)
