# hivebot/database/models.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# 🛡 Настройки защиты сообщества
# Хранятся плоской картой "имя настройки -> значение", как их задаёт форма настроек.
# Одна запись на сообщество.
class ProtectionSettingsRecord(Base):
    __tablename__ = "protection_settings"

    id = Column(Integer, primary_key=True)
    community = Column(String, unique=True, nullable=False, index=True)
    values = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<ProtectionSettingsRecord community={self.community!r} keys={len(self.values or {})}>"
