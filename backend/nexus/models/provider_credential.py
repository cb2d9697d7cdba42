from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from ..db.base import Base


class ProviderCredential(Base):
    """API key stored for a provider (encrypted when an encryption key is configured)."""

    __tablename__ = "provider_credentials"

    provider = Column(String(50), primary_key=True)
    api_key = Column(Text, nullable=False)
    use_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
