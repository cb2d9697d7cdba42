from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, UniqueConstraint

from ..db.base import Base

# Columns the provider catalog owns; everything else on the row belongs to the user.
PROVIDER_FIELDS = (
    "display_name",
    "description",
    "version",
    "max_tokens",
    "max_context_window",
    "default_temperature",
    "supports_streaming",
    "supports_vision",
    "supports_code_completion",
    "is_available",
)


class AIModel(Base):
    """One model offered by one provider, plus the user's state for it."""

    __tablename__ = "ai_models"
    __table_args__ = (
        UniqueConstraint("provider_name", "model_name", name="uq_ai_models_provider_model"),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider_name = Column(String(50), nullable=False, index=True)
    model_name = Column(String(150), nullable=False)
    display_name = Column(String(150), nullable=True)
    description = Column(Text, nullable=True)
    version = Column(String(50), nullable=True)

    max_tokens = Column(Integer, default=4096, nullable=False)
    max_context_window = Column(Integer, default=8192, nullable=False)
    default_temperature = Column(Float, default=0.7, nullable=False)
    supports_streaming = Column(Boolean, default=True, nullable=False)
    supports_vision = Column(Boolean, default=False, nullable=False)
    supports_code_completion = Column(Boolean, default=False, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

    is_favorite = Column(Boolean, default=False, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    is_selected = Column(Boolean, default=False, nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    last_used = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    @property
    def natural_key(self) -> tuple:
        return (self.provider_name, self.model_name)

    def __repr__(self) -> str:
        return f"<AIModel(provider='{self.provider_name}', model='{self.model_name}')>"
