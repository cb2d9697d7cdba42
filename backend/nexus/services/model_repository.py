"""Persistence for model descriptors and the user's state attached to them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..models import AIModel
from ..schemas import ModelDescriptor
from .converters import descriptor_to_model, provider_fields
from .credentials import CredentialStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpsertResult:
    inserted: int = 0
    updated: int = 0

    @property
    def any_new(self) -> bool:
        return self.inserted > 0


def _provider_matches(provider: str):
    return func.lower(AIModel.provider_name) == provider.strip().lower()


def _natural_key_matches(provider: str, model_name: str):
    return and_(_provider_matches(provider), AIModel.model_name == model_name)


class ModelRepository:
    def __init__(self, session_factory: sessionmaker, credentials: CredentialStore) -> None:
        self.session_factory = session_factory
        self._credentials = credentials

    async def _fetch_all(self, statement, description: str) -> List[AIModel]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(statement)
                return list(result.scalars().all())
        except SQLAlchemyError:
            logger.exception("Failed to load %s", description)
            return []

    async def _fetch_one(self, statement, description: str) -> Optional[AIModel]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(statement)
                return result.scalars().first()
        except SQLAlchemyError:
            logger.exception("Failed to load %s", description)
            return None

    # Reads

    async def get_all(self) -> List[AIModel]:
        statement = select(AIModel).order_by(AIModel.provider_name, AIModel.model_name)
        return await self._fetch_all(statement, "models")

    async def get_by_id(self, model_id: int) -> Optional[AIModel]:
        try:
            async with self.session_factory() as session:
                return await session.get(AIModel, model_id)
        except SQLAlchemyError:
            logger.exception("Failed to load model %s", model_id)
            return None

    async def get_by_provider(self, provider: str) -> List[AIModel]:
        statement = (
            select(AIModel).where(_provider_matches(provider)).order_by(AIModel.model_name)
        )
        return await self._fetch_all(statement, f"models for provider '{provider}'")

    async def get_model_by_name(self, provider: str, model_name: str) -> Optional[AIModel]:
        if not provider or not model_name:
            return None
        statement = select(AIModel).where(_natural_key_matches(provider, model_name))
        return await self._fetch_one(statement, f"model {provider}/{model_name}")

    async def get_active_models(self) -> List[AIModel]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(AIModel.provider_name).distinct())
                providers = list(result.scalars().all())
        except SQLAlchemyError:
            logger.exception("Failed to load provider names")
            return []

        active = await self._credentials.get_active_providers(providers)
        if not active:
            return []
        statement = (
            select(AIModel)
            .where(AIModel.provider_name.in_(active))
            .order_by(AIModel.provider_name, AIModel.model_name)
        )
        return await self._fetch_all(statement, "active models")

    async def get_favorite_models(self) -> List[AIModel]:
        statement = (
            select(AIModel)
            .where(AIModel.is_favorite.is_(True))
            .order_by(AIModel.provider_name, AIModel.model_name)
        )
        return await self._fetch_all(statement, "favorite models")

    async def get_selected_model(self) -> Optional[AIModel]:
        statement = select(AIModel).where(AIModel.is_selected.is_(True))
        return await self._fetch_one(statement, "selected model")

    async def get_default_models(self) -> List[AIModel]:
        statement = (
            select(AIModel).where(AIModel.is_default.is_(True)).order_by(AIModel.provider_name)
        )
        return await self._fetch_all(statement, "default models")

    async def get_default_model(self, provider: str) -> Optional[AIModel]:
        statement = select(AIModel).where(
            _provider_matches(provider), AIModel.is_default.is_(True)
        )
        return await self._fetch_one(statement, f"default model for '{provider}'")

    async def search(self, text: str, limit: int = 50) -> List[AIModel]:
        if not text or not text.strip() or limit <= 0:
            return []
        needle = text.strip().lower()
        statement = (
            select(AIModel)
            .where(
                or_(
                    func.lower(AIModel.model_name).contains(needle, autoescape=True),
                    func.lower(AIModel.display_name).contains(needle, autoescape=True),
                    func.lower(AIModel.provider_name).contains(needle, autoescape=True),
                    func.lower(AIModel.description).contains(needle, autoescape=True),
                )
            )
            .order_by(AIModel.provider_name, AIModel.model_name)
            .limit(limit)
        )
        return await self._fetch_all(statement, f"search results for '{text}'")

    # Writes

    async def add(self, descriptor: ModelDescriptor) -> Optional[AIModel]:
        model = descriptor_to_model(descriptor)
        try:
            async with self.session_factory() as session:
                session.add(model)
                await session.commit()
                await session.refresh(model)
                return model
        except IntegrityError:
            # Someone else inserted the same natural key first.
            return await self.get_model_by_name(descriptor.provider_name, descriptor.model_name)
        except SQLAlchemyError:
            logger.exception(
                "Failed to add model %s/%s", descriptor.provider_name, descriptor.model_name
            )
            return None

    async def upsert_descriptors(self, descriptors: Iterable[ModelDescriptor]) -> UpsertResult:
        """Insert unseen models and refresh provider fields of known ones.

        Favorite, default, selection and usage columns of existing rows are
        never touched. Runs as a single transaction.
        """
        incoming: Dict[Tuple[str, str], ModelDescriptor] = {}
        for descriptor in descriptors:
            key = (descriptor.provider_name.lower(), descriptor.model_name)
            incoming.setdefault(key, descriptor)
        if not incoming:
            return UpsertResult()

        providers = {provider for provider, _ in incoming}
        inserted = updated = 0
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(AIModel).where(func.lower(AIModel.provider_name).in_(providers))
                )
                existing = {
                    (row.provider_name.lower(), row.model_name): row
                    for row in result.scalars().all()
                }
                for key, descriptor in incoming.items():
                    row = existing.get(key)
                    if row is None:
                        session.add(descriptor_to_model(descriptor))
                        inserted += 1
                        continue
                    for field, value in provider_fields(descriptor).items():
                        setattr(row, field, value)
                    updated += 1
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to store %d discovered models", len(incoming))
            return UpsertResult()

        logger.info("Stored discovered models: %d new, %d updated", inserted, updated)
        return UpsertResult(inserted=inserted, updated=updated)

    async def set_selected(self, model_id: int) -> bool:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    if await session.get(AIModel, model_id) is None:
                        return False
                    await session.execute(
                        update(AIModel)
                        .where(or_(AIModel.is_selected.is_(True), AIModel.id == model_id))
                        .values(is_selected=case((AIModel.id == model_id, True), else_=False))
                        .execution_options(synchronize_session=False)
                    )
            return True
        except SQLAlchemyError:
            logger.exception("Failed to select model %s", model_id)
            return False

    async def clear_selected(self) -> bool:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await session.execute(
                        update(AIModel)
                        .where(AIModel.is_selected.is_(True))
                        .values(is_selected=False)
                        .execution_options(synchronize_session=False)
                    )
            return True
        except SQLAlchemyError:
            logger.exception("Failed to clear the selected model")
            return False

    async def set_default(self, provider: str, model_name: str) -> bool:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(AIModel.id).where(_natural_key_matches(provider, model_name))
                    )
                    target_id = result.scalars().first()
                    if target_id is None:
                        return False
                    await session.execute(
                        update(AIModel)
                        .where(
                            _provider_matches(provider),
                            or_(AIModel.is_default.is_(True), AIModel.id == target_id),
                        )
                        .values(is_default=case((AIModel.id == target_id, True), else_=False))
                        .execution_options(synchronize_session=False)
                    )
            return True
        except SQLAlchemyError:
            logger.exception("Failed to set default model %s/%s", provider, model_name)
            return False

    async def set_favorite(self, provider: str, model_name: str, value: bool) -> bool:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(AIModel)
                        .where(_natural_key_matches(provider, model_name))
                        .values(is_favorite=value)
                        .execution_options(synchronize_session=False)
                    )
            return result.rowcount > 0
        except SQLAlchemyError:
            logger.exception("Failed to update favorite flag for %s/%s", provider, model_name)
            return False

    async def record_usage(self, provider: str, model_name: str) -> bool:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(AIModel)
                        .where(_natural_key_matches(provider, model_name))
                        .values(usage_count=AIModel.usage_count + 1, last_used=datetime.utcnow())
                        .execution_options(synchronize_session=False)
                    )
            return result.rowcount > 0
        except SQLAlchemyError:
            logger.exception("Failed to record usage for %s/%s", provider, model_name)
            return False

    async def delete_models_by_provider(self, provider: str) -> int:
        if not provider or not provider.strip():
            return 0
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(AIModel)
                        .where(_provider_matches(provider))
                        .execution_options(synchronize_session=False)
                    )
            removed = result.rowcount or 0
        except SQLAlchemyError:
            logger.exception("Failed to delete models for provider '%s'", provider)
            return 0
        logger.info("Deleted %d models for provider '%s'", removed, provider)
        return removed


__all__ = ["ModelRepository", "UpsertResult"]
