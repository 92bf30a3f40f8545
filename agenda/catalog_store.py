"""Catalog store for services and professionals (memory and SQL backends)."""
import asyncio
import logging
import re
import uuid
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from agenda import config
from agenda.api.database_models import ProfessionalRecord, ServiceRecord
from agenda.catalog import ProfessionalConfig, ServiceConfig
from agenda.database import make_session_factory
from agenda.repository import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogItemNotFoundError(Exception):
    """Raised when a service or professional id does not exist."""
    pass


def make_catalog_id(name: str) -> str:
    """Readable id derived from a name, e.g. "Ana Silva" -> "ana-silva-1a2b"."""
    slug = re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-') or "item"
    return f"{slug}-{uuid.uuid4().hex[:4]}"


class CatalogStore(ABC):
    """Services and professionals shown in the booking widget."""

    @abstractmethod
    async def list_services(self) -> List[ServiceConfig]:
        """All services ordered by name."""

    @abstractmethod
    async def save_service(self, service: ServiceConfig) -> ServiceConfig:
        """Insert or replace a service; assigns an id when missing."""

    @abstractmethod
    async def delete_service(self, service_id: str) -> None:
        """Remove a service. Raises CatalogItemNotFoundError."""

    @abstractmethod
    async def list_professionals(self) -> List[ProfessionalConfig]:
        """All professionals ordered by name."""

    @abstractmethod
    async def save_professional(self, professional: ProfessionalConfig) -> ProfessionalConfig:
        """Insert or replace a professional; assigns an id when missing."""

    @abstractmethod
    async def delete_professional(self, professional_id: str) -> None:
        """Remove a professional. Raises CatalogItemNotFoundError."""


class InMemoryCatalogStore(CatalogStore):
    """Dict-backed catalog."""

    def __init__(self):
        self._services: Dict[str, ServiceConfig] = {}
        self._professionals: Dict[str, ProfessionalConfig] = {}

    async def list_services(self) -> List[ServiceConfig]:
        return sorted(self._services.values(), key=lambda s: s.name)

    async def save_service(self, service: ServiceConfig) -> ServiceConfig:
        saved = service.model_copy(update={"id": service.id or make_catalog_id(service.name)})
        self._services[saved.id] = saved
        return saved

    async def delete_service(self, service_id: str) -> None:
        if self._services.pop(service_id, None) is None:
            raise CatalogItemNotFoundError(f"Service {service_id} not found")

    async def list_professionals(self) -> List[ProfessionalConfig]:
        return sorted(self._professionals.values(), key=lambda p: p.name)

    async def save_professional(self, professional: ProfessionalConfig) -> ProfessionalConfig:
        saved = professional.model_copy(
            update={"id": professional.id or make_catalog_id(professional.name)}
        )
        self._professionals[saved.id] = saved
        return saved

    async def delete_professional(self, professional_id: str) -> None:
        if self._professionals.pop(professional_id, None) is None:
            raise CatalogItemNotFoundError(f"Professional {professional_id} not found")


class SqlCatalogStore(CatalogStore):
    """SQLAlchemy-backed catalog."""

    def __init__(self, engine: Engine):
        self.SessionLocal = make_session_factory(engine)

    async def _run(self, operation: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(operation)
        except SQLAlchemyError as e:
            logger.error(f"Catalog store error: {e}")
            raise StoreError("Catalog store unavailable") from e

    async def list_services(self) -> List[ServiceConfig]:
        def _list():
            with self.SessionLocal() as db:
                records = db.query(ServiceRecord).order_by(ServiceRecord.name).all()
                return [
                    ServiceConfig(
                        id=r.id,
                        name=r.name,
                        description=r.description,
                        duration_minutes=r.duration_minutes,
                        price=r.price
                    )
                    for r in records
                ]

        return await self._run(_list)

    async def save_service(self, service: ServiceConfig) -> ServiceConfig:
        saved = service.model_copy(update={"id": service.id or make_catalog_id(service.name)})

        def _save():
            with self.SessionLocal() as db:
                db.merge(ServiceRecord(
                    id=saved.id,
                    name=saved.name,
                    description=saved.description,
                    duration_minutes=saved.duration_minutes,
                    price=saved.price
                ))
                db.commit()
            return saved

        return await self._run(_save)

    async def delete_service(self, service_id: str) -> None:
        def _delete():
            with self.SessionLocal() as db:
                deleted = db.query(ServiceRecord).filter(ServiceRecord.id == service_id).delete()
                db.commit()
                if not deleted:
                    raise CatalogItemNotFoundError(f"Service {service_id} not found")

        await self._run(_delete)

    async def list_professionals(self) -> List[ProfessionalConfig]:
        def _list():
            with self.SessionLocal() as db:
                records = db.query(ProfessionalRecord).order_by(ProfessionalRecord.name).all()
                return [
                    ProfessionalConfig(
                        id=r.id,
                        name=r.name,
                        role=r.role,
                        service_ids=list(r.service_ids or [])
                    )
                    for r in records
                ]

        return await self._run(_list)

    async def save_professional(self, professional: ProfessionalConfig) -> ProfessionalConfig:
        saved = professional.model_copy(
            update={"id": professional.id or make_catalog_id(professional.name)}
        )

        def _save():
            with self.SessionLocal() as db:
                db.merge(ProfessionalRecord(
                    id=saved.id,
                    name=saved.name,
                    role=saved.role,
                    service_ids=list(saved.service_ids)
                ))
                db.commit()
            return saved

        return await self._run(_save)

    async def delete_professional(self, professional_id: str) -> None:
        def _delete():
            with self.SessionLocal() as db:
                deleted = db.query(ProfessionalRecord).filter(
                    ProfessionalRecord.id == professional_id
                ).delete()
                db.commit()
                if not deleted:
                    raise CatalogItemNotFoundError(f"Professional {professional_id} not found")

        await self._run(_delete)


def create_catalog_store(
    backend: Optional[str] = None,
    engine: Optional[Engine] = None
) -> CatalogStore:
    """Build the configured catalog store ("memory" or "sql")."""
    backend = (backend or config.CATALOG_BACKEND).lower()
    if backend == "memory":
        return InMemoryCatalogStore()
    if backend == "sql":
        if engine is None:
            from agenda.database import get_engine
            engine = get_engine()
        return SqlCatalogStore(engine)
    raise ValueError(f"Unknown catalog backend: {backend}")
