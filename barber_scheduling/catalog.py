# barber_scheduling/catalog.py
"""Read-side collaborators the scheduling engine consults: services and clients."""

import logging
from typing import Optional

from sqlmodel import Session, select

from .data import SERVICES
from .models import Client, Service

logger = logging.getLogger(__name__)


class ServiceCatalog:
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, service_id: int) -> Optional[Service]:
        return self.session.get(Service, service_id)

    def create(
        self, name: str, duration_min: int, price: Optional[float] = None, active: bool = True
    ) -> Service:
        service = Service(name=name, duration_min=duration_min, price=price, active=active)
        self.session.add(service)
        self.session.commit()
        self.session.refresh(service)
        return service

    def seed_defaults(self) -> int:
        """Insert the default catalog when the table is empty; returns rows added."""
        if self.session.exec(select(Service)).first() is not None:
            return 0
        for name, duration in SERVICES.items():
            self.session.add(Service(name=name, duration_min=duration))
        self.session.commit()
        logger.info("Seeded %d default services", len(SERVICES))
        return len(SERVICES)


class ClientDirectory:
    def __init__(self, session: Session):
        self.session = session

    def exists(self, client_id: int) -> bool:
        return self.session.get(Client, client_id) is not None

    def get(self, client_id: int) -> Optional[Client]:
        return self.session.get(Client, client_id)

    def create(self, name: str, phone: Optional[str] = None) -> Client:
        client = Client(name=name, phone=phone)
        self.session.add(client)
        self.session.commit()
        self.session.refresh(client)
        return client
