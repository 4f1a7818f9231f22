import time
from dataclasses import dataclass, field

from fastapi import Depends, Request

from config.models import Config
from core.commit.builder import AtomicCommitBuilder
from core.context.sweeper import ContextSweeper
from core.contracts.object_store import ObjectStoreClient
from core.contracts.store import ContextStore


@dataclass
class Services:
    """Everything a request handler may need; one instance per app."""
    config: Config
    store: ContextStore
    object_store: ObjectStoreClient
    builder: AtomicCommitBuilder
    sweeper: ContextSweeper
    started_at: float = field(default_factory=time.time)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_store(services: Services = Depends(get_services)) -> ContextStore:
    return services.store


def get_builder(services: Services = Depends(get_services)) -> AtomicCommitBuilder:
    return services.builder


def get_object_store_client(services: Services = Depends(get_services)) -> ObjectStoreClient:
    return services.object_store
