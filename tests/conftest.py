# tests/conftest.py
import math
from typing import Any, Dict, List, Optional

import pytest
from unittest.mock import AsyncMock, MagicMock

from around.errors import ContainerNotFound
from around.ingestion.orchestrator import IngestionOrchestrator
from around.models import Location
from around.search.geo_query import GeoQueryEngine
from around.storage.blob_store import ObjectRef

from .helpers import geo_ready_index

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance orthodromique en mètres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


# --- Faux stores en mémoire ---

class FakeDocumentIndex:
    """Index en mémoire : upsert immédiatement visible, rayon inclusif."""

    def __init__(self, events: List[tuple]):
        self.events = events
        self.indexes: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.upsert_error: Optional[Exception] = None
        self.raw_hits: Optional[List[Dict[str, Any]]] = None

    async def ensure_schema(self, index_name: str, geo_field: str = "_geo") -> None:
        self.events.append(("ensure_schema", index_name))
        self.indexes.setdefault(index_name, {})

    async def upsert(self, index_name: str, doc_id: str, document: Dict[str, Any]) -> None:
        self.events.append(("upsert", doc_id))
        if self.upsert_error is not None:
            raise self.upsert_error
        self.indexes.setdefault(index_name, {})[doc_id] = {**document, "id": doc_id}

    async def geo_search(self, index_name: str, center: Location, radius_meters: float) -> List[Dict[str, Any]]:
        self.events.append(("geo_search", index_name, center.lat, center.lon, radius_meters))
        if self.raw_hits is not None:
            return self.raw_hits
        return [
            doc for doc in self.indexes.get(index_name, {}).values()
            if haversine_m(center.lat, center.lon, doc["_geo"]["lat"], doc["_geo"]["lng"]) <= radius_meters
        ]

    async def health(self) -> bool:
        return True

    async def close(self) -> None:
        self.events.append(("close_index",))

    def documents(self, index_name: str = "around") -> Dict[str, Dict[str, Any]]:
        return self.indexes.get(index_name, {})


class FakeBlobStore:
    """Stockage en mémoire avec injection d'erreurs par étape."""

    def __init__(self, events: List[tuple], containers=("post-images",)):
        self.events = events
        self.containers = set(containers)
        self.blobs: Dict[str, bytes] = {}
        self.upload_error: Optional[BaseException] = None
        self.public_error: Optional[Exception] = None

    async def ensure_container_exists(self, container_name: str) -> None:
        self.events.append(("ensure_container", container_name))
        if container_name not in self.containers:
            raise ContainerNotFound(container_name)

    async def upload(self, container_name, object_name, stream, content_type=None) -> ObjectRef:
        self.events.append(("upload", object_name))
        if self.upload_error is not None:
            raise self.upload_error
        data = stream if isinstance(stream, bytes) else stream.read()
        self.blobs[object_name] = data
        return ObjectRef(
            container=container_name,
            name=object_name,
            url=f"https://acct.blob.core.windows.net/{container_name}/{object_name}",
        )

    async def set_public_readable(self, container_name: str, object_name: str) -> None:
        self.events.append(("public", object_name))
        if self.public_error is not None:
            raise self.public_error

    async def close(self) -> None:
        self.events.append(("close_blob",))


# --- Fixtures ---

@pytest.fixture
def events():
    return []


@pytest.fixture
def fake_index(events):
    return FakeDocumentIndex(events)


@pytest.fixture
def fake_blob_store(events):
    return FakeBlobStore(events)


@pytest.fixture
def orchestrator(fake_index, fake_blob_store):
    return IngestionOrchestrator(
        fake_index,
        fake_blob_store,
        index_name="around",
        container_name="post-images",
        default_user="1111",
    )


@pytest.fixture
def query_engine(fake_index):
    return GeoQueryEngine(fake_index, index_name="around", default_range_km=200.0)


@pytest.fixture
def mock_meili_client():
    """Mock du client Meilisearch : tâches réussies, recherche vide."""
    client = MagicMock()
    client.get_index = AsyncMock(return_value=geo_ready_index())
    client.create_index = AsyncMock()
    client.wait_for_task = AsyncMock(return_value=MagicMock(status="succeeded", error=None))
    index = MagicMock()
    index.add_documents = AsyncMock(return_value=MagicMock(task_uid=7))
    index.search = AsyncMock(return_value=MagicMock(hits=[], estimated_total_hits=0, processing_time_ms=1))
    client.index.return_value = index
    return client


@pytest.fixture
def mock_blob_service():
    """Mock du BlobServiceClient Azure (conteneur existant, privé)."""
    service = MagicMock()
    container = MagicMock()
    container.get_container_properties = AsyncMock(return_value={"name": "post-images"})
    container.get_container_access_policy = AsyncMock(
        return_value={"public_access": None, "signed_identifiers": []}
    )
    container.set_container_access_policy = AsyncMock()
    blob = MagicMock()
    blob.upload_blob = AsyncMock()
    blob.url = "https://acct.blob.core.windows.net/post-images/abc"
    container.get_blob_client.return_value = blob
    service.get_container_client.return_value = container
    service.close = AsyncMock()
    return service
