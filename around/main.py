"""Main module for the FastAPI application."""
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, settings
from .errors import AroundError, StoreError
from .ingestion.orchestrator import IngestionOrchestrator, MediaAttachment, Submission
from .logger import logger
from .models import Post
from .search.geo_query import GeoQueryEngine
from .search.index_client import DocumentIndex
from .storage.blob_store import BlobStore


@dataclass
class Services:
    """Clients longue durée partagés par toutes les requêtes."""
    document_index: DocumentIndex
    blob_store: Optional[BlobStore]
    orchestrator: IngestionOrchestrator
    query_engine: GeoQueryEngine


def build_services(cfg: Settings) -> Services:
    """Construit un client par store et les services qui en dépendent."""
    document_index = DocumentIndex.from_settings(cfg)

    blob_store: Optional[BlobStore] = None
    if cfg.BLOB_CONNECTION_STRING:
        blob_store = BlobStore.from_connection_string(cfg.BLOB_CONNECTION_STRING)
    else:
        logger.warning("BLOB_CONNECTION_STRING not set: posts with media will be refused")

    orchestrator = IngestionOrchestrator(
        document_index,
        blob_store,
        index_name=cfg.INDEX_NAME,
        container_name=cfg.BUCKET_NAME,
        geo_field=cfg.GEO_FIELD,
        default_user=cfg.DEFAULT_USER,
    )
    query_engine = GeoQueryEngine(
        document_index,
        index_name=cfg.INDEX_NAME,
        default_range_km=cfg.DEFAULT_RANGE_KM,
    )
    return Services(document_index, blob_store, orchestrator, query_engine)


async def close_services(services: Services) -> None:
    await services.document_index.close()
    if services.blob_store is not None:
        await services.blob_store.close()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Handle FastAPI startup and shutdown events."""
    logger.info("Starting up Around API...")
    services = build_services(settings)

    # Sans champ géographique typé, aucune requête ne peut être servie : échec fatal
    try:
        await services.document_index.ensure_schema(settings.INDEX_NAME, settings.GEO_FIELD)
    except AroundError as e:
        logger.critical("Schema bootstrap failed: {error}", error=e.to_dict())
        await close_services(services)
        raise

    _app.state.services = services
    logger.info("started service")

    yield

    logger.info("Shutting down Around API...")
    await close_services(services)


app = FastAPI(
    title="Around - Geo-tagged posts",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def get_services(request: Request) -> Services:
    """Dépendance FastAPI : services construits au démarrage."""
    return request.app.state.services


def get_orchestrator(services: Services = Depends(get_services)) -> IngestionOrchestrator:
    return services.orchestrator


def get_query_engine(services: Services = Depends(get_services)) -> GeoQueryEngine:
    return services.query_engine


def _to_http(error: AroundError) -> HTTPException:
    return HTTPException(status_code=error.http_status, detail=error.to_dict())


@app.post("/post", response_model=Post)
async def create_post(
    message: str = Form(""),
    lat: Optional[str] = Form(None),
    lon: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    """
    POST /post endpoint.

    Formulaire multipart : `message`, `lat`, `lon` et un fichier `image`
    optionnel. Les coordonnées illisibles valent 0.0.
    """
    media = None
    if image is not None:
        media = MediaAttachment(stream=image.file, content_type=image.content_type, filename=image.filename)

    try:
        return await orchestrator.ingest(Submission(message=message, lat=lat, lon=lon, media=media))
    except AroundError as e:
        logger.exception("Error processing post request")
        raise _to_http(e) from e


@app.get("/search", response_model=List[Post])
async def search(
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    range_km: Optional[str] = Query(None, alias="range"),
    engine: GeoQueryEngine = Depends(get_query_engine),
):
    """GET /search endpoint : posts à `range` km (défaut 200) du point."""
    logger.info("Received one request for search.")
    try:
        return await engine.search(lat, lon, range_km)
    except AroundError as e:
        logger.exception("Error processing search request")
        raise _to_http(e) from e


@app.get("/")
def root():
    """Root endpoint to check API status."""
    return {"status": "ok", "message": "Around API is running"}


@app.get("/health", status_code=status.HTTP_200_OK, tags=["Monitoring"])
async def health_check(services: Services = Depends(get_services)):
    """
    Health check endpoint.

    Vérifie l'index et, s'il est configuré, le conteneur de médias.
    Retourne 503 si l'un des deux est injoignable.
    """
    services_status = {"index": "ok", "blob_store": "disabled"}
    if not await services.document_index.health():
        services_status["index"] = "error"
        logger.error("Health check failed: index unavailable.")

    if services.blob_store is not None:
        try:
            await services.blob_store.ensure_container_exists(settings.BUCKET_NAME)
            services_status["blob_store"] = "ok"
        except StoreError as e:
            services_status["blob_store"] = "error"
            logger.error("Health check failed: {error}", error=e.to_dict())

    if "error" in services_status.values():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=services_status)

    return services_status
