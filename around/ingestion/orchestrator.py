"""Orchestration de l'ingestion : identité, média, puis indexation."""
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any, Callable, Optional

from around.config import settings
from around.errors import ConsistencyGap, SearchIndexError, StoreError
from around.identity import new_id
from around.logger import logger
from around.models import Location, Post
from around.search.index_client import DocumentIndex
from around.storage.blob_store import BlobStore


class IngestionStage(str, Enum):
    """Étapes d'une ingestion, strictement linéaires."""
    START = "start"
    IDENTITY_ASSIGNED = "identity_assigned"
    MEDIA_UPLOADED = "media_uploaded"


@dataclass
class MediaAttachment:
    """Pièce jointe binaire d'une soumission."""
    stream: IO[bytes]
    content_type: Optional[str] = None
    filename: Optional[str] = None


@dataclass
class Submission:
    """Soumission brute reçue de la couche HTTP."""
    message: str = ""
    lat: Any = None
    lon: Any = None
    media: Optional[MediaAttachment] = None


class IngestionOrchestrator:
    """
    Transforme une soumission en post durablement cherchable.

    Le média est toujours écrit (et rendu public) avant l'indexation ; un
    échec côté stockage interrompt la requête avant toute écriture dans
    l'index. Un échec d'indexation après un upload réussi laisse un blob
    orphelin, signalé par `ConsistencyGap` et jamais supprimé ici.
    """

    def __init__(
        self,
        document_index: DocumentIndex,
        blob_store: Optional[BlobStore] = None,
        index_name: str = settings.INDEX_NAME,
        container_name: str = settings.BUCKET_NAME,
        geo_field: str = settings.GEO_FIELD,
        default_user: str = settings.DEFAULT_USER,
        id_factory: Callable[[], str] = new_id,
    ):
        self.index = document_index
        self.blob_store = blob_store
        self.index_name = index_name
        self.container_name = container_name
        self.geo_field = geo_field
        self.default_user = default_user
        self.id_factory = id_factory

    async def _store_media(self, post_id: str, media: MediaAttachment) -> str:
        """Vérifie le conteneur, écrit le blob et l'ouvre en lecture ; retourne l'URL."""
        if self.blob_store is None:
            raise StoreError("blob storage is not configured", code="STORE_NOT_CONFIGURED")
        await self.blob_store.ensure_container_exists(self.container_name)
        ref = await self.blob_store.upload(
            self.container_name, post_id, media.stream, content_type=media.content_type
        )
        await self.blob_store.set_public_readable(self.container_name, post_id)
        return ref.url

    async def ingest(self, submission: Submission) -> Post:
        """
        Ingère une soumission.

        Returns:
            Le post complet, une fois l'indexation confirmée

        Raises:
            InputError: Coordonnées hors limites (avant toute écriture)
            StoreError: Échec du média (rien n'est indexé)
            SearchIndexError: Échec d'indexation sans média
            ConsistencyGap: Échec d'indexation après un upload réussi
        """
        stage = IngestionStage.START
        location = Location.from_raw(submission.lat, submission.lon)
        message = submission.message or ""
        logger.info("Received one post request: {message}", message=message)

        post_id = self.id_factory()
        stage = IngestionStage.IDENTITY_ASSIGNED

        media_url = ""
        if submission.media is not None:
            try:
                media_url = await self._store_media(post_id, submission.media)
            except StoreError as e:
                logger.error(
                    "Media upload failed at {stage} for {post_id}: {error}",
                    stage=stage.value, post_id=post_id, error=e,
                )
                raise
            stage = IngestionStage.MEDIA_UPLOADED

        post = Post(
            id=post_id,
            user=self.default_user,
            message=message,
            location=location,
            url=media_url,
        )

        try:
            await self.index.upsert(self.index_name, post_id, post.to_document(self.geo_field))
        except SearchIndexError as e:
            if media_url:
                logger.error(
                    "Consistency gap: media {url} stored but post {post_id} not indexed: {error}",
                    url=media_url, post_id=post_id, error=e,
                )
                raise ConsistencyGap(post_id, media_url, details={"cause": e.to_dict()}) from e
            logger.error(
                "Indexing failed at {stage} for {post_id}: {error}",
                stage=stage.value, post_id=post_id, error=e,
            )
            raise

        logger.info("Post is saved to index: {post_id}", post_id=post_id)
        return post
