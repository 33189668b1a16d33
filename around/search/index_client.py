"""Client de l'index de documents (Meilisearch)."""
from typing import Any, Dict, List, Optional

from meilisearch_python_sdk import AsyncClient as MeiliClient
from meilisearch_python_sdk.errors import (
    MeilisearchApiError,
    MeilisearchCommunicationError,
    MeilisearchError,
    MeilisearchTimeoutError,
)

from around.config import Settings
from around.errors import IndexNotFound, IndexUnavailable, MalformedQuery, SearchIndexError
from around.logger import logger
from around.models import Location


def _map_api_error(index_name: str, error: MeilisearchApiError) -> SearchIndexError:
    """Traduit une erreur d'API Meilisearch dans la taxonomie du service."""
    details = {"index": index_name, "meili_code": error.code, "error": str(error)}
    if error.code == "index_not_found":
        return IndexNotFound(index_name, details=details)
    if 400 <= error.status_code < 500:
        return MalformedQuery(f"Index '{index_name}' rejected the request", details=details)
    return IndexUnavailable(f"Index '{index_name}' failed", details=details)


def _map_error(index_name: str, error: MeilisearchError) -> SearchIndexError:
    if isinstance(error, MeilisearchApiError):
        return _map_api_error(index_name, error)
    return IndexUnavailable(
        f"Index '{index_name}' unreachable",
        details={"index": index_name, "error": str(error)},
    )


class DocumentIndex:
    """Index de documents avec prédicat géographique natif (`_geoRadius`)."""

    def __init__(
        self,
        client: MeiliClient,
        task_timeout_ms: int = 5000,
        search_limit: Optional[int] = None,
    ):
        self.client = client
        self.task_timeout_ms = task_timeout_ms
        self.search_limit = search_limit

    @classmethod
    def from_settings(cls, settings: Settings) -> "DocumentIndex":
        """Construit l'index depuis la configuration."""
        return cls(
            MeiliClient(settings.MEILISEARCH_URL, settings.MEILISEARCH_API_KEY),
            task_timeout_ms=settings.TASK_TIMEOUT_MS,
            search_limit=settings.SEARCH_LIMIT,
        )

    async def _wait(self, index_name: str, task_uid: int) -> None:
        """Attend la fin d'une tâche ; seule une tâche `succeeded` confirme l'écriture."""
        try:
            result = await self.client.wait_for_task(task_uid, timeout_in_ms=self.task_timeout_ms)
        except (MeilisearchTimeoutError, MeilisearchCommunicationError) as e:
            raise IndexUnavailable(
                f"Task {task_uid} on '{index_name}' not confirmed",
                details={"index": index_name, "task_uid": task_uid, "error": str(e)},
            ) from e
        if result.status == "succeeded":
            return

        error = result.error or {}
        details = {"index": index_name, "task_uid": task_uid, "status": result.status, **error}
        if error.get("code") == "index_not_found":
            raise IndexNotFound(index_name, details=details)
        raise MalformedQuery(
            error.get("message") or f"Task {task_uid} on '{index_name}' {result.status}",
            details=details,
        )

    async def _get_or_create(self, index_name: str):
        """Retourne l'index, en le créant s'il est absent."""
        try:
            return await self.client.get_index(index_name)
        except MeilisearchApiError as e:
            if e.code != "index_not_found":
                raise _map_api_error(index_name, e) from e
        except MeilisearchError as e:
            raise _map_error(index_name, e) from e

        try:
            index = await self.client.create_index(index_name, primary_key="id")
            logger.info("Index {index} created", index=index_name)
            return index
        except MeilisearchApiError as e:
            if e.code != "index_already_exists":
                raise _map_api_error(index_name, e) from e
        except MeilisearchError as e:
            raise _map_error(index_name, e) from e

        # Créé par un autre processus entre les deux appels
        logger.info("Index {index} created concurrently", index=index_name)
        try:
            return await self.client.get_index(index_name)
        except MeilisearchError as e:
            raise _map_error(index_name, e) from e

    async def _ensure_attribute(self, index, index_name: str, kind: str, field: str) -> None:
        """Ajoute `field` aux attributs `kind` (filterable / sortable) s'il en est absent."""
        current = await getattr(index, f"get_{kind}_attributes")() or []
        names = set()
        for attribute in current:
            if isinstance(attribute, str):
                names.add(attribute)
            else:
                names.update(getattr(attribute, "attribute_patterns", None) or [])
        if field in names:
            return
        logger.info(
            "Index {index}: {field} is not {kind}, updating settings",
            index=index_name, field=field, kind=kind,
        )
        task = await getattr(index, f"update_{kind}_attributes")([*current, field])
        await self._wait(index_name, task.task_uid)

    async def ensure_schema(self, index_name: str, geo_field: str = "_geo") -> None:
        """
        Garantit l'existence de l'index et de son champ géographique.

        Idempotent. L'index est créé s'il est absent (une création concurrente
        vaut succès), puis `geo_field` est rendu filtrable et triable s'il ne
        l'est pas déjà, y compris sur un index existant dont la configuration
        a été interrompue.
        """
        index = await self._get_or_create(index_name)
        try:
            await self._ensure_attribute(index, index_name, "filterable", geo_field)
            await self._ensure_attribute(index, index_name, "sortable", geo_field)
        except MeilisearchError as e:
            raise _map_error(index_name, e) from e
        logger.info("Index {index} ready with geo field {field}", index=index_name, field=geo_field)

    async def upsert(self, index_name: str, doc_id: str, document: Dict[str, Any]) -> None:
        """
        Écrit (ou remplace) le document `doc_id` et attend qu'il soit visible.

        Raises:
            IndexNotFound, MalformedQuery, IndexUnavailable
        """
        body = {**document, "id": doc_id}
        try:
            task = await self.client.index(index_name).add_documents([body], primary_key="id")
            await self._wait(index_name, task.task_uid)
        except MeilisearchError as e:
            raise _map_error(index_name, e) from e
        logger.debug("Document {doc_id} visible in {index}", doc_id=doc_id, index=index_name)

    async def geo_search(
        self, index_name: str, center: Location, radius_meters: float
    ) -> List[Dict[str, Any]]:
        """
        Retourne les documents situés à `radius_meters` (inclus) au plus de `center`.

        L'ordre est celui du moteur, pas la distance. La limite par défaut du
        moteur s'applique si aucune n'est configurée.
        """
        geo_filter = f"_geoRadius({center.lat}, {center.lon}, {radius_meters})"
        kwargs: Dict[str, Any] = {"filter": geo_filter}
        if self.search_limit is not None:
            kwargs["limit"] = self.search_limit
        try:
            res = await self.client.index(index_name).search("", **kwargs)
        except MeilisearchError as e:
            raise _map_error(index_name, e) from e

        logger.info(
            "Query on {index} took {ms} ms, ~{total} hits",
            index=index_name, ms=res.processing_time_ms, total=res.estimated_total_hits,
        )
        return list(res.hits)

    async def health(self) -> bool:
        """Vérifie la disponibilité du moteur."""
        try:
            status = await self.client.health()
        except MeilisearchError:
            return False
        return status.status == "available"

    async def close(self) -> None:
        """Ferme le client HTTP sous-jacent."""
        await self.client.aclose()
