"""Moteur de recherche par rayon autour d'un point."""
# around/search/geo_query.py
import math
import time
from typing import Any, List, Optional

import psutil
from pydantic import ValidationError

from around.config import settings
from around.errors import HitDecodeError, MalformedQuery
from around.logger import logger
from around.models import Location, Post, parse_coordinate
from around.search.index_client import DocumentIndex


def parse_range_km(raw: Optional[Any], default_km: float) -> float:
    """
    Convertit le paramètre `range` (magnitude nue, en km).

    Raises:
        MalformedQuery: Si la valeur n'est pas un nombre fini positif ou nul
    """
    if raw is None or raw == "":
        return default_km
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise MalformedQuery("range must be a number of kilometers", details={"range": raw}) from e
    if not math.isfinite(value) or value < 0:
        raise MalformedQuery("range must be a non-negative number of kilometers", details={"range": raw})
    return value


class GeoQueryEngine:
    """Traduit (centre, rayon) en prédicat géographique et décode les hits en `Post`."""

    def __init__(
        self,
        document_index: DocumentIndex,
        index_name: str = settings.INDEX_NAME,
        default_range_km: float = settings.DEFAULT_RANGE_KM,
    ):
        self.index = document_index
        self.index_name = index_name
        self.default_range_km = default_range_km

    def _decode(self, hits: List[dict]) -> List[Post]:
        """Décodage strict : un seul hit invalide fait échouer toute la requête."""
        posts = []
        for position, hit in enumerate(hits):
            try:
                posts.append(Post.model_validate(hit))
            except ValidationError as e:
                errors = e.errors(include_url=False, include_context=False, include_input=False)
                raise HitDecodeError(
                    "Search hit does not match the Post schema",
                    details={"position": position, "id": hit.get("id"), "errors": errors},
                ) from e
        return posts

    async def search(
        self,
        center_lat: Any,
        center_lon: Any,
        range_km: Optional[Any] = None,
    ) -> List[Post]:
        """
        Recherche les posts à `range_km` km au plus du centre.

        Args:
            center_lat: Latitude du centre (parsing tolérant)
            center_lon: Longitude du centre (parsing tolérant)
            range_km: Rayon en km ; défaut `DEFAULT_RANGE_KM`

        Returns:
            Les posts trouvés, dans l'ordre du moteur (pas trié par distance)
        """
        start_time = time.time()
        center = Location(
            lat=parse_coordinate(center_lat, "lat"),
            lon=parse_coordinate(center_lon, "lon"),
        )
        radius_km = parse_range_km(range_km, self.default_range_km)
        logger.info(
            "Search received: {lat} {lon} {radius}km",
            lat=center.lat, lon=center.lon, radius=radius_km,
        )

        hits = await self.index.geo_search(self.index_name, center, radius_km * 1000)
        posts = self._decode(hits)

        duration = time.time() - start_time
        memory_mb = psutil.Process().memory_info().rss / 1024 / 1024
        logger.info(
            "Found a total of {count} posts | Durée = {duration:.4f}s | RAM = {memory:.2f} Mo",
            count=len(posts), duration=duration, memory=memory_mb,
        )
        return posts
