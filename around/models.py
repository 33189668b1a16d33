"""Modèles Pydantic pour les posts géolocalisés."""
import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from around.errors import InputError
from around.logger import logger


def parse_coordinate(raw: Optional[Any], name: str = "coordinate") -> float:
    """
    Convertit une coordonnée brute (champ de formulaire) en float.

    Une valeur absente, illisible ou non finie vaut 0.0 : la requête
    n'est pas rejetée.

    Args:
        raw: Valeur reçue (str, nombre ou None)
        name: Nom du champ, pour les logs

    Returns:
        La coordonnée, ou 0.0
    """
    if raw is None or raw == "":
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Unparsable {name} {raw!r}, defaulting to 0.0", name=name, raw=raw)
        return 0.0
    if not math.isfinite(value):
        logger.warning("Non-finite {name} {raw!r}, defaulting to 0.0", name=name, raw=raw)
        return 0.0
    return value


class Location(BaseModel):  # pylint: disable=too-few-public-methods
    """Point géographique en degrés décimaux."""
    lat: float
    lon: float

    @classmethod
    def from_raw(cls, lat: Optional[Any], lon: Optional[Any]) -> 'Location':
        """Construit un point depuis des valeurs de formulaire (parsing tolérant)."""
        location = cls(
            lat=parse_coordinate(lat, "lat"),
            lon=parse_coordinate(lon, "lon"),
        )
        if not -90.0 <= location.lat <= 90.0 or not -180.0 <= location.lon <= 180.0:
            raise InputError(
                "Coordinates out of range",
                details={"lat": location.lat, "lon": location.lon},
            )
        return location

    def to_geo(self) -> Dict[str, float]:
        """Format du champ `_geo` de Meilisearch."""
        return {"lat": self.lat, "lng": self.lon}


class Post(BaseModel):  # pylint: disable=too-few-public-methods
    """Un post indexé : texte, position et lien vers le média."""
    id: str
    user: str
    message: str
    location: Location
    url: str = ""

    # `_geo`, `_geoDistance`... sont ignorés au décodage
    model_config = ConfigDict(extra="ignore")

    def to_document(self, geo_field: str = "_geo") -> Dict[str, Any]:
        """Document à indexer : forme publique + miroir géographique."""
        document = self.model_dump()
        document[geo_field] = self.location.to_geo()
        return document
