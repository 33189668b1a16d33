"""Client de stockage des médias (Azure Blob Storage)."""
from dataclasses import dataclass
from typing import IO, Any, Optional, Union

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import ContentSettings, PublicAccess
from azure.storage.blob.aio import BlobServiceClient

from around.errors import ContainerNotFound, PermissionDenied, StoreError, WriteFailed
from around.logger import logger

# Niveaux d'accès qui permettent la lecture anonyme d'un blob
_PUBLIC_READ_LEVELS = ("blob", "container")


@dataclass
class ObjectRef:
    """Référence vers un objet stocké."""
    container: str
    name: str
    url: str


class BlobStore:
    """
    Accès au stockage durable des médias.

    Un seul client de service, partagé par toutes les requêtes. Aucune
    méthode ne réessaie : les erreurs remontent typées.
    """

    def __init__(self, service_client: BlobServiceClient):
        self.service = service_client

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "BlobStore":
        """Construit le client depuis une chaîne de connexion Azure."""
        if not connection_string:
            raise StoreError("blob storage is not configured", code="STORE_NOT_CONFIGURED")
        return cls(BlobServiceClient.from_connection_string(connection_string))

    async def ensure_container_exists(self, container_name: str) -> None:
        """
        Vérifie que le conteneur existe, sans jamais le créer.

        Raises:
            ContainerNotFound: Si le conteneur est absent
            StoreError: Si le stockage ne répond pas
        """
        container = self.service.get_container_client(container_name)
        try:
            await container.get_container_properties()
        except ResourceNotFoundError as e:
            raise ContainerNotFound(container_name) from e
        except AzureError as e:
            raise StoreError(
                f"Cannot reach container '{container_name}'",
                details={"container": container_name, "error": str(e)},
            ) from e

    async def upload(
        self,
        container_name: str,
        object_name: str,
        stream: Union[bytes, IO[bytes], Any],
        content_type: Optional[str] = None,
    ) -> ObjectRef:
        """
        Copie le flux dans l'objet `object_name` et attend l'acquittement.

        Args:
            container_name: Conteneur cible (doit exister)
            object_name: Nom de l'objet (l'id du post)
            stream: Contenu binaire (bytes ou fichier)
            content_type: Type MIME optionnel

        Returns:
            La référence de l'objet écrit

        Raises:
            WriteFailed: Erreur pendant la copie ou la finalisation
        """
        blob = self.service.get_container_client(container_name).get_blob_client(object_name)
        kwargs = {}
        if content_type:
            kwargs["content_settings"] = ContentSettings(content_type=content_type)
        try:
            await blob.upload_blob(stream, overwrite=True, **kwargs)
        except (AzureError, OSError) as e:
            raise WriteFailed(
                f"Upload of '{object_name}' failed",
                details={"container": container_name, "object": object_name, "error": str(e)},
            ) from e

        logger.info("Media saved to blob storage: {url}", url=blob.url)
        return ObjectRef(container=container_name, name=object_name, url=blob.url)

    async def set_public_readable(self, container_name: str, object_name: str) -> None:
        """
        Rend l'objet lisible anonymement.

        Azure ne gère pas d'ACL par blob : on s'assure que le conteneur
        autorise au moins la lecture anonyme des blobs, en conservant ses
        politiques d'accès stockées.

        Raises:
            PermissionDenied: Si le stockage refuse le changement
        """
        container = self.service.get_container_client(container_name)
        try:
            policy = await container.get_container_access_policy()
            if policy.get("public_access") in _PUBLIC_READ_LEVELS:
                return
            identifiers = {
                identifier.id: identifier.access_policy
                for identifier in policy.get("signed_identifiers") or []
            }
            await container.set_container_access_policy(
                signed_identifiers=identifiers,
                public_access=PublicAccess.BLOB,
            )
        except AzureError as e:
            raise PermissionDenied(
                f"Public read access refused for '{object_name}'",
                details={"container": container_name, "object": object_name, "error": str(e)},
            ) from e
        logger.debug("Container {container} opened for anonymous blob reads", container=container_name)

    async def close(self) -> None:
        """Ferme le client de service."""
        await self.service.close()
