"""Génération des identifiants de posts."""
import uuid


def new_id() -> str:
    """Identifiant aléatoire (UUID4) : clé primaire de l'index et nom du blob."""
    return str(uuid.uuid4())
