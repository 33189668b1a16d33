# tests/helpers.py
from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock


class Colors:
    HEADER = '\033[95m'
    OKGREEN = '\033[92m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'


@contextmanager
def reported(name):
    """Affiche le début et le résultat d'un scénario (utile avec `pytest -s`)."""
    print(f"\n{Colors.HEADER}===== RUNNING TEST: {name} ====={Colors.ENDC}")
    try:
        yield
    except BaseException:
        print(f"{Colors.FAIL}===== TEST FAILED: {name} ====={Colors.ENDC}")
        raise
    print(f"{Colors.OKGREEN}===== TEST PASSED: {name} ====={Colors.ENDC}")


def geo_ready_index(filterable=("_geo",), sortable=("_geo",)):
    """Index Meilisearch mocké dont les réglages géographiques sont lus tels quels."""
    index = MagicMock()
    index.get_filterable_attributes = AsyncMock(return_value=list(filterable))
    index.get_sortable_attributes = AsyncMock(return_value=list(sortable))
    index.update_filterable_attributes = AsyncMock(return_value=MagicMock(task_uid=1))
    index.update_sortable_attributes = AsyncMock(return_value=MagicMock(task_uid=2))
    return index
