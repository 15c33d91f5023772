"""FastAPI dependencies wiring the ingestion components."""

from functools import lru_cache

from tally_events.clients.tinybird import TinybirdClient
from tally_events.config import settings
from tally_events.repositories.project_repository import ProjectRepository
from tally_events.services.track_service import TrackService
from tally_events.utils.project_cache import ProjectActivityCache


def create_project_cache(
    repository: ProjectRepository | None = None,
    ttl_ms: int | None = None,
) -> ProjectActivityCache:
    """
    Build a project activity cache backed by the projects table.

    Args:
        repository: ProjectRepository instance (creates new if None)
        ttl_ms: Cache lifetime (defaults to PROJECT_CACHE_TTL_MS)

    Returns:
        ProjectActivityCache querying project status on misses
    """
    repository = repository or ProjectRepository()
    return ProjectActivityCache(
        query_status=repository.get_status,
        ttl_ms=settings.project_cache_ttl_ms if ttl_ms is None else ttl_ms,
    )


@lru_cache(maxsize=1)
def get_project_cache() -> ProjectActivityCache:
    """Process-wide project activity cache."""
    return create_project_cache()


@lru_cache(maxsize=1)
def get_tinybird_client() -> TinybirdClient:
    """
    Process-wide Tinybird client.

    Raises:
        ConfigurationError: If TINYBIRD_API_URL or TINYBIRD_EVENTS_TOKEN is unset
    """
    return TinybirdClient.from_settings(settings)


def init_dependencies() -> None:
    """
    Build the process-wide components at startup.

    Called from the app lifespan and at Lambda cold start so a process
    without Tinybird configuration fails before serving any request.

    Raises:
        ConfigurationError: If TINYBIRD_API_URL or TINYBIRD_EVENTS_TOKEN is unset
    """
    get_tinybird_client()
    get_project_cache()


def get_track_service() -> TrackService:
    """Track service bound to the shared cache and warehouse client."""
    return TrackService(
        project_cache=get_project_cache(),
        warehouse=get_tinybird_client(),
    )
