"""Read access to the user's connected sites."""

import logging

from newsflow.backend.client import BackendClient, unwrap_data
from newsflow.sites.schemas import Site

logger = logging.getLogger(__name__)


class SitesRepository:
    """Lists and fetches destination sites from the backend."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    async def list_sites(self) -> list[Site]:
        payload = await self._backend.get("/sites")
        rows = unwrap_data(payload) or []
        sites = [Site.model_validate(row) for row in rows]
        logger.debug("Loaded %d sites", len(sites))
        return sites

    async def get(self, site_id: str) -> Site | None:
        sites = await self.list_sites()
        for site in sites:
            if site.id == str(site_id):
                return site
        return None
