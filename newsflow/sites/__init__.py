"""Sites: connected WordPress destinations."""

from newsflow.sites.repository import SitesRepository
from newsflow.sites.schemas import Site

__all__ = ["Site", "SitesRepository"]
