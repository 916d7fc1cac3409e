"""Upstream boundaries of the dashboard.

ApiClient:
    Shared aiohttp session with TTL response cache and ApiError mapping.

NewsClient / PriceClient / RepositoryClient / CreativeClient:
    One client per boundary. Every fetch returns a FetchResult and never
    raises for transport failures; fallback results carry an error.
"""

from clients.http import ApiClient, ApiError
from clients.news import NewsClient
from clients.prices import PriceClient, COINGECKO_BASE_URL
from clients.repos import RepositoryClient, GITHUB_BASE_URL
from clients.creative import CreativeClient

__all__ = [
    "ApiClient",
    "ApiError",
    "NewsClient",
    "PriceClient",
    "RepositoryClient",
    "CreativeClient",
    "COINGECKO_BASE_URL",
    "GITHUB_BASE_URL",
]
