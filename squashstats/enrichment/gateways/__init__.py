"""Thin HTTP clients for the external services the pipeline consumes."""

from .base_gateway import BaseGateway, GatewayConfig, GatewayError
from .court_search import CourtCountSearcher, determine_source_type
from .facebook import FacebookPageClient
from .google_places import GooglePlacesClient, PlaceIdStatus
from .text_search import GooglePlacesTextSearchClient
from .translate import GoogleTranslateClient

__all__ = [
    "BaseGateway",
    "CourtCountSearcher",
    "FacebookPageClient",
    "GatewayConfig",
    "GatewayError",
    "GooglePlacesClient",
    "GooglePlacesTextSearchClient",
    "GoogleTranslateClient",
    "PlaceIdStatus",
    "determine_source_type",
]
