"""
Factory for a fully wired VenueCategorizer.

Optional capabilities (translation, text search, AI fallback, court-count
enrichment) are enabled only when their credentials are configured.

Usage:
    from squashstats.enrichment.factory import create_venue_categorizer

    categorizer = create_venue_categorizer()
    results = categorizer.process_batch(limit=10)
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from squashstats.configs.config import Config
from squashstats.configs.settings import Settings, get_settings
from squashstats.enrichment.categorizer import VenueCategorizer
from squashstats.enrichment.classification import (
    AICategorizer,
    CourtCountAnalyzer,
    NewCategoryDetector,
    VenueContextAnalyzer,
    create_type_mapper_from_config,
)
from squashstats.enrichment.gateways import (
    CourtCountSearcher,
    FacebookPageClient,
    GatewayError,
    GooglePlacesClient,
    GooglePlacesTextSearchClient,
    GoogleTranslateClient,
)
from squashstats.enrichment.llm import OpenAIWebSearchClient, create_llm_client
from squashstats.enrichment.stages import CourtCountServices
from squashstats.persistence import CourtCountUpdater, VenueRepository, create_db_engine

logger = logging.getLogger(__name__)


def _optional_translator(settings: Settings) -> Optional[GoogleTranslateClient]:
    api_key = Settings.secret(settings.GOOGLE_TRANSLATE_API_KEY) or Settings.secret(
        settings.GOOGLE_PLACES_API_KEY
    )
    try:
        return GoogleTranslateClient(api_key=api_key)
    except GatewayError as e:
        logger.info(f"Translation disabled: {e}")
        return None


def _optional_text_search(settings: Settings) -> Optional[GooglePlacesTextSearchClient]:
    try:
        return GooglePlacesTextSearchClient(
            api_key=Settings.secret(settings.GOOGLE_PLACES_API_KEY),
            request_timeout=settings.GOOGLE_PLACES_TIMEOUT,
        )
    except GatewayError as e:
        logger.info(f"Text search repair disabled: {e}")
        return None


def _optional_ai_categorizer(settings: Settings) -> Optional[AICategorizer]:
    llm = create_llm_client(
        model_name=settings.OPENAI_CATEGORIZATION_MODEL,
        api_key=Settings.secret(settings.OPENAI_API_KEY),
        timeout=settings.OPENAI_TIMEOUT,
    )
    if llm is None:
        return None
    return AICategorizer(llm)


def _optional_court_count(
    settings: Settings, engine: Engine, repository: VenueRepository
) -> Optional[CourtCountServices]:
    openai_key = Settings.secret(settings.OPENAI_API_KEY)
    if not openai_key:
        logger.info("Court count enrichment disabled: OpenAI API key is not configured")
        return None

    web_search = OpenAIWebSearchClient(
        model_name=settings.OPENAI_COURT_COUNT_MODEL,
        api_key=openai_key,
        timeout=settings.OPENAI_WEB_SEARCH_TIMEOUT,
    )
    searcher = CourtCountSearcher(
        google_api_key=Settings.secret(settings.GOOGLE_CUSTOM_SEARCH_API_KEY),
        google_engine_id=settings.GOOGLE_CUSTOM_SEARCH_ENGINE_ID,
        serpapi_api_key=Settings.secret(settings.SERPAPI_API_KEY),
        tavily_api_key=Settings.secret(settings.TAVILY_API_KEY),
    )
    facebook = FacebookPageClient(access_token=Settings.secret(settings.FACEBOOK_ACCESS_TOKEN))
    return CourtCountServices(
        searcher=searcher,
        analyzer=CourtCountAnalyzer(web_search, facebook_client=facebook),
        updater=CourtCountUpdater(
            engine, repository=repository, system_user_id=settings.SYSTEM_USER_ID
        ),
    )


def create_venue_categorizer(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    enable_court_count: bool = True,
) -> VenueCategorizer:
    """
    Build a VenueCategorizer from settings.

    Args:
        settings: Application settings (cached settings when omitted)
        engine: SQLAlchemy engine (built from DATABASE_URL when omitted)
        enable_court_count: Wire court-count enrichment when credentials allow

    Returns:
        Configured VenueCategorizer

    Raises:
        GatewayError: If the Google Places API key is missing
        ConfigurationError: If the categorization rules file is invalid
    """
    settings = settings or get_settings()
    engine = engine or create_db_engine(settings.DATABASE_URL)
    rules = Config.load_categorization_rules()

    places_client = GooglePlacesClient(
        api_key=Settings.secret(settings.GOOGLE_PLACES_API_KEY),
        request_timeout=settings.GOOGLE_PLACES_TIMEOUT,
    )
    repository = VenueRepository(engine)

    categorizer = VenueCategorizer(
        repository=repository,
        places_client=places_client,
        type_mapper=create_type_mapper_from_config(rules, translator=_optional_translator(settings)),
        context_analyzer=VenueContextAnalyzer(repository=repository, rules=rules),
        detector=NewCategoryDetector(),
        text_search=_optional_text_search(settings),
        ai_categorizer=_optional_ai_categorizer(settings),
        court_count=_optional_court_count(settings, engine, repository) if enable_court_count else None,
        batch_delay_seconds=settings.BATCH_DELAY_SECONDS,
        system_user_id=settings.SYSTEM_USER_ID,
    )
    logger.info(
        f"Venue categorizer ready (rules {Config.get_rules_version()}, "
        f"ai={categorizer.ai_enabled}, court_count={categorizer.court_count_enabled})"
    )
    return categorizer
