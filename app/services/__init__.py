"""Services package: expose all concrete services from one import."""
from .catalog_service import CatalogService
from .title_service import TitleService
from .search_service import SearchService
from .session_service import SessionGate, provision_admin
from .theme_service import ThemeContext
from .score_colors import ScoreColors

__all__ = [
    'CatalogService',
    'TitleService',
    'SearchService',
    'SessionGate',
    'provision_admin',
    'ThemeContext',
    'ScoreColors',
]
