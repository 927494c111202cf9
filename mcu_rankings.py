#!/usr/bin/env python3
"""
MCU Rankings - rate Marvel Cinematic Universe films, specials and show
seasons, grouped by release phase.

This module holds the configuration and logging setup and the
``RankingsApp`` integration point that wires a backend to the repositories
and services.
"""

import json
import logging
import os
from typing import Dict, Optional

from colorama import init
from dotenv import load_dotenv

from app.errors import ConfigError
from app.repositories import (
    ItemRepository, ScoreColorRepository, ScoreRepository,
)
from app.services import (
    CatalogService, SearchService, SessionGate, ThemeContext, TitleService,
)

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root MCU Rankings logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger('mcu_rankings')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = setup_logging()

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: Dict = {
    'backend': 'sql',
    'supabase_url': '',
    'supabase_anon_key': '',
    'database_url': 'sqlite:///mcu_rankings.db',
    'schema_layout': 'split',
    'admin_email': 'admin@mcurankings.local',
    'secret_key': '',
    'log_level': 'WARNING',
    'request_timeout': 10,
    'search_debounce_ms': 200,
}

# config key -> environment variable that overrides it
ENV_OVERRIDES = {
    'backend': 'MCU_BACKEND',
    'supabase_url': 'SUPABASE_URL',
    'supabase_anon_key': 'SUPABASE_ANON_KEY',
    'database_url': 'DATABASE_URL',
    'schema_layout': 'MCU_SCHEMA_LAYOUT',
    'admin_email': 'MCU_ADMIN_EMAIL',
    'secret_key': 'MCU_SECRET_KEY',
    'log_level': 'MCU_LOG_LEVEL',
}

BACKENDS = ('sql', 'supabase')


def load_config(config_path: Optional[str] = 'config.json') -> Dict:
    """Load configuration from a JSON file with environment variable support.

    The file is optional; missing keys fall back to :data:`DEFAULT_CONFIG`.
    Environment variables (see :data:`ENV_OVERRIDES`, a ``.env`` file is
    honoured) take precedence over file values.

    Raises:
        ConfigError: The file is not valid JSON or the result is unusable.
    """
    load_dotenv()

    config = dict(DEFAULT_CONFIG)
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Error parsing config file {config_path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")
        config.update(file_config)
    elif config_path:
        logger.info("Config file %s not found, using defaults", config_path)

    for key, env_var in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            config[key] = value

    validate_config(config)
    return config


def validate_config(config: Dict) -> None:
    if config.get('backend') not in BACKENDS:
        raise ConfigError(f"backend must be one of {', '.join(BACKENDS)}")
    if config.get('schema_layout') not in ('split', 'unified'):
        raise ConfigError("schema_layout must be 'split' or 'unified'")
    if config['backend'] == 'supabase':
        if not config.get('supabase_url') or not config.get('supabase_anon_key'):
            raise ConfigError(
                "The supabase backend needs supabase_url and supabase_anon_key "
                "(or SUPABASE_URL / SUPABASE_ANON_KEY)")
    try:
        int(config.get('request_timeout', 10))
        int(config.get('search_debounce_ms', 200))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid numeric setting: {e}") from e


def build_backend(config: Dict):
    """Return ``(store, auth)`` for the configured backend."""
    if config['backend'] == 'supabase':
        from supabase_client import SupabaseClient
        client = SupabaseClient(config['supabase_url'], config['supabase_anon_key'],
                                timeout=int(config.get('request_timeout', 10)))
        return client, client

    import database
    store = database.SQLStore(config.get('database_url'))
    if not store.init_db():
        logger.warning("Local database could not be initialized")
    return store, database.SQLAuth(store)


# ---------------------------------------------------------------------------
# Integration point
# ---------------------------------------------------------------------------

class RankingsApp:
    """Wires a backend to the repositories and services.

    Args:
        config: Loaded configuration (see :func:`load_config`).
        store:  Persistence adapter; built from *config* when omitted.
        auth:   Auth backend; built from *config* when omitted.
    """

    def __init__(self, config: Optional[Dict] = None, store=None, auth=None) -> None:
        self._log = logging.getLogger('mcu_rankings.app')
        self.config = dict(DEFAULT_CONFIG, **(config or {}))
        setup_logging(self.config.get('log_level', 'WARNING'))

        if store is None or auth is None:
            built_store, built_auth = build_backend(self.config)
            store = store if store is not None else built_store
            auth = auth if auth is not None else built_auth
        self.store = store
        self.auth = auth
        self.admin_email = self.config['admin_email']

        layout = self.config.get('schema_layout', 'split')
        self.item_repo = ItemRepository(store, layout)
        self.score_repo = ScoreRepository(store, layout)
        self.color_repo = ScoreColorRepository(store, layout)

        self.catalog = CatalogService(self.item_repo, self.score_repo, self.color_repo)
        self.titles = TitleService(self.item_repo, self.score_repo)
        self.search = SearchService(self.item_repo)
        self._log.debug("RankingsApp ready (backend=%s, layout=%s)",
                        self.config.get('backend'), layout)

    def scoped(self, access_token: Optional[str]) -> 'RankingsApp':
        """Return an app whose backend calls carry *access_token*.

        Used for writes on the hosted backend, where row-level security only
        lets the signed-in admin change rows.  The scoped app shares this
        app's loaded catalog, so its score edits patch the same list.
        """
        store = self.store.with_access_token(access_token)
        if store is self.store:
            return self
        scoped = RankingsApp(self.config, store=store, auth=self.auth)
        scoped.catalog = self.catalog.bound_to(scoped.item_repo, scoped.score_repo,
                                               scoped.color_repo)
        return scoped

    @property
    def search_debounce_ms(self) -> int:
        return int(self.config.get('search_debounce_ms', 200))

    def session_gate(self, store) -> SessionGate:
        return SessionGate(self.auth, self.admin_email, store)

    @staticmethod
    def theme(store) -> ThemeContext:
        return ThemeContext(store)
