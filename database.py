#!/usr/bin/env python3
"""
Database models and local backend for MCU Rankings.

Defines the backend tables as SQLAlchemy models and provides two classes that
mirror the hosted backend so the rest of the app cannot tell them apart:

* :class:`SQLStore`: ``select`` / ``upsert`` / ``update`` over the tables.
* :class:`SQLAuth`: password sign-in, sign-up and bearer-token sessions.

Works on any SQLAlchemy URL; SQLite is the default, PostgreSQL in production.
"""

import logging
import os
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String,
    create_engine, insert, select, update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from werkzeug.security import check_password_hash, generate_password_hash

from app.errors import AuthError, FetchError

logger = logging.getLogger('mcu_rankings.database')

DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///mcu_rankings.db')

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Split layout: movies/specials and shows in their own tables
# ---------------------------------------------------------------------------

class MovieSpecial(Base):
    """A film or a special presentation."""
    __tablename__ = 'mcu_movies_specials'

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False, index=True)
    is_special = Column(Boolean, default=False)
    year = Column(Integer)
    phase = Column(Integer, index=True)
    phase_order = Column(Integer)


class Show(Base):
    """One season of a television series."""
    __tablename__ = 'mcu_shows'

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False, index=True)
    show_key = Column(String(100), index=True)  # groups seasons of one series
    season_number = Column(Integer, default=1)
    year = Column(Integer)
    phase = Column(Integer, index=True)
    phase_order = Column(Integer)


class MovieSpecialRanking(Base):
    __tablename__ = 'mcu_movie_special_rankings'

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey('mcu_movies_specials.id'), unique=True, nullable=False)
    score = Column(String(3), nullable=False, default='5')
    updated_at = Column(DateTime, default=_utcnow)


class ShowRanking(Base):
    __tablename__ = 'mcu_show_rankings'

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey('mcu_shows.id'), unique=True, nullable=False)
    score = Column(String(3), nullable=False, default='5')
    updated_at = Column(DateTime, default=_utcnow)


# ---------------------------------------------------------------------------
# Unified layout: every item kind in one table
# ---------------------------------------------------------------------------

class UnifiedItem(Base):
    __tablename__ = 'mcu_items'

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False, index=True)
    item_type = Column(String(20), nullable=False)  # 'film', 'special' or 'show'
    show_key = Column(String(100), nullable=True, index=True)
    season_number = Column(Integer, nullable=True)
    year = Column(Integer)
    phase = Column(Integer, index=True)
    phase_order = Column(Integer)


class UnifiedItemRanking(Base):
    __tablename__ = 'mcu_item_rankings'

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey('mcu_items.id'), unique=True, nullable=False)
    score = Column(String(3), nullable=False, default='5')
    updated_at = Column(DateTime, default=_utcnow)


# ---------------------------------------------------------------------------
# Reference data and auth
# ---------------------------------------------------------------------------

class ScoreColor(Base):
    """Display colours for one score token."""
    __tablename__ = 'score_colors'

    score = Column(String(3), primary_key=True)
    hex_color_light = Column(String(7), nullable=False)
    hex_color_dark = Column(String(7), nullable=False)
    color_name = Column(String(30), nullable=False)


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default='admin')
    created_at = Column(DateTime, default=_utcnow)


class AuthSession(Base):
    """Bearer token issued on sign-in; deleted on sign-out."""
    __tablename__ = 'auth_sessions'

    token = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    created_at = Column(DateTime, default=_utcnow)


def make_engine(url: Optional[str] = None):
    url = url or DATABASE_URL
    connect_args = {'check_same_thread': False} if url.startswith('sqlite') else {}
    return create_engine(url, echo=False, connect_args=connect_args)


# ---------------------------------------------------------------------------
# Table access
# ---------------------------------------------------------------------------

class SQLStore:
    """Local implementation of the persistence adapter contract.

    Every call runs in its own connection/transaction; SQLAlchemy errors are
    re-raised as :class:`FetchError` with the driver message.
    """

    def __init__(self, url: Optional[str] = None, engine=None) -> None:
        self.engine = engine if engine is not None else make_engine(url)

    def with_access_token(self, token: Optional[str]) -> 'SQLStore':
        # Local tables carry no row-level security; the session gate decides.
        return self

    def init_db(self) -> bool:
        """Create all tables.  Returns ``False`` if the database refused."""
        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables initialized successfully")
            return True
        except SQLAlchemyError as e:
            logger.error("Failed to initialize database: %s", e)
            return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _table(name: str):
        table = Base.metadata.tables.get(name)
        if table is None:
            raise FetchError(f'relation "{name}" does not exist')
        return table

    @staticmethod
    def _column(table, name: str):
        try:
            return table.c[name]
        except KeyError:
            raise FetchError(f'column {table.name}.{name} does not exist') from None

    def _conditions(self, table, filters: Optional[Iterable]) -> List:
        conditions = []
        for column, op, value in filters or []:
            col = self._column(table, column)
            if op == 'eq':
                conditions.append(col == value)
            elif op == 'ilike':
                conditions.append(col.ilike(value, escape='\\'))
            else:
                raise ValueError(f"Unsupported filter operator: {op}")
        return conditions

    @staticmethod
    def _coerce(table, row: Dict[str, Any]) -> Dict[str, Any]:
        """Turn ISO-8601 strings into datetimes for DateTime columns."""
        out = dict(row)
        for key, value in row.items():
            if key in table.c and isinstance(table.c[key].type, DateTime) and isinstance(value, str):
                out[key] = datetime.fromisoformat(value)
        return out

    # ------------------------------------------------------------------
    # Adapter contract
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: str = '*',
        filters: Optional[Iterable] = None,
        order: Optional[Sequence] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        tbl = self._table(table)
        if columns.strip() == '*':
            stmt = select(tbl)
        else:
            stmt = select(*[self._column(tbl, c.strip()) for c in columns.split(',')])
        conditions = self._conditions(tbl, filters)
        if conditions:
            stmt = stmt.where(*conditions)
        for spec in order or []:
            column, ascending = (spec, True) if isinstance(spec, str) else spec
            col = self._column(tbl, column)
            stmt = stmt.order_by(col.asc() if ascending else col.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self.engine.connect() as conn:
                return [dict(r) for r in conn.execute(stmt).mappings().all()]
        except SQLAlchemyError as e:
            logger.error("Select on %s failed: %s", table, e)
            raise FetchError(str(e)) from e

    def upsert(self, table: str, row: Dict[str, Any], on_conflict: str) -> None:
        tbl = self._table(table)
        key_col = self._column(tbl, on_conflict)
        values = self._coerce(tbl, row)
        try:
            with self.engine.begin() as conn:
                existing = conn.execute(
                    select(key_col).where(key_col == values[on_conflict])
                ).first()
                if existing:
                    patch = {k: v for k, v in values.items() if k != on_conflict}
                    if patch:
                        conn.execute(update(tbl).where(key_col == values[on_conflict]).values(**patch))
                else:
                    conn.execute(insert(tbl).values(**values))
        except SQLAlchemyError as e:
            logger.error("Upsert on %s failed: %s", table, e)
            raise FetchError(str(e)) from e
        logger.info("Upserted %s on %s=%s", table, on_conflict, row.get(on_conflict))

    def update(
        self,
        table: str,
        filters: Iterable,
        patch: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        tbl = self._table(table)
        conditions = self._conditions(tbl, filters)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(update(tbl).where(*conditions).values(**self._coerce(tbl, patch)))
                if result.rowcount == 0:
                    return None
                row = conn.execute(select(tbl).where(*conditions)).mappings().first()
        except SQLAlchemyError as e:
            logger.error("Update on %s failed: %s", table, e)
            raise FetchError(str(e)) from e
        logger.info("Updated %s with %s", table, sorted(patch))
        return dict(row) if row else None


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class SQLAuth:
    """Password auth over the ``users`` and ``auth_sessions`` tables.

    Method names and return shapes match the hosted client's auth methods.
    """

    def __init__(self, store: SQLStore) -> None:
        self._engine = store.engine
        self._users = User.__table__
        self._sessions = AuthSession.__table__

    def _find_user(self, conn, email: str):
        return conn.execute(
            select(self._users).where(self._users.c.email == email)
        ).mappings().first()

    @staticmethod
    def _public(user) -> Dict[str, Any]:
        return {'id': user['id'], 'email': user['email'], 'role': user['role']}

    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        try:
            with self._engine.begin() as conn:
                user = self._find_user(conn, email)
                if not user or not check_password_hash(user['password_hash'], password):
                    raise AuthError('Invalid login credentials', code=AuthError.INVALID_CREDENTIALS)
                token = secrets.token_urlsafe(32)
                conn.execute(insert(self._sessions).values(token=token, user_id=user['id']))
        except SQLAlchemyError as e:
            logger.error("Sign-in failed: %s", e)
            raise AuthError(str(e)) from e
        logger.info("Issued session for %s", email)
        return {'user': self._public(user), 'access_token': token, 'refresh_token': None}

    def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        if not password:
            raise AuthError('Password should not be empty', code='weak_password')
        try:
            with self._engine.begin() as conn:
                if self._find_user(conn, email):
                    raise AuthError('User already registered', code='user_already_exists')
                conn.execute(insert(self._users).values(
                    email=email, password_hash=generate_password_hash(password), role='admin',
                ))
                user = self._find_user(conn, email)
        except SQLAlchemyError as e:
            logger.error("Sign-up failed: %s", e)
            raise AuthError(str(e)) from e
        logger.info("Created account %s", email)
        return self._public(user)

    def get_user(self, access_token: str) -> Dict[str, Any]:
        try:
            with self._engine.connect() as conn:
                user = conn.execute(
                    select(self._users)
                    .join(self._sessions, self._sessions.c.user_id == self._users.c.id)
                    .where(self._sessions.c.token == access_token)
                ).mappings().first()
        except SQLAlchemyError as e:
            raise AuthError(str(e)) from e
        if not user:
            raise AuthError('Invalid or expired session', code='session_not_found')
        return self._public(user)

    def sign_out(self, access_token: Optional[str] = None) -> None:
        if not access_token:
            return
        try:
            with self._engine.begin() as conn:
                conn.execute(self._sessions.delete().where(self._sessions.c.token == access_token))
        except SQLAlchemyError as e:
            raise AuthError(str(e)) from e


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

# (light, dark, name) per base grade; modifiers share their base's colours.
_BASE_COLORS = {
    '0':  ('#2D3748', '#171923', 'black'),
    '1':  ('#E53E3E', '#C53030', 'red'),
    '2':  ('#DD6B20', '#C05621', 'orange'),
    '3':  ('#ED8936', '#DD6B20', 'orange'),
    '4':  ('#ECC94B', '#D69E2E', 'yellow'),
    '5':  ('#FFFFFF', '#4A5568', 'white'),
    '6':  ('#68D391', '#48BB78', 'green'),
    '7':  ('#48BB78', '#38A169', 'green'),
    '8':  ('#38A169', '#2F855A', 'green'),
    '9':  ('#3182CE', '#2B6CB0', 'blue'),
    '10': ('#805AD5', '#6B46C1', 'purple'),
    '11': ('#D69E2E', '#B7791F', 'gold'),
}


def default_score_colors() -> List[Dict[str, str]]:
    rows = []
    for base, (light, dark, name) in _BASE_COLORS.items():
        tokens = [base]
        if 1 <= int(base) <= 9:
            tokens = [f'{base}-', base, f'{base}+']
        for token in tokens:
            rows.append({
                'score': token,
                'hex_color_light': light,
                'hex_color_dark': dark,
                'color_name': name,
            })
    return rows


SAMPLE_MOVIES = [
    {'id': 1, 'title': 'Iron Man', 'is_special': False, 'year': 2008, 'phase': 1, 'phase_order': 1},
    {'id': 2, 'title': 'The Incredible Hulk', 'is_special': False, 'year': 2008, 'phase': 1, 'phase_order': 2},
    {'id': 3, 'title': 'Iron Man 2', 'is_special': False, 'year': 2010, 'phase': 1, 'phase_order': 3},
    {'id': 4, 'title': 'Thor', 'is_special': False, 'year': 2011, 'phase': 1, 'phase_order': 4},
    {'id': 5, 'title': 'Captain America: The First Avenger', 'is_special': False, 'year': 2011,
     'phase': 1, 'phase_order': 5},
    {'id': 6, 'title': 'The Avengers', 'is_special': False, 'year': 2012, 'phase': 1, 'phase_order': 6},
    {'id': 7, 'title': 'Werewolf by Night', 'is_special': True, 'year': 2022, 'phase': 4, 'phase_order': 9},
]

SAMPLE_SHOWS = [
    {'id': 101, 'title': 'WandaVision', 'show_key': 'wandavision', 'season_number': 1, 'year': 2021,
     'phase': 4, 'phase_order': 1},
    {'id': 102, 'title': 'Loki', 'show_key': 'loki', 'season_number': 1, 'year': 2021,
     'phase': 4, 'phase_order': 3},
    {'id': 103, 'title': 'Loki', 'show_key': 'loki', 'season_number': 2, 'year': 2023,
     'phase': 5, 'phase_order': 4},
]


def seed(store: SQLStore, sample_items: bool = False) -> int:
    """Load reference colours (and optionally sample items) into *store*.

    Re-running is safe: every row is upserted on its key.

    Returns:
        Number of rows written.
    """
    written = 0
    for row in default_score_colors():
        store.upsert('score_colors', row, on_conflict='score')
        written += 1
    if sample_items:
        for row in SAMPLE_MOVIES:
            store.upsert('mcu_movies_specials', row, on_conflict='id')
            written += 1
        for row in SAMPLE_SHOWS:
            store.upsert('mcu_shows', row, on_conflict='id')
            written += 1
    logger.info("Seeded %d rows", written)
    return written
