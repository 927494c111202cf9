#!/usr/bin/env python3
"""
MCU Rankings Web - Flask front end for browsing and rating MCU titles.

Pages render server-side with Jinja templates; a small JSON API under
``/api`` serves the same data to scripts and typeahead clients.
"""

import argparse
import logging
import os
import sys
from functools import wraps
from typing import Dict, Optional
from urllib.parse import urlparse

from colorama import Fore
from flask import (
    Flask, flash, jsonify, redirect, render_template, request, session, url_for,
)

import mcu_rankings
from app.errors import AuthError, ConfigError, FetchError, NotFoundError, ValidationError
from app.repositories.item_repository import ITEM_TYPES
from app.services import provision_admin
from app.services.catalog_service import filter_by_year, season_counts
from app.services.score_codec import BASE_SCORE_OPTIONS, SCORE_OPTIONS

app = Flask(__name__)
app.secret_key = os.urandom(24)

# Use the shared logger so level is controlled by config/setup_logging()
web_logger = logging.getLogger('mcu_rankings.web')

CONFIG_PATH = os.getenv('MCU_CONFIG', 'config.json')

# Global application instance, built on first use
rankings: Optional[mcu_rankings.RankingsApp] = None


def get_rankings() -> mcu_rankings.RankingsApp:
    global rankings
    if rankings is None:
        rankings = mcu_rankings.RankingsApp(mcu_rankings.load_config(CONFIG_PATH))
    return rankings


def _gate():
    return get_rankings().session_gate(session)


def _theme():
    return mcu_rankings.RankingsApp.theme(session)


def _writer() -> mcu_rankings.RankingsApp:
    """App instance whose backend calls carry the admin's token."""
    return get_rankings().scoped(_gate().access_token)


def _is_api() -> bool:
    return request.path.startswith('/api/')


def _back(default: str = 'index') -> str:
    """Referring page on this host, else *default*."""
    ref = request.referrer
    if ref:
        parts = urlparse(ref)
        if parts.scheme in ('http', 'https') and parts.netloc == request.host:
            return ref
    return url_for(default)


def require_admin(f):
    """Decorator to require the admin session"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _gate().is_admin:
            if _is_api():
                return jsonify({'error': 'Admin login required'}), 403
            flash('Admin login required to edit rankings', 'error')
            return redirect(_back())
        return f(*args, **kwargs)
    return decorated_function


@app.before_request
def restore_session():
    """Check a persisted admin credential once per browser session."""
    if request.endpoint == 'static' or session.get('session_checked'):
        return
    _gate().restore()
    session['session_checked'] = True


@app.context_processor
def inject_ui_state():
    gate = _gate()
    return {
        'gate': gate,
        'theme': _theme(),
        'read_only': not gate.can_edit,
        'search_debounce_ms': get_rankings().search_debounce_ms,
    }


@app.errorhandler(ConfigError)
def handle_config_error(e):
    web_logger.error('Configuration error: %s', e)
    return f'Configuration error: {e}', 500


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def _load_catalog():
    svc = get_rankings().catalog
    svc.load()
    return svc


def _catalog_error(e: FetchError):
    web_logger.error('Error loading catalog: %s', e.message)
    return render_template(
        'error.html',
        heading='Unable to Load Projects',
        message='Failed to load data from the database',
        detail=e.message,
        retry_url=request.full_path,
    ), 502


@app.route('/')
def index():
    """Catalog grouped by phase"""
    try:
        svc = _load_catalog()
    except FetchError as e:
        return _catalog_error(e)
    year = request.args.get('year') or None
    counts = season_counts(svc.rankings)
    is_dark = _theme().is_dark
    phases = [
        (phase, [svc.present(item, counts, is_dark) for item in items])
        for phase, items in svc.phases(year)
    ]
    return render_template('catalog.html', phases=phases, year=year, grouped=True,
                           base_options=BASE_SCORE_OPTIONS)


@app.route('/all')
def all_projects():
    """Flat catalog, optionally filtered by ?year="""
    try:
        svc = _load_catalog()
    except FetchError as e:
        return _catalog_error(e)
    year = request.args.get('year') or None
    counts = season_counts(svc.rankings)
    is_dark = _theme().is_dark
    rows = [svc.present(item, counts, is_dark) for item in filter_by_year(svc.rankings, year)]
    return render_template('catalog.html', phases=[(None, rows)], year=year, grouped=False,
                           base_options=BASE_SCORE_OPTIONS)


def _apply_score_edit(svc, item: Dict, data) -> str:
    """Run the edit described by *data* (``score``, ``base`` or ``toggle``)."""
    if data.get('score'):
        return svc.update_score(item, str(data['score']).strip())
    if data.get('base') not in (None, ''):
        return svc.change_base(item, str(data['base']).strip())
    if data.get('toggle'):
        return svc.toggle_modifier(item)
    raise ValidationError('Nothing to update: send score, base or toggle')


def _score_target(svc, item_id: int, data) -> Dict:
    """The stored item an edit applies to.

    ``item_type`` in *data* is optional and only narrows the lookup.
    """
    item_type = data.get('item_type') or None
    if item_type is not None and item_type not in ITEM_TYPES:
        raise ValidationError(f'Unknown item type: {item_type}')
    return svc.resolve(item_id, item_type)


@app.route('/items/<int:item_id>/score', methods=['POST'])
@require_admin
def update_score(item_id: int):
    """Catalog score edit form"""
    svc = _writer().catalog
    try:
        new_score = _apply_score_edit(svc, _score_target(svc, item_id, request.form), request.form)
    except NotFoundError:
        return render_template('error.html', heading='Title not found.', message='',
                               retry_url=None), 404
    except ValidationError as e:
        flash(str(e), 'error')
    except FetchError as e:
        web_logger.error('Error updating score: %s', e.message)
        flash(f'Failed to update score: {e.message or "Unknown error"}', 'error')
    else:
        web_logger.info('Score for item %s set to %s', item_id, new_score)
    return redirect(_back())


# ---------------------------------------------------------------------------
# Detail page
# ---------------------------------------------------------------------------

def _render_title(model: Dict, form: Optional[Dict] = None, error: Optional[str] = None,
                  status: int = 200):
    return render_template('title.html', model=model, form=form or {}, error=error,
                           base_options=BASE_SCORE_OPTIONS), status


@app.route('/title/<int:item_id>')
def title_page(item_id: int):
    """Detail page for one item"""
    try:
        model = get_rankings().titles.load(item_id)
    except FetchError as e:
        web_logger.error('Error loading title %s: %s', item_id, e.message)
        return render_template('error.html', heading='Failed to load title',
                               message=e.message, retry_url=request.full_path), 502
    if model is None:
        return render_template('error.html', heading='Title not found.', message='',
                               retry_url=None), 404
    return _render_title(model)


@app.route('/title/<int:item_id>', methods=['POST'])
@require_admin
def save_title(item_id: int):
    """Detail edit form: title, year and score together"""
    form = request.form
    try:
        model = _writer().titles.save(item_id, form.get('title'), form.get('year'),
                                      form.get('base'), form.get('modifier', ''))
    except ValidationError as e:
        try:
            current = get_rankings().titles.load(item_id)
        except FetchError as fe:
            flash(f'Failed to load title: {fe.message}', 'error')
            return redirect(url_for('index'))
        if current is None:
            return render_template('error.html', heading='Title not found.', message='',
                                   retry_url=None), 404
        return _render_title(current, form=form.to_dict(), error=str(e), status=400)
    except FetchError as e:
        web_logger.error('Error saving title %s: %s', item_id, e.message)
        flash(f'Failed to save: {e.message or "Unknown error"}', 'error')
        return redirect(url_for('title_page', item_id=item_id))
    if model is None:
        return render_template('error.html', heading='Title not found.', message='',
                               retry_url=None), 404
    flash('Saved', 'info')
    return redirect(url_for('title_page', item_id=item_id))


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@app.route('/search')
def search_page():
    query = request.args.get('q', '')
    try:
        results = get_rankings().search.search(query)
    except FetchError as e:
        web_logger.error('Search error: %s', e.message)
        flash(f'Search failed: {e.message}', 'error')
        results = []
    return render_template('search.html', query=query, results=results)


# ---------------------------------------------------------------------------
# Session gate and theme
# ---------------------------------------------------------------------------

@app.route('/login', methods=['POST'])
def login():
    password = request.form.get('password', '')
    try:
        _gate().login(password)
    except AuthError as e:
        flash(e.message, 'login_error')
    return redirect(_back())


@app.route('/guest', methods=['POST'])
def guest():
    _gate().continue_as_guest()
    return redirect(_back())


@app.route('/logout', methods=['POST'])
def logout():
    _gate().sign_out()
    return redirect(url_for('index'))


@app.route('/theme', methods=['POST'])
def toggle_theme():
    _theme().toggle()
    return redirect(_back())


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------

@app.route('/api/catalog')
def api_catalog():
    try:
        svc = _load_catalog()
    except FetchError as e:
        web_logger.error('Error loading catalog: %s', e.message)
        return jsonify({'error': 'Failed to load data from the database', 'detail': e.message}), 502
    year = request.args.get('year') or None
    counts = season_counts(svc.rankings)
    is_dark = _theme().is_dark
    return jsonify({
        'phases': [
            {'phase': phase, 'items': [svc.present(i, counts, is_dark) for i in items]}
            for phase, items in svc.phases(year)
        ],
        'score_options': SCORE_OPTIONS,
        'read_only': not _gate().can_edit,
    })


@app.route('/api/titles/<int:item_id>')
def api_title(item_id: int):
    try:
        model = get_rankings().titles.load(item_id)
    except FetchError as e:
        return jsonify({'error': 'Failed to load title', 'detail': e.message}), 502
    if model is None:
        return jsonify({'error': 'Title not found'}), 404
    return jsonify(model)


@app.route('/api/items/<int:item_id>/score', methods=['POST'])
@require_admin
def api_update_score(item_id: int):
    data = request.get_json(silent=True) or {}
    svc = _writer().catalog
    try:
        new_score = _apply_score_edit(svc, _score_target(svc, item_id, data), data)
    except NotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except FetchError as e:
        web_logger.error('Error updating score: %s', e.message)
        return jsonify({'error': f'Failed to update score: {e.message or "Unknown error"}'}), 502
    return jsonify({'item_id': item_id, 'score': new_score})


@app.route('/api/search')
def api_search():
    query = request.args.get('q', '')
    try:
        results = get_rankings().search.search(query)
    except FetchError as e:
        web_logger.error('Search error: %s', e.message)
        return jsonify({'error': e.message, 'results': []}), 502
    return jsonify({'query': query, 'results': results})


@app.route('/api/auth/current')
def api_auth_current():
    return jsonify(dict(_gate().as_dict(), theme=_theme().name))


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def _attach_file_log(level: str) -> None:
    try:
        os.makedirs('logs', exist_ok=True)
        fh = logging.FileHandler('logs/mcu_rankings_web.log')
        fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
        fh.setLevel(getattr(logging, level.upper(), logging.INFO))
        logging.getLogger('mcu_rankings').addHandler(fh)
    except OSError:
        web_logger.warning('Could not create log file handler')


def main(argv=None) -> int:
    """Main entry point"""
    global rankings, CONFIG_PATH
    parser = argparse.ArgumentParser(description='MCU Rankings web app')
    parser.add_argument('--config', default=CONFIG_PATH, help='Path to config file')
    sub = parser.add_subparsers(dest='command')

    serve = sub.add_parser('serve', help='Run the web server (default)')
    serve.add_argument('--host', default='127.0.0.1')
    serve.add_argument('--port', type=int, default=5000)
    serve.add_argument('--debug', action='store_true')

    prov = sub.add_parser('provision-admin', help='Create the admin account')
    prov.add_argument('--password', help='Admin password (prompted when omitted)')

    init = sub.add_parser('init-db', help='Create local tables and seed score colours')
    init.add_argument('--sample', action='store_true', help='Also load sample titles')

    args = parser.parse_args(argv)
    CONFIG_PATH = args.config

    try:
        config = mcu_rankings.load_config(args.config)
    except ConfigError as e:
        print(f"{Fore.RED}Error: {e}")
        return 1

    command = args.command or 'serve'

    if command == 'init-db':
        if config['backend'] != 'sql':
            print(f"{Fore.YELLOW}init-db only applies to the local sql backend")
            return 1
        import database
        store = database.SQLStore(config['database_url'])
        if not store.init_db():
            print(f"{Fore.RED}Could not create tables in {config['database_url']}")
            return 1
        try:
            count = database.seed(store, sample_items=args.sample)
        except FetchError as e:
            print(f"{Fore.RED}Seeding failed: {e.message}")
            return 1
        print(f"{Fore.GREEN}Database ready ({count} rows seeded)")
        return 0

    rankings = mcu_rankings.RankingsApp(config)

    if command == 'provision-admin':
        password = args.password
        if not password:
            import getpass
            password = getpass.getpass('Admin password: ')
        try:
            provision_admin(rankings.auth, rankings.admin_email, password)
        except AuthError as e:
            print(f"{Fore.RED}Provisioning failed: {e.message}")
            return 1
        print(f"{Fore.GREEN}Admin account {rankings.admin_email} created")
        return 0

    if config.get('secret_key'):
        app.secret_key = config['secret_key']
    _attach_file_log(config.get('log_level', 'INFO'))

    print("\n" + "=" * 60)
    print(f"{Fore.CYAN}MCU Rankings running at http://{args.host}:{args.port}")
    print("=" * 60 + "\n")
    try:
        app.run(host=args.host, port=args.port, debug=args.debug)
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}MCU Rankings stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
