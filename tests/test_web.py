#!/usr/bin/env python3
"""
Flask route tests for mcu_rankings_web.

Each test gets a fresh SQLite database seeded with the sample titles and an
admin account, wired into the module-level ``rankings`` instance.

Run with:
    python -m pytest tests/test_web.py
"""
import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
import mcu_rankings
import mcu_rankings_web
from app.errors import FetchError

ADMIN_EMAIL = 'admin@test.local'
ADMIN_PASSWORD = 'correct horse'


class WebTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        url = f"sqlite:///{os.path.join(self.tmp, 'web.db')}"
        self.store = database.SQLStore(url)
        self.store.init_db()
        database.seed(self.store, sample_items=True)
        self.auth = database.SQLAuth(self.store)
        self.auth.sign_up(ADMIN_EMAIL, ADMIN_PASSWORD)

        self.rankings = mcu_rankings.RankingsApp(
            {'database_url': url, 'admin_email': ADMIN_EMAIL},
            store=self.store, auth=self.auth,
        )
        self._saved = mcu_rankings_web.rankings
        mcu_rankings_web.rankings = self.rankings
        mcu_rankings_web.app.config['TESTING'] = True
        self.client = mcu_rankings_web.app.test_client()

    def tearDown(self):
        mcu_rankings_web.rankings = self._saved
        self.store.engine.dispose()
        shutil.rmtree(self.tmp, ignore_errors=True)

    # helpers

    def login(self, password=ADMIN_PASSWORD):
        return self.client.post('/login', data={'password': password}, follow_redirects=True)

    def post_score(self, item_id, payload):
        return self.client.post(f'/api/items/{item_id}/score',
                                data=json.dumps(payload),
                                content_type='application/json')

    def catalog_item(self, item_id):
        data = json.loads(self.client.get('/api/catalog').data)
        for phase in data['phases']:
            for item in phase['items']:
                if item['id'] == item_id:
                    return item
        return None


# ===========================================================================
# Catalog
# ===========================================================================

class TestCatalogPages(WebTestCase):

    def test_first_visit_shows_login_modal(self):
        resp = self.client.get('/')
        self.assertEqual(resp.status_code, 200)
        self.assertIn(b'MCU Rankings Access', resp.data)
        self.assertIn(b'Phase 1', resp.data)
        self.assertIn(b'Loki (S1)', resp.data)
        self.assertIn(b'WandaVision', resp.data)
        self.assertNotIn(b'WandaVision (S1)', resp.data)

    def test_guest_sees_read_only_catalog(self):
        self.client.post('/guest')
        resp = self.client.get('/')
        self.assertNotIn(b'MCU Rankings Access', resp.data)
        self.assertIn(b'Viewing rankings in guest mode', resp.data)
        self.assertNotIn(b'/items/1/score', resp.data)

    def test_admin_sees_score_controls(self):
        self.login()
        resp = self.client.get('/')
        self.assertIn(b'Logged in as Admin', resp.data)
        self.assertIn(b'/items/1/score', resp.data)

    def test_year_filter(self):
        resp = self.client.get('/all?year=2011')
        self.assertIn(b'Thor', resp.data)
        self.assertNotIn(b'Iron Man', resp.data)

    def test_load_failure_page(self):
        with patch.object(self.rankings.catalog, 'load',
                          side_effect=FetchError('relation "mcu_shows" does not exist')):
            resp = self.client.get('/')
        self.assertEqual(resp.status_code, 502)
        self.assertIn(b'Unable to Load Projects', resp.data)
        self.assertIn(b'Retry', resp.data)

    def test_api_catalog(self):
        data = json.loads(self.client.get('/api/catalog').data)
        self.assertEqual([p['phase'] for p in data['phases']], [1, 4, 5])
        self.assertEqual(len(data['score_options']), 30)
        self.assertTrue(data['read_only'])
        self.assertEqual(self.catalog_item(1)['score'], '5')


# ===========================================================================
# Score edits
# ===========================================================================

class TestScoreEdits(WebTestCase):

    def test_requires_admin(self):
        resp = self.post_score(1, {'item_type': 'film', 'score': '7'})
        self.assertEqual(resp.status_code, 403)
        self.client.post('/guest')
        resp = self.post_score(1, {'item_type': 'film', 'score': '7'})
        self.assertEqual(resp.status_code, 403)

    def test_set_score(self):
        self.login()
        resp = self.post_score(1, {'item_type': 'film', 'score': '7+'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(json.loads(resp.data), {'item_id': 1, 'score': '7+'})
        self.assertEqual(self.catalog_item(1)['score'], '7+')

    def test_change_base_keeps_modifier(self):
        self.login()
        self.post_score(1, {'score': '4+'})
        resp = self.post_score(1, {'item_type': 'film', 'base': '9'})
        self.assertEqual(json.loads(resp.data)['score'], '9+')

    def test_toggle_cycles(self):
        self.login()
        self.post_score(102, {'score': '6+'})
        resp = self.post_score(102, {'item_type': 'show', 'toggle': True})
        self.assertEqual(json.loads(resp.data)['score'], '6-')
        self.assertEqual(self.catalog_item(102)['score'], '6-')

    def test_edit_ignores_client_supplied_current_score(self):
        self.login()
        self.post_score(1, {'score': '10'})
        resp = self.post_score(1, {'toggle': True, 'current': '6+'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.catalog_item(1)['score'], '10')

    def test_toggle_on_terminal_grade_rejected(self):
        self.login()
        self.post_score(1, {'score': '10'})
        resp = self.post_score(1, {'item_type': 'film', 'toggle': True})
        self.assertEqual(resp.status_code, 400)

    def test_kind_comes_from_stored_item(self):
        self.login()
        resp = self.post_score(101, {'score': '8-'})
        self.assertEqual(resp.status_code, 200)
        shows = self.store.select(self.rankings.score_repo.table_for('show'), 'item_id, score')
        movies = self.store.select(self.rankings.score_repo.table_for('film'), 'item_id, score')
        self.assertIn({'item_id': 101, 'score': '8-'}, shows)
        self.assertEqual([r for r in movies if r['item_id'] == 101], [])
        self.assertEqual(self.catalog_item(101)['score'], '8-')

    def test_mismatched_kind_rejected(self):
        self.login()
        resp = self.post_score(101, {'item_type': 'film', 'score': '7'})
        self.assertEqual(resp.status_code, 400)
        movies = self.store.select(self.rankings.score_repo.table_for('film'), 'item_id, score')
        self.assertEqual([r for r in movies if r['item_id'] == 101], [])

    def test_unknown_item_is_404(self):
        self.login()
        resp = self.post_score(9999, {'item_type': 'film', 'score': '7'})
        self.assertEqual(resp.status_code, 404)
        movies = self.store.select(self.rankings.score_repo.table_for('film'), 'item_id, score')
        self.assertEqual([r for r in movies if r['item_id'] == 9999], [])

        resp = self.client.post('/items/9999/score', data={'base': '7'})
        self.assertEqual(resp.status_code, 404)
        self.assertIn(b'Title not found.', resp.data)

    def test_invalid_token_rejected(self):
        self.login()
        resp = self.post_score(1, {'item_type': 'film', 'score': '12'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.catalog_item(1)['score'], '5')

    def test_write_failure_reports_message(self):
        self.login()
        with patch.object(self.store, 'upsert', side_effect=FetchError('permission denied')):
            resp = self.post_score(1, {'item_type': 'film', 'score': '3'})
        self.assertEqual(resp.status_code, 502)
        self.assertIn('permission denied', json.loads(resp.data)['error'])

    def test_form_edit_redirects_back(self):
        self.login()
        resp = self.client.post('/items/7/score',
                                data={'item_type': 'special', 'base': '8'})
        self.assertEqual(resp.status_code, 302)
        self.assertEqual(self.catalog_item(7)['score'], '8')


# ===========================================================================
# Detail page
# ===========================================================================

class TestTitlePage(WebTestCase):

    def test_unknown_title(self):
        resp = self.client.get('/title/999')
        self.assertEqual(resp.status_code, 404)
        self.assertIn(b'Title not found.', resp.data)
        self.assertEqual(self.client.get('/api/titles/999').status_code, 404)

    def test_show_has_season_switcher(self):
        data = json.loads(self.client.get('/api/titles/103').data)
        self.assertTrue(data['show_season_switcher'])
        self.assertEqual([s['season_number'] for s in data['siblings']], [1, 2])
        resp = self.client.get('/title/103')
        self.assertIn(b'season-switcher', resp.data)

    def test_guest_has_no_edit_form(self):
        self.client.post('/guest')
        resp = self.client.get('/title/1')
        self.assertEqual(resp.status_code, 200)
        self.assertNotIn(b'title-edit', resp.data)

    def test_save_requires_admin(self):
        self.client.post('/guest')
        self.client.post('/title/1', data={'title': 'X', 'year': '2008', 'base': '5'})
        data = json.loads(self.client.get('/api/titles/1').data)
        self.assertEqual(data['item']['title'], 'Iron Man')

    def test_save(self):
        self.login()
        resp = self.client.post('/title/1', data={
            'title': 'Iron Man (2008)', 'year': '2008', 'base': '9', 'modifier': '-',
        })
        self.assertEqual(resp.status_code, 302)
        data = json.loads(self.client.get('/api/titles/1').data)
        self.assertEqual(data['item']['title'], 'Iron Man (2008)')
        self.assertEqual(data['score'], '9-')

    def test_out_of_range_year(self):
        self.login()
        resp = self.client.post('/title/1', data={'title': 'Iron Man', 'year': '1899', 'base': '5'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn(b'Year must be between 1900 and 3000', resp.data)
        data = json.loads(self.client.get('/api/titles/1').data)
        self.assertEqual(data['item']['year'], 2008)


# ===========================================================================
# Search
# ===========================================================================

class TestSearch(WebTestCase):

    def test_short_query(self):
        data = json.loads(self.client.get('/api/search?q=i').data)
        self.assertEqual(data['results'], [])

    def test_matches_across_kinds(self):
        data = json.loads(self.client.get('/api/search?q=LOKI').data)
        self.assertEqual(len(data['results']), 2)
        self.assertTrue(all(r['item_type'] == 'show' for r in data['results']))

    def test_results_sorted(self):
        data = json.loads(self.client.get('/api/search?q=iron').data)
        self.assertEqual([r['title'] for r in data['results']], ['Iron Man', 'Iron Man 2'])

    def test_search_page(self):
        resp = self.client.get('/search?q=thor')
        self.assertIn(b'/title/4', resp.data)

    def test_header_typeahead_uses_configured_delay(self):
        self.rankings.config['search_debounce_ms'] = 350
        resp = self.client.get('/')
        self.assertIn(b'data-debounce-ms="350"', resp.data)
        self.assertIn(b'id="search-suggestions"', resp.data)
        self.assertIn(b"fetch('/api/search?q='", resp.data)


# ===========================================================================
# Session gate and theme
# ===========================================================================

class TestSessionRoutes(WebTestCase):

    def current(self):
        return json.loads(self.client.get('/api/auth/current').data)

    def test_wrong_password(self):
        resp = self.login('nope')
        self.assertIn(b'Incorrect admin password', resp.data)
        self.assertEqual(self.current()['state'], 'unauthenticated')
        self.assertEqual(len(self.store.select('users', 'id')), 1)

    def test_login_and_logout(self):
        self.login()
        self.assertEqual(self.current()['state'], 'admin')
        self.assertFalse(self.current()['read_only'])
        self.client.post('/logout')
        self.assertEqual(self.current()['state'], 'unauthenticated')

    def test_guest(self):
        self.client.post('/guest')
        state = self.current()
        self.assertEqual(state['state'], 'guest')
        self.assertTrue(state['read_only'])

    def test_theme_toggle(self):
        self.assertEqual(self.current()['theme'], 'light')
        self.client.post('/theme')
        self.assertEqual(self.current()['theme'], 'dark')
        resp = self.client.get('/')
        self.assertIn(b'data-theme="dark"', resp.data)

    def test_redirects_stay_on_this_host(self):
        resp = self.client.post('/guest', headers={'Referer': 'http://evil.example/x'})
        self.assertEqual(resp.status_code, 302)
        self.assertNotIn('evil.example', resp.headers['Location'])

        resp = self.client.post('/theme', headers={'Referer': '//evil.example/x'})
        self.assertNotIn('evil.example', resp.headers['Location'])

        resp = self.client.post('/theme', headers={'Referer': 'http://localhost/all?year=2008'})
        self.assertEqual(resp.headers['Location'], 'http://localhost/all?year=2008')


if __name__ == '__main__':
    unittest.main()
