"""
MCU Rankings application package.

Layered the same way throughout:

  app/repositories/ : backend I/O: table names, row normalisation, queries.
  app/services/     : business logic: score codec, catalog, detail page,
                       search, session gate and theme.

``RankingsApp`` (in ``mcu_rankings.py``) is the integration point: it builds
the persistence adapter from the config, creates repository and service
instances and exposes them as public attributes (e.g. ``rankings.catalog``).
Route handlers in ``mcu_rankings_web.py`` use these services directly.
"""
