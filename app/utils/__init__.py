"""
utils package
-------------

Pure helpers shared by the cache and the lookup service: cache keys
and expiry (:mod:`app.utils.cache`) and identifier heuristics
(:mod:`app.utils.identifiers`).
"""
