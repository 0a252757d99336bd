"""
Core functions that connect application routers with the record stores.

Contents
--------
- policy
    `DegradationPolicy`: picks the primary or the fallback store per request.
- funcs
    Service operations (auth, listings, conversations, messages, admin).
"""
