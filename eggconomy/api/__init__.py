"""
API Package — FastAPI Router • Models • JWT Utils
=================================================

Contents
--------
- fast_api
    FastAPI router with endpoints for:
      • Auth: login (implicit registration), logout, me, email verification
      • Listings: browse/search, create
      • Conversations and messages
      • Admin dashboard
- models
    Pydantic v2 models. Records use the camelCase application shape through
    `to_camel` aliases; request models carry the input validation rules.
- utils
    JWT helpers (`create_access_token`, `session_token`, `verify_token`).
"""
