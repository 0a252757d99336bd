"""
Eggconomy backend: a neighbourhood egg marketplace served over FastAPI.

Contents:
    - api: HTTP router, request/response models and JWT utilities
    - crypt: password hashing and verification tokens
    - database: record stores, degradation policy and service operations
    - errors: service-level exceptions carrying their HTTP status
"""
