"""
The `crypt` package provides cryptographic utilities that secure
authentication workflows and user data.

Passwords are bcrypt-hashed on every persistence path, primary and fallback
alike; no store ever receives a cleartext password.

Contents
--------
- encrypt_decrypt
    Utility module exposing the `EncryptionDec` class:
        * `hash_password` — securely hashes plaintext passwords using bcrypt
        * `check_passwords` — verifies a plaintext password against a hashed one
        * `is_valid_password` — validates password complexity rules for new accounts
        * `generate_verification_token` — produces URL-safe email verification tokens
"""
