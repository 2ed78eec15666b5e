# app/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- db: Database configuration and connection management
- errors: Application error taxonomy mapped to HTTP responses
- security: Password hashing and JWT tokens
"""
