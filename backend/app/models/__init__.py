# app/models/__init__.py
"""
Database models module initialization.
Exports all Tortoise ORM models for convenient imports.

Models exported:
- User: User account and authentication model
- Conversation: Conversation thread owned by a user
- Message: One user or assistant turn inside a conversation
"""
from .base import SoftDeleteModel, utc_now
from .user import User
from .conversation import Conversation
from .message import Message, Role
