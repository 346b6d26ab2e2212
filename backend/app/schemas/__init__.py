"""
Pydantic schemas package for request validation.
"""
from app.schemas.integration import (
    IntegrationCreate, IntegrationUpdate, SecretUpsert
)

__all__ = [
    "IntegrationCreate",
    "IntegrationUpdate",
    "SecretUpsert",
]
