"""extrabase - async REST client for the Firebase Realtime Database.

Resolves service account tokens through google-auth and issues
GET/PUT/POST/PATCH/DELETE requests with httpx.

Example:
    from extrabase import Database

    async with Database.from_service_account("my-db", "key.json") as db:
        await db.put("users/joe", {"first_name": "Joe"})
        response = await db.get("users/joe")
"""

__version__ = "0.1.0"

from extrabase.credentials import (
    DEFAULT_SCOPES,
    ServiceAccountTokenSource,
    StaticTokenSource,
    Token,
    TokenSource,
    resolve,
)
from extrabase.database import DEFAULT_HOST, Database, create_database
from extrabase.exceptions import (
    AuthError,
    FirebaseError,
    InvalidCredentialsError,
    TokenExchangeError,
    TransportError,
)

__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_SCOPES",
    "AuthError",
    "Database",
    "FirebaseError",
    "InvalidCredentialsError",
    "ServiceAccountTokenSource",
    "StaticTokenSource",
    "Token",
    "TokenExchangeError",
    "TokenSource",
    "TransportError",
    "__version__",
    "create_database",
    "resolve",
]
