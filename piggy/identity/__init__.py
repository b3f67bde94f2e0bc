"""Identity package: active-user lookup and account management."""

from piggy.identity.resolver import IdentityResolver
from piggy.identity.accounts import (
    AccountError,
    AccountService,
    DuplicateAccountError,
    InvalidCredentialsError,
)

__all__ = [
    "AccountError",
    "AccountService",
    "DuplicateAccountError",
    "IdentityResolver",
    "InvalidCredentialsError",
]
