"""
Authorization - authorizers, request context and bearer tokens.
"""

from gatedcrud.auth.authorizer import (
    Authorizer,
    DefaultAuthorizer,
    PermissionSetAuthorizer,
)
from gatedcrud.auth.capabilities import (
    candidate_permissions,
    has_permission,
    permission_for,
)
from gatedcrud.auth.context import Principal, RequestContext
from gatedcrud.auth.tokens import (
    TokenError,
    create_access_token,
    decode_token,
    principal_from_token,
)

__all__ = [
    # Authorizers
    "Authorizer",
    "DefaultAuthorizer",
    "PermissionSetAuthorizer",
    # Context
    "Principal",
    "RequestContext",
    # Permissions
    "candidate_permissions",
    "has_permission",
    "permission_for",
    # Tokens
    "TokenError",
    "create_access_token",
    "decode_token",
    "principal_from_token",
]
