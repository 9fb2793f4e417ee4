"""Authentication capability injected into the pipeline."""

from .auth import Authenticator, JWTAuthenticator, require_auth

__all__ = ["Authenticator", "JWTAuthenticator", "require_auth"]
