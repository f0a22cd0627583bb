"""JWT service package."""

from .jwks import GoogleSigningKeyProvider, SigningKeySnapshot
from .jwt_utils import preview_jwt
from .token_signer import TokenSigner
