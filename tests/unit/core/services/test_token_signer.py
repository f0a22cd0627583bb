import time

import pytest
from authlib.jose import JsonWebToken

from servicehub.core.errors import AuthenticationError, ConfigurationError
from servicehub.core.services import TokenSigner
from servicehub.core.services.jwt import preview_jwt
from servicehub.entities.user import User
from servicehub.runtime.config.config_data import JWTConfig
from tests.utils import make_hs256_token


@pytest.fixture
def alice() -> User:
    return User(username="alice", email="alice@example.com")


def _decode(token: str, secret: str) -> dict:
    return dict(JsonWebToken(["HS256"]).decode(token, secret))


class TestTokenSigner:
    """Access token minting and verification."""

    def test_rejects_incomplete_configuration(self):
        with pytest.raises(ConfigurationError, match="secret_key, audience"):
            TokenSigner(JWTConfig(secret_key=None, issuer="iss", audience=None))

    def test_access_token_carries_identity_claims(
        self, token_signer: TokenSigner, alice: User, jwt_secret, issuer, audience
    ):
        before = int(time.time())
        token = token_signer.generate_access_token(alice, ["Customer"])
        claims = _decode(token, jwt_secret)

        assert claims["sub"] == alice.id
        assert claims["email"] == "alice@example.com"
        assert claims["name"] == "alice"
        assert claims["role"] == ["Customer"]
        assert claims["iss"] == issuer
        assert claims["aud"] == audience
        assert claims["jti"]
        assert claims["exp"] - claims["iat"] == 60 * 60
        assert claims["iat"] >= before
        assert "display_name" not in claims
        assert "picture" not in claims

    def test_header_declares_hs256(self, token_signer: TokenSigner, alice: User):
        token = token_signer.generate_access_token(alice, [])

        assert preview_jwt(token).header == {"alg": "HS256", "typ": "JWT"}

    def test_optional_profile_claims_only_when_present(
        self, token_signer: TokenSigner, alice: User, jwt_secret
    ):
        token = token_signer.generate_access_token(
            alice,
            ["Customer"],
            display_name="Alice A.",
            picture_url="https://example.com/alice.png",
        )
        claims = _decode(token, jwt_secret)
        assert claims["display_name"] == "Alice A."
        assert claims["picture"] == "https://example.com/alice.png"

        token = token_signer.generate_access_token(
            alice, ["Customer"], display_name="", picture_url=None
        )
        claims = _decode(token, jwt_secret)
        assert "display_name" not in claims
        assert "picture" not in claims

    def test_each_token_gets_a_unique_jti(
        self, token_signer: TokenSigner, alice: User, jwt_secret
    ):
        first = _decode(token_signer.generate_access_token(alice, []), jwt_secret)
        second = _decode(token_signer.generate_access_token(alice, []), jwt_secret)
        assert first["jti"] != second["jti"]

    def test_verify_round_trip(self, token_signer: TokenSigner, alice: User):
        token = token_signer.generate_access_token(
            alice, ["Admin", "Customer"], display_name="Alice"
        )

        claims = token_signer.verify_access_token(token)

        assert claims.subject == alice.id
        assert claims.username == "alice"
        assert claims.roles == ["Admin", "Customer"]
        assert claims.display_name == "Alice"
        assert claims.picture is None

    def test_verify_rejects_foreign_signature(self, alice: User, issuer, audience):
        signer = TokenSigner(JWTConfig(secret_key="a" * 40, issuer=issuer, audience=audience))
        other = TokenSigner(JWTConfig(secret_key="b" * 40, issuer=issuer, audience=audience))

        token = other.generate_access_token(alice, [])

        with pytest.raises(AuthenticationError):
            signer.verify_access_token(token)

    def test_verify_rejects_wrong_audience(self, alice: User, jwt_secret, issuer):
        signer = TokenSigner(
            JWTConfig(secret_key=jwt_secret, issuer=issuer, audience="expected")
        )
        other = TokenSigner(
            JWTConfig(secret_key=jwt_secret, issuer=issuer, audience="someone-else")
        )

        with pytest.raises(AuthenticationError):
            signer.verify_access_token(other.generate_access_token(alice, []))

    def test_verify_rejects_expired_token(self, alice: User, jwt_secret, issuer, audience):
        signer = TokenSigner(
            JWTConfig(
                secret_key=jwt_secret,
                issuer=issuer,
                audience=audience,
                expiration_minutes=-5,
                clock_skew=0,
            )
        )

        with pytest.raises(AuthenticationError):
            signer.verify_access_token(signer.generate_access_token(alice, []))

    def test_verify_requires_subject(self, token_signer: TokenSigner, jwt_secret, issuer, audience):
        now = int(time.time())
        token = make_hs256_token(
            jwt_secret, {"iss": issuer, "aud": audience, "exp": now + 60, "iat": now}
        )

        with pytest.raises(AuthenticationError):
            token_signer.verify_access_token(token)

    def test_single_role_string_is_normalized(
        self, token_signer: TokenSigner, jwt_secret, issuer, audience
    ):
        now = int(time.time())
        token = make_hs256_token(
            jwt_secret,
            {
                "iss": issuer,
                "aud": audience,
                "sub": "user-1",
                "exp": now + 60,
                "iat": now,
                "role": "Admin",
            },
        )

        assert token_signer.verify_access_token(token).roles == ["Admin"]

    def test_verify_rejects_empty_and_garbage(self, token_signer: TokenSigner):
        with pytest.raises(AuthenticationError):
            token_signer.verify_access_token("")
        with pytest.raises(AuthenticationError):
            token_signer.verify_access_token("not-a-jwt")

    def test_refresh_tokens_are_opaque_and_unique(self, token_signer: TokenSigner):
        first = token_signer.generate_refresh_token()
        second = token_signer.generate_refresh_token()

        assert first != second
        assert "." not in first
        assert len(first) == 86
