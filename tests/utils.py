import time

from authlib.jose import JsonWebToken

GOOGLE_ISSUER = "https://accounts.google.com"

_rs256 = JsonWebToken(["RS256"])
_hs256 = JsonWebToken(["HS256"])


def make_google_id_token(key, client_id: str, **overrides) -> str:
    """Sign a Google-shaped ID token. Passing ``claim=None`` drops that claim."""
    now = int(time.time())
    claims = {
        "iss": GOOGLE_ISSUER,
        "aud": client_id,
        "sub": "104857600000000000001",
        "email": "bob@gmail.com",
        "email_verified": True,
        "name": "Bob Builder",
        "picture": "https://lh3.googleusercontent.com/a/bob",
        "iat": now,
        "exp": now + 3600,
    }
    for name, value in overrides.items():
        if value is None:
            claims.pop(name, None)
        else:
            claims[name] = value

    token = _rs256.encode({"alg": "RS256", "kid": key.kid}, claims, key)
    return token.decode("ascii")


def make_hs256_token(secret: str, claims: dict) -> str:
    return _hs256.encode({"alg": "HS256"}, claims, secret).decode("ascii")
