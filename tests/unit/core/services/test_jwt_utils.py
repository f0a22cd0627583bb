import base64
import json

import pytest

from servicehub.core.errors import IdTokenValidationError
from servicehub.core.services.jwt.jwt_utils import (
    MAX_JWT_CHARS,
    parse_bool_claim,
    preview_jwt,
)


def _segment(obj) -> str:
    raw = json.dumps(obj).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


class TestPreviewJwt:
    def test_reads_header_and_claims_without_verifying(self):
        token = ".".join(
            [
                _segment({"alg": "RS256", "kid": "k1"}),
                _segment({"iss": "https://accounts.google.com", "sub": "1"}),
                "signature",
            ]
        )

        preview = preview_jwt(token)

        assert preview.alg == "RS256"
        assert preview.kid == "k1"
        assert preview.iss == "https://accounts.google.com"
        assert preview.claims["sub"] == "1"

    @pytest.mark.parametrize(
        "token",
        [
            "",
            "only.two",
            "a..c",
            "has spaces.in.it",
            "padded=.b.c",
            "x" * (MAX_JWT_CHARS + 1),
        ],
    )
    def test_rejects_malformed_compact_form(self, token):
        with pytest.raises(IdTokenValidationError):
            preview_jwt(token)

    def test_rejects_non_object_header(self):
        token = ".".join([_segment(["RS256"]), _segment({}), "sig"])

        with pytest.raises(IdTokenValidationError, match="JSON object"):
            preview_jwt(token)

    def test_rejects_non_json_payload(self):
        payload = base64.urlsafe_b64encode(b"not json").rstrip(b"=").decode()
        token = ".".join([_segment({"alg": "RS256"}), payload, "sig"])

        with pytest.raises(IdTokenValidationError, match="Invalid JSON"):
            preview_jwt(token)

    def test_non_string_issuer_is_ignored(self):
        token = ".".join([_segment({"alg": "RS256"}), _segment({"iss": 42}), "sig"])
        assert preview_jwt(token).iss is None


class TestParseBoolClaim:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (True, True),
            (False, False),
            ("true", True),
            ("TRUE", True),
            (" True ", True),
            ("false", False),
            ("yes", False),
            ("1", False),
            (1, False),
            (None, False),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_bool_claim(value) is expected
