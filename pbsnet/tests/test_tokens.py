import unittest
from datetime import datetime, timedelta, timezone

from pbsnet.errors import ExpiredToken, InvalidToken
from pbsnet.tokens import TokenService


class TokenServiceTests(unittest.TestCase):
    def setUp(self):
        self.tokens = TokenService("unit-test-secret")

    def test_issue_and_verify_roundtrip(self):
        token = self.tokens.issue("user-1", "a@x.com")
        claims = self.tokens.verify(token)
        self.assertEqual(claims.user_id, "user-1")
        self.assertEqual(claims.email, "a@x.com")

    def test_tampered_signature_is_invalid(self):
        header, payload, signature = self.tokens.issue("user-1", "a@x.com").split(".")
        first = "A" if signature[0] != "A" else "B"
        tampered = ".".join([header, payload, first + signature[1:]])
        with self.assertRaises(InvalidToken) as ctx:
            self.tokens.verify(tampered)
        self.assertNotIsInstance(ctx.exception, ExpiredToken)

    def test_token_from_other_secret_is_invalid(self):
        token = TokenService("someone-else").issue("user-1", "a@x.com")
        with self.assertRaises(InvalidToken):
            self.tokens.verify(token)

    def test_expired_token(self):
        issued = datetime.now(timezone.utc) - timedelta(days=7, minutes=1)
        token = self.tokens.issue("user-1", "a@x.com", now=issued)
        with self.assertRaises(ExpiredToken):
            self.tokens.verify(token)

    def test_token_still_valid_before_seven_days(self):
        issued = datetime.now(timezone.utc) - timedelta(days=6, hours=23)
        token = self.tokens.issue("user-1", "a@x.com", now=issued)
        self.assertEqual(self.tokens.verify(token).user_id, "user-1")

    def test_garbage_is_invalid(self):
        with self.assertRaises(InvalidToken):
            self.tokens.verify("not-a-token")

    def test_missing_secret_is_rejected(self):
        with self.assertRaises(ValueError):
            TokenService(None)
        with self.assertRaises(ValueError):
            TokenService("")


if __name__ == "__main__":
    unittest.main()
