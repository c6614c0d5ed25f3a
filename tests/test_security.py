import time
import unittest

from jose import jwt

from study_portal.security import is_token_expired, read_claims, token_subject

from fakes import make_token


class TokenTest(unittest.TestCase):

    def test_fresh_token_is_not_expired(self):
        self.assertFalse(is_token_expired(make_token(expires_in=600)))

    def test_past_exp_is_expired(self):
        self.assertTrue(is_token_expired(make_token(expires_in=-5)))

    def test_exp_boundary_uses_now(self):
        token = jwt.encode({"exp": 1000}, "k", algorithm="HS256")

        self.assertFalse(is_token_expired(token, now=999))
        self.assertTrue(is_token_expired(token, now=1000))

    def test_token_without_exp_never_expires(self):
        token = jwt.encode({"sub": "admin"}, "k", algorithm="HS256")

        self.assertFalse(is_token_expired(token))

    def test_malformed_tokens_count_as_expired(self):
        for token in ("", "abc", "a.b", "a.b.c", "a.b.c.d"):
            self.assertTrue(is_token_expired(token), token)
            self.assertIsNone(read_claims(token))

    def test_non_numeric_exp_is_expired(self):
        token = jwt.encode({"exp": "soon"}, "k", algorithm="HS256")

        self.assertTrue(is_token_expired(token))

    def test_signature_is_not_checked(self):
        token = jwt.encode({"sub": "root", "exp": int(time.time()) + 60}, "someone-elses-key", algorithm="HS256")

        self.assertEqual(read_claims(token)["sub"], "root")
        self.assertEqual(token_subject(token), "root")

    def test_subject_of_garbage_is_none(self):
        self.assertIsNone(token_subject("garbage"))


if __name__ == "__main__":
    unittest.main()
