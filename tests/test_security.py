from jose import jwt

from app.utils.security import create_access_token, decode_access_token, hash_password, verify_password
from app.utils.time_utils import ensure_aware, epoch_millis, utcnow


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("correct horse")
        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)
        assert not verify_password("battery staple", hashed)

    def test_malformed_hash(self):
        assert not verify_password("anything", "not-a-hash")


class TestTokens:
    def test_round_trip_keeps_claims(self):
        token = create_access_token("user-1", {"role": "admin"})
        claims = decode_access_token(token)
        assert claims["userId"] == "user-1"
        assert claims["role"] == "admin"

    def test_expired_token(self):
        assert decode_access_token(create_access_token("user-1", expires_minutes=-1)) is None

    def test_token_signed_with_other_key(self):
        forged = jwt.encode({"userId": "user-1"}, "some-other-key", algorithm="HS256")
        assert decode_access_token(forged) is None

    def test_token_without_user_id(self):
        token = create_access_token("")
        assert decode_access_token(token) is None


class TestTimeUtils:
    def test_naive_datetimes_are_utc(self):
        naive = utcnow().replace(tzinfo=None)
        assert ensure_aware(naive).utcoffset().total_seconds() == 0
        assert ensure_aware(None) is None

    def test_epoch_millis(self):
        now = utcnow()
        assert epoch_millis(now) == int(now.timestamp() * 1000)
