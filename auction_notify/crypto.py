import hashlib
import hmac
import secrets

MAX_API_KEY_SIZE = 255


def generate_api_key() -> str:
    return secrets.token_urlsafe(20)


def hash_api_key(key: str) -> bytes:
    return hashlib.sha256(key.encode("ascii")).digest()


def verify_api_key(presented: str, expected_hash: bytes) -> bool:
    # Oversized or non-ascii keys are rejected before hashing.
    if not isinstance(presented, str) or len(presented) > MAX_API_KEY_SIZE:
        return False
    try:
        digest = hash_api_key(presented)
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(digest, expected_hash)
