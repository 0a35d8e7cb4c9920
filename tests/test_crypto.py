from auction_notify.crypto import generate_api_key, hash_api_key, verify_api_key


def test_api_key_verification():
    key = generate_api_key()
    expected = hash_api_key(key)
    assert verify_api_key(key, expected)
    assert not verify_api_key(key + "x", expected)
    assert not verify_api_key("ключ", expected)
    assert not verify_api_key("a" * 256, hash_api_key("a" * 256))
