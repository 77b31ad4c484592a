from ticketbot.utils.security import constant_time_equals, sign_body, verify_signature


def test_signature_round_trip_with_and_without_prefix() -> None:
    body = b'{"message_id": "m1"}'
    signature = sign_body("secret", body)
    assert signature.startswith("sha256=")
    assert verify_signature("secret", body, signature)
    assert verify_signature("secret", body, signature.removeprefix("sha256="))


def test_signature_rejects_tampering() -> None:
    body = b'{"message_id": "m1"}'
    signature = sign_body("secret", body)
    assert not verify_signature("secret", body + b" ", signature)
    assert not verify_signature("other", body, signature)
    assert not verify_signature("secret", body, None)


def test_constant_time_equals_requires_both_values() -> None:
    assert constant_time_equals("abc", "abc")
    assert not constant_time_equals("abc", "abd")
    assert not constant_time_equals(None, "abc")
    assert not constant_time_equals("", "")
