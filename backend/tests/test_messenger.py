import pytest

from rabin_messenger.crypto.codec import decode_all
from rabin_messenger.crypto.rabin import derive_keys, generate_keypair
from rabin_messenger.messenger import (
    KeyRing,
    KeysNotConfigured,
    MessageTooLong,
    run_auto_example,
    send_message,
)


def test_keyring_lifecycle():
    ring = KeyRing()
    assert not ring.is_ready
    with pytest.raises(KeysNotConfigured):
        ring.get()

    pub, priv = derive_keys(7, 11)
    ring.set(pub, priv)
    assert ring.is_ready
    assert ring.get() == (pub, priv)

    ring.clear()
    assert not ring.is_ready


def test_send_message_recovers_text_with_small_key():
    pub, priv = derive_keys(211, 223)
    exchange = send_message(pub, priv, "Hi")

    assert exchange.encoded == 18537
    assert exchange.ciphertext == 18537 ** 2 % pub.n
    assert len(exchange.candidates) == 4
    assert 18537 in exchange.candidates
    assert exchange.found
    assert exchange.decrypted_message == "Hi"
    assert exchange.log[0] == 'Message sent: "Hi"'
    assert exchange.log[-1] == '✓ Original message found: "Hi"'


def test_spurious_candidates_fail_to_decode_without_raising():
    pub, priv = generate_keypair(256)
    exchange = send_message(pub, priv, "Привет")

    assert exchange.decrypted_message == "Привет"
    results = decode_all(exchange.candidates)
    assert any(not r.ok for r in results)
    assert sum(1 for r in results if r.ok and r.text == "Привет") == 1


def test_failed_candidates_are_logged():
    pub, priv = generate_keypair(256)
    exchange = send_message(pub, priv, "Rabin")
    failures = [r for r in exchange.results if not r.ok]
    for r in failures:
        assert f"× Value {r.value} is not a valid UTF-8 string" in exchange.log


def test_message_too_long_for_modulus():
    pub, priv = derive_keys(7, 11)
    with pytest.raises(MessageTooLong):
        send_message(pub, priv, "Hi")


def test_blank_message_rejected():
    pub, priv = derive_keys(211, 223)
    with pytest.raises(ValueError):
        send_message(pub, priv, "   ")


def test_auto_example_recovers_default_message():
    received, log = run_auto_example(keypair=generate_keypair(128))
    assert received == "Привет"
    assert log[0] == "Generating key pair..."
    assert sum(1 for line in log if line.startswith("Variant ") and " -> " in line) == 4
    assert log[-1] == 'Message received by recipient: "Привет"'


def test_auto_example_rejects_message_larger_than_key():
    with pytest.raises(MessageTooLong):
        run_auto_example(message="far too long for this key", keypair=derive_keys(211, 223))
