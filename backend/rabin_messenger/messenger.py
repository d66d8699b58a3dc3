"""
Messenger pipeline: text -> integer -> ciphertext -> four candidates -> text.

Every step is reported as a process-log line so the caller can persist or
display the exchange. Nothing in here touches the database.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from rabin_messenger.crypto.codec import DecodeResult, decode_all, encode, try_decode
from rabin_messenger.crypto.rabin import PrivateKey, PublicKey, decrypt_with_key, encrypt, generate_keypair

DEFAULT_EXAMPLE_MESSAGE = "Привет"


class MessageTooLong(ValueError):
    """The encoded message does not fit below the public modulus."""


class KeysNotConfigured(LookupError):
    pass


class KeyRing:
    """Session key pair. Lives in memory only."""

    def __init__(self) -> None:
        self._pub: Optional[PublicKey] = None
        self._priv: Optional[PrivateKey] = None

    @property
    def is_ready(self) -> bool:
        return self._pub is not None and self._priv is not None

    def set(self, pub: PublicKey, priv: PrivateKey) -> None:
        self._pub, self._priv = pub, priv

    def get(self) -> Tuple[PublicKey, PrivateKey]:
        if not self.is_ready:
            raise KeysNotConfigured("keys have not been generated")
        return self._pub, self._priv

    def clear(self) -> None:
        self._pub = self._priv = None


@dataclass
class Exchange:
    original: str
    encoded: int
    ciphertext: int
    candidates: List[int]
    results: List[DecodeResult]
    decrypted_message: Optional[str]
    log: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.decrypted_message is not None


def describe_keys(pub: PublicKey, priv: PrivateKey) -> str:
    return f"Keys generated. Public key (n): {pub.n}. Private key (p, q): {priv.p}, {priv.q}"


def send_message(pub: PublicKey, priv: PrivateKey, content: str) -> Exchange:
    if not content.strip():
        raise ValueError("message must not be empty")

    log = [f'Message sent: "{content}"']

    encoded = encode(content)
    if encoded >= pub.n:
        raise MessageTooLong(
            f"encoded message needs {encoded.bit_length()} bits, modulus has {pub.n.bit_length()}"
        )
    log.append(f"Message converted to integer: {encoded}")

    ciphertext = encrypt(encoded, pub)
    log.append(f"Message encrypted: {ciphertext}")

    candidates = decrypt_with_key(priv, ciphertext)
    log.append("Message decrypted, possible values: " + ", ".join(str(c) for c in candidates))

    results: List[DecodeResult] = []
    decrypted_message = None
    for value in candidates:
        result = try_decode(value)
        results.append(result)
        if not result.ok:
            log.append(f"× Value {value} is not a valid UTF-8 string")
            continue
        log.append(f'Checking decrypted value {value} -> "{result.text}"')
        if result.text == content:
            decrypted_message = result.text
            log.append(f'✓ Original message found: "{result.text}"')
            break

    if decrypted_message is None:
        log.append("❌ Original message not found among the decryption candidates")

    return Exchange(
        original=content,
        encoded=encoded,
        ciphertext=ciphertext,
        candidates=candidates,
        results=results,
        decrypted_message=decrypted_message,
        log=log,
    )


def run_auto_example(
    bits: int = 512,
    message: str = DEFAULT_EXAMPLE_MESSAGE,
    keypair: Optional[Tuple[PublicKey, PrivateKey]] = None,
    max_attempts: Optional[int] = None,
) -> Tuple[Optional[str], List[str]]:
    """Generate keys, encrypt ``message`` and walk through all four candidates.

    Returns the recovered message (or None) and the log lines of the run.
    """
    log = ["Generating key pair..."]
    pub, priv = keypair if keypair is not None else generate_keypair(bits, max_attempts)
    log.append(f"Public key (n): {pub.n}")
    log.append(f"Private key (p): {priv.p}")
    log.append(f"Private key (q): {priv.q}")

    log.append(f'Sender message: "{message}"')
    encoded = encode(message)
    if encoded >= pub.n:
        raise MessageTooLong(f'"{message}" does not fit in a {pub.n.bit_length()}-bit modulus')

    ciphertext = encrypt(encoded, pub)
    log.append(f"Encrypted message: {ciphertext}")

    log.append("Decrypting...")
    received = None
    for i, result in enumerate(decode_all(decrypt_with_key(priv, ciphertext)), start=1):
        if not result.ok:
            log.append(f"Variant {i}: {result.value} -> [invalid UTF-8]")
            continue
        log.append(f'Variant {i}: {result.value} -> "{result.text}"')
        if result.text == message:
            received = result.text
            log.append(f"✓ Variant {i} matches the original message!")

    log.append(f'Message received by recipient: "{received}"')
    return received, log
