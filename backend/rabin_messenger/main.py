import os
from contextlib import asynccontextmanager
from typing import Optional

import anyio
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncEngine

from rabin_messenger.crypto.codec import encode, try_decode
from rabin_messenger.crypto.primes import PrimeSearchExhausted
from rabin_messenger.crypto.rabin import (
    InvalidKeyMaterial,
    PrivateKey,
    PublicKey,
    decrypt,
    derive_keys,
    encrypt,
    generate_keypair,
)
from rabin_messenger.db import (
    append_log,
    check_db_connection,
    fetch_logs,
    fetch_messages,
    get_engine,
    get_message_stats,
    init_db,
    record_exchange,
)
from rabin_messenger.messenger import (
    DEFAULT_EXAMPLE_MESSAGE,
    KeyRing,
    KeysNotConfigured,
    MessageTooLong,
    describe_keys,
    run_auto_example,
    send_message,
)


# ── Configuration ──────────────────────────────────
def get_default_bits() -> int:
    return int(os.getenv("RABIN_DEFAULT_BITS", "512"))


def get_max_prime_attempts() -> Optional[int]:
    """Ceiling on each prime search; unset or 0 means unbounded."""
    raw = os.getenv("RABIN_MAX_PRIME_ATTEMPTS", "").strip()
    if not raw or int(raw) <= 0:
        return None
    return int(raw)


def get_cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = get_engine()
    await init_db(engine)
    yield
    # Do not dispose the cached engine here to avoid event-loop-closed errors in tests


app = FastAPI(
    title="Rabin Messenger API",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Security: CORS ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
    allow_credentials=False,
)


# ── Security: HTTP headers ───────────────────────────────────
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Cache-Control"] = "no-store"
    return response


_KEYRING = KeyRing()


def get_keyring() -> KeyRing:
    return _KEYRING


def require_keys(keyring: KeyRing = Depends(get_keyring)) -> tuple[PublicKey, PrivateKey]:
    try:
        return keyring.get()
    except KeysNotConfigured as exc:
        raise HTTPException(status_code=409, detail="keys have not been generated") from exc


def _keys_payload(pub: PublicKey, priv: PrivateKey) -> dict:
    return {
        "n": str(pub.n),
        "p": str(priv.p),
        "q": str(priv.q),
        "bits": pub.n.bit_length(),
    }


# Integers arrive as decimal strings or JSON numbers; both are accepted.
BigInt = int | str


def _to_int(value: BigInt, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"{name} must be an integer") from exc


class GenerateKeysRequest(BaseModel):
    bits: int = Field(default_factory=get_default_bits, ge=32, le=1024, validate_default=True)


class DeriveKeysRequest(BaseModel):
    p: BigInt
    q: BigInt


class EncryptRequest(BaseModel):
    plaintext: BigInt
    n: Optional[BigInt] = None


class DecryptRequest(BaseModel):
    ciphertext: BigInt
    p: Optional[BigInt] = None
    q: Optional[BigInt] = None


class EncodeRequest(BaseModel):
    text: str = Field(max_length=4096)


class DecodeRequest(BaseModel):
    value: BigInt


class MessageRequest(BaseModel):
    content: str = Field(min_length=1, max_length=4096)


class ExampleRequest(BaseModel):
    bits: int = Field(default=512, ge=32, le=1024)
    message: str = Field(default=DEFAULT_EXAMPLE_MESSAGE, min_length=1, max_length=256)


async def verify_database(engine: AsyncEngine = Depends(get_engine)) -> dict:
    try:
        await check_db_connection(engine)
        return {"db": "ok"}
    except Exception as exc:  # pragma: no cover - handled in tests via status code
        raise HTTPException(status_code=503, detail="database unavailable") from exc


@app.get("/health")
async def health(database=Depends(verify_database)) -> dict:
    """Simple liveness/readiness probe that also checks database connectivity."""
    return {"status": "ok", "database": database["db"]}


# ── Key endpoints ────────────────────────────────────

@app.post("/keys/generate", status_code=status.HTTP_201_CREATED)
async def generate_keys(
    payload: GenerateKeysRequest,
    keyring: KeyRing = Depends(get_keyring),
    engine: AsyncEngine = Depends(get_engine),
):
    """Generate a fresh key pair in a worker thread and make it the session key."""
    try:
        pub, priv = await anyio.to_thread.run_sync(generate_keypair, payload.bits, get_max_prime_attempts())
    except PrimeSearchExhausted as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    keyring.set(pub, priv)
    await append_log(engine, [describe_keys(pub, priv)], event_type="keys")
    return _keys_payload(pub, priv)


@app.post("/keys/derive", status_code=status.HTTP_201_CREATED)
async def derive_session_keys(
    payload: DeriveKeysRequest,
    keyring: KeyRing = Depends(get_keyring),
    engine: AsyncEngine = Depends(get_engine),
):
    """Build keys from caller-supplied primes p and q (both must be prime and 3 mod 4)."""
    p = _to_int(payload.p, "p")
    q = _to_int(payload.q, "q")
    try:
        pub, priv = derive_keys(p, q)
    except InvalidKeyMaterial as e:
        raise HTTPException(status_code=400, detail=str(e))
    keyring.set(pub, priv)
    await append_log(engine, [describe_keys(pub, priv)], event_type="keys")
    return _keys_payload(pub, priv)


@app.get("/keys")
async def get_public_key(keyring: KeyRing = Depends(get_keyring)):
    """Return the session public key."""
    if not keyring.is_ready:
        raise HTTPException(status_code=404, detail="no keys configured")
    pub, _ = keyring.get()
    return {"n": str(pub.n), "bits": pub.n.bit_length()}


@app.delete("/keys")
async def clear_keys(keyring: KeyRing = Depends(get_keyring)):
    keyring.clear()
    return {"status": "cleared"}


# ── Crypto endpoints ─────────────────────────────────

@app.post("/crypto/encrypt")
async def encrypt_value(payload: EncryptRequest, keyring: KeyRing = Depends(get_keyring)):
    """Square the plaintext modulo n (explicit n, or the session public key)."""
    plaintext = _to_int(payload.plaintext, "plaintext")
    if payload.n is not None:
        n = _to_int(payload.n, "n")
    else:
        pub, _ = require_keys(keyring)
        n = pub.n
    if n <= 1:
        raise HTTPException(status_code=400, detail="n must be greater than 1")
    if not 0 <= plaintext < n:
        raise HTTPException(status_code=400, detail="plaintext out of range")
    return {"n": str(n), "plaintext": str(plaintext), "ciphertext": str(encrypt(plaintext, n))}


@app.post("/crypto/decrypt")
async def decrypt_value(payload: DecryptRequest, keyring: KeyRing = Depends(get_keyring)):
    """Return the four Rabin candidates and how each one decodes as text."""
    ciphertext = _to_int(payload.ciphertext, "ciphertext")
    if payload.p is not None and payload.q is not None:
        try:
            _, priv = derive_keys(_to_int(payload.p, "p"), _to_int(payload.q, "q"))
        except InvalidKeyMaterial as e:
            raise HTTPException(status_code=400, detail=str(e))
    elif payload.p is None and payload.q is None:
        _, priv = require_keys(keyring)
    else:
        raise HTTPException(status_code=400, detail="p and q must be given together")

    candidates = decrypt(ciphertext, priv.p, priv.q)
    return {
        "ciphertext": str(ciphertext),
        "candidates": [_candidate_payload(c) for c in candidates],
    }


def _candidate_payload(value: int) -> dict:
    result = try_decode(value)
    return {
        "value": str(value),
        "ok": result.ok,
        "text": result.text,
        "error": str(result.error) if result.error else None,
    }


# ── Codec endpoints ──────────────────────────────────

@app.post("/codec/encode")
async def encode_text(payload: EncodeRequest):
    value = encode(payload.text)
    return {"text": payload.text, "value": str(value), "hex": format(value, "x")}


@app.post("/codec/decode")
async def decode_value(payload: DecodeRequest):
    value = _to_int(payload.value, "value")
    return _candidate_payload(value)


# ── Messenger endpoints ──────────────────────────────

@app.post("/messages", status_code=status.HTTP_201_CREATED)
async def post_message(
    payload: MessageRequest,
    keys: tuple[PublicKey, PrivateKey] = Depends(require_keys),
    engine: AsyncEngine = Depends(get_engine),
):
    """Encrypt, decrypt and recover a message; the exchange and its log are stored."""
    pub, priv = keys
    try:
        exchange = send_message(pub, priv, payload.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    meta = await record_exchange(engine, exchange, modulus=pub.n)
    return {
        "status": "stored",
        "message_id": meta["message_id"],
        "original": exchange.original,
        "encoded": str(exchange.encoded),
        "ciphertext": str(exchange.ciphertext),
        "candidates": [_candidate_payload(c) for c in exchange.candidates],
        "decrypted_message": exchange.decrypted_message,
        "found": exchange.found,
    }


@app.get("/messages")
async def list_messages(
    limit: int = Query(default=100, ge=1, le=500),
    engine: AsyncEngine = Depends(get_engine),
):
    messages = await fetch_messages(engine, limit=limit)
    for m in messages:
        if m.get("created_at"):
            m["created_at"] = str(m["created_at"])
    return messages


@app.get("/messages/stats")
async def message_stats(engine: AsyncEngine = Depends(get_engine)):
    return await get_message_stats(engine)


@app.get("/logs")
async def process_logs(
    limit: int = Query(default=200, ge=1, le=1000),
    engine: AsyncEngine = Depends(get_engine),
):
    """Return the process log, rendered as "[HH:MM:SS] message" lines."""
    rows = await fetch_logs(engine, limit=limit)
    return [
        {
            "id": r["id"],
            "event_type": r["event_type"],
            "line": f"[{r['created_at'].strftime('%H:%M:%S')}] {r['message']}" if r["created_at"] else r["message"],
        }
        for r in rows
    ]


@app.post("/example/run")
async def run_example(payload: ExampleRequest, engine: AsyncEngine = Depends(get_engine)):
    """Automatic example: fresh keys, one message, all four candidates reported."""
    try:
        received, log = await anyio.to_thread.run_sync(
            run_auto_example, payload.bits, payload.message, None, get_max_prime_attempts()
        )
    except MessageTooLong as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PrimeSearchExhausted as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    await append_log(engine, log, event_type="example")
    return {"message": payload.message, "received": received, "log": log}


@app.get("/demo", response_class=HTMLResponse)
async def demo_page() -> HTMLResponse:
        """Lightweight HTML page to exercise the messenger from a browser."""
        html = """
        <!DOCTYPE html>
        <html lang="en">
        <head>
            <meta charset="UTF-8" />
            <meta name="viewport" content="width=device-width, initial-scale=1.0" />
            <title>Rabin Messenger Demo</title>
            <style>
                :root { --bg: #0f172a; --panel: #111827; --text: #e5e7eb; --muted: #94a3b8; }
                * { box-sizing: border-box; }
                body { margin: 0; padding: 32px; font-family: "Segoe UI", system-ui, sans-serif; background: var(--bg); color: var(--text); }
                h1 { margin: 0 0 24px; font-size: 26px; }
                .grid { display: grid; gap: 16px; grid-template-columns: repeat(auto-fit, minmax(280px, 1fr)); }
                .card { background: var(--panel); border: 1px solid #1f2937; border-radius: 12px; padding: 16px; }
                .card h2 { margin: 0 0 8px; font-size: 18px; }
                .card p { margin: 0 0 12px; color: var(--muted); font-size: 14px; }
                label { display: block; margin: 8px 0 4px; font-size: 13px; color: var(--muted); }
                input, textarea, button { width: 100%; padding: 10px; border-radius: 8px; border: 1px solid #1f2937; background: #0b1324; color: var(--text); font-size: 14px; }
                button { cursor: pointer; border: none; background: linear-gradient(120deg, #22c55e, #16a34a); color: #0b1324; font-weight: 700; margin-top: 8px; }
                pre { background: #0b1324; border: 1px solid #1f2937; border-radius: 8px; padding: 10px; font-size: 13px; overflow-x: auto; white-space: pre-wrap; word-break: break-all; }
            </style>
        </head>
        <body>
            <h1>Rabin Messenger</h1>
            <div class="grid">
                <div class="card">
                    <h2>Generate keys</h2>
                    <p>Two random Blum primes of bits/2 each.</p>
                    <label>bit length</label>
                    <input id="bits" value="512" type="number" min="32" max="1024" />
                    <button onclick="callEndpoint('POST', '/keys/generate', { bits: Number(document.getElementById('bits').value) })">Generate</button>
                </div>
                <div class="card">
                    <h2>Enter primes</h2>
                    <p>Both must be prime and congruent to 3 mod 4.</p>
                    <label>p</label>
                    <input id="p" value="7" />
                    <label>q</label>
                    <input id="q" value="11" />
                    <button onclick="callEndpoint('POST', '/keys/derive', { p: document.getElementById('p').value, q: document.getElementById('q').value })">Use keys</button>
                </div>
                <div class="card">
                    <h2>Send message</h2>
                    <p>Encrypt, decrypt and pick the matching candidate.</p>
                    <label>message</label>
                    <textarea id="content" spellcheck="false">Hi</textarea>
                    <button onclick="callEndpoint('POST', '/messages', { content: document.getElementById('content').value })">Send</button>
                    <button onclick="callEndpoint('GET', '/messages')">History</button>
                </div>
                <div class="card">
                    <h2>Process log</h2>
                    <p>Every step of every exchange.</p>
                    <button onclick="loadLogs()">Load</button>
                </div>
                <div class="card">
                    <h2>Automatic example</h2>
                    <p>512-bit keys, one message, four candidates.</p>
                    <button onclick="callEndpoint('POST', '/example/run', {})">Run</button>
                </div>
            </div>
            <div class="card" style="margin-top:16px;">
                <h2>Response</h2>
                <pre id="output">Ready.</pre>
            </div>

            <script>
                const base = window.location.origin;
                const output = document.getElementById('output');

                async function callEndpoint(method, path, body) {
                    try {
                        const res = await fetch(base + path, {
                            method,
                            headers: body ? { 'Content-Type': 'application/json' } : undefined,
                            body: body ? JSON.stringify(body) : undefined,
                        });
                        const text = await res.text();
                        let parsed;
                        try { parsed = JSON.parse(text); } catch (_) { parsed = text; }
                        output.textContent = JSON.stringify(parsed, null, 2);
                    } catch (err) {
                        output.textContent = 'Error: ' + err;
                    }
                }

                async function loadLogs() {
                    const res = await fetch(base + '/logs');
                    const rows = await res.json();
                    output.textContent = rows.map(r => r.line).join('\\n');
                }
            </script>
        </body>
        </html>
        """
        return HTMLResponse(content=html)
