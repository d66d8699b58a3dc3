import pytest
from sqlalchemy import select

from rabin_messenger.db import messages_table


@pytest.mark.anyio
async def test_send_message_requires_keys(client):
    resp = await client.post("/messages", json={"content": "Hi"})
    assert resp.status_code == 409


@pytest.mark.anyio
async def test_send_message_stores_exchange_and_log(client, engine):
    await client.post("/keys/derive", json={"p": 211, "q": 223})

    resp = await client.post("/messages", json={"content": "Hi"})
    assert resp.status_code == 201, "POST /messages should return 201"
    body = resp.json()
    assert body["status"] == "stored"
    assert body["found"] is True
    assert body["decrypted_message"] == "Hi"
    assert body["encoded"] == "18537"
    assert len(body["candidates"]) == 4

    async with engine.connect() as conn:
        row = (await conn.execute(select(messages_table))).mappings().first()
    assert row["original"] == "Hi"
    assert row["modulus"] == str(211 * 223)
    assert row["ciphertext"] == body["ciphertext"]

    history = (await client.get("/messages")).json()
    assert len(history) == 1
    assert history[0]["decrypted_message"] == "Hi"

    lines = [entry["line"] for entry in (await client.get("/logs")).json()]
    assert any(line.endswith('Message sent: "Hi"') for line in lines)
    assert any("Original message found" in line for line in lines)
    assert all(line.startswith("[") for line in lines)


@pytest.mark.anyio
async def test_message_longer_than_modulus_is_rejected(client):
    await client.post("/keys/derive", json={"p": 7, "q": 11})
    resp = await client.post("/messages", json={"content": "Hi"})
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_empty_message_is_rejected(client):
    await client.post("/keys/derive", json={"p": 211, "q": 223})
    assert (await client.post("/messages", json={"content": ""})).status_code == 422
    assert (await client.post("/messages", json={"content": "   "})).status_code == 400


@pytest.mark.anyio
async def test_message_stats(client):
    await client.post("/keys/generate", json={"bits": 128})
    for text in ["one", "two"]:
        assert (await client.post("/messages", json={"content": text})).status_code == 201

    stats = (await client.get("/messages/stats")).json()
    assert stats["total_messages"] == 2
    assert stats["recovered_messages"] == 2
    assert stats["total_log_entries"] > 2


@pytest.mark.anyio
async def test_auto_example_endpoint(client):
    resp = await client.post("/example/run", json={"bits": 128})
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Привет"
    assert body["received"] == "Привет"

    logs = (await client.get("/logs")).json()
    assert any(entry["event_type"] == "example" for entry in logs)
