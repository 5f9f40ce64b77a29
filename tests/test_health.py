import pytest
from httpx import ASGITransport, AsyncClient

from relay.core.config import Settings
from relay.main import create_app
from relay.schemas.signaling import Role
from relay.services.connections import SignalingConnection


async def _noop(message: dict) -> None:
    return None


@pytest.mark.asyncio
async def test_health_endpoint() -> None:
    transport = ASGITransport(app=create_app())

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/api/health")
        head = await client.head("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert head.status_code == 200


@pytest.mark.asyncio
async def test_index_serves_viewer_with_ice_servers() -> None:
    app = create_app(Settings(ice_servers=["stun:stun.example.org:3478"]))
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "stun:stun.example.org:3478" in response.text
    assert "/signaling" in response.text


@pytest.mark.asyncio
async def test_status_reflects_registry_counts() -> None:
    app = create_app()
    service = app.state.signaling
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        empty = await client.get("/status")

        for connection_id, role in (("p", Role.PRODUCER), ("c1", Role.CONSUMER), ("c2", Role.CONSUMER)):
            await service.connect(SignalingConnection(connection_id, _noop))
            await service.register(connection_id, role)
        await service.connect(SignalingConnection("pending", _noop))
        populated = await client.get("/status")

        await service.disconnect("p")
        after = await client.get("/status")

    assert empty.json() == {"status": "online", "touchdesigner": False, "browsers": 0, "totalClients": 0}
    assert populated.json() == {"status": "online", "touchdesigner": True, "browsers": 2, "totalClients": 3}
    assert after.json() == {"status": "online", "touchdesigner": False, "browsers": 2, "totalClients": 2}
