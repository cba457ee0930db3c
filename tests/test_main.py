import pytest
from fastapi import APIRouter

from campusboard import __version__
from campusboard import main as main_mod
from campusboard.exceptions import AppError, ConflictError, NotFoundError


@pytest.mark.asyncio
async def test_root_and_health(client) -> None:
    res = await client.get("/")
    assert res.status_code == 200
    assert res.json()["version"] == __version__

    res = await client.get("/health")
    assert res.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_app_errors_map_to_status_and_detail(client, monkeypatch) -> None:
    router = APIRouter()

    @router.get("/_test/conflict")
    async def _conflict():
        raise ConflictError("taken")

    @router.get("/_test/missing")
    async def _missing():
        raise NotFoundError("Thing not found")

    @router.get("/_test/boom")
    async def _boom():
        raise AppError("broken")

    monkeypatch.setattr(main_mod.app.router, "routes", list(main_mod.app.router.routes))
    main_mod.app.include_router(router)

    res = await client.get("/_test/conflict")
    assert (res.status_code, res.json()) == (409, {"detail": "taken"})

    res = await client.get("/_test/missing")
    assert (res.status_code, res.json()) == (404, {"detail": "Thing not found"})

    res = await client.get("/_test/boom")
    assert (res.status_code, res.json()) == (500, {"detail": "broken"})


@pytest.mark.asyncio
async def test_api_routes_are_mounted_under_api_prefix(client, monkeypatch) -> None:
    monkeypatch.setattr(main_mod.app, "openapi_schema", None)
    paths = main_mod.app.openapi()["paths"]
    assert "/api/notifications/unread-count" in paths
    assert "put" in paths["/api/admin/reports/{report_id}/status"]
    assert "get" in paths["/api/forum/forums/{forum_id}/comments"]
    assert "/api/forum/categories" in paths
    assert "/ws/status" in paths
