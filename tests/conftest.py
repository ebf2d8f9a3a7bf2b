import asyncio
from typing import Any, Callable

import httpx
import pytest_asyncio
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from rampload.http_client import AsyncHTTPClient

TARGET_URL = "http://target.test"

def build_target_app() -> FastAPI:
    """Small stand-in for the service under test."""
    app = FastAPI(title="Target")
    app.state.hits = 0

    @app.middleware("http")
    async def count_hits(request: Request, call_next):
        app.state.hits += 1
        return await call_next(request)

    @app.get("/", response_class=HTMLResponse)
    async def home():
        return "<html><body><h1>Home</h1></body></html>"

    @app.get("/dashboard", response_class=HTMLResponse)
    async def dashboard():
        return "<html><body>" + "<div>row</div>" * 50 + "</body></html>"

    @app.get("/login", response_class=HTMLResponse)
    async def login_page():
        return "<html><body><form></form></body></html>"

    @app.get("/api/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/api/auth/me")
    async def me():
        raise HTTPException(status_code=401, detail="Not authenticated")

    @app.post("/api/auth/login")
    async def login(payload: dict):
        if payload.get("pin") != "0000":
            raise HTTPException(status_code=400, detail="Invalid pin")
        return {"tokens": {"accessToken": "demo"}}

    @app.get("/broken")
    async def broken():
        raise HTTPException(status_code=500, detail="boom")

    @app.get("/moved")
    async def moved():
        return RedirectResponse("/", status_code=302)

    @app.get("/slow")
    async def slow():
        await asyncio.sleep(0.2)
        return {"slow": True}

    return app


def mock_client(handler: Callable[[httpx.Request], Any]) -> AsyncHTTPClient:
    return AsyncHTTPClient(TARGET_URL, transport=httpx.MockTransport(handler))


@pytest_asyncio.fixture
async def make_client():
    """Factory for clients backed by an httpx.MockTransport handler, closed on teardown"""
    clients = []
    def factory(handler: Callable[[httpx.Request], Any]) -> AsyncHTTPClient:
        client = mock_client(handler)
        clients.append(client)
        return client
    yield factory
    for client in clients:
        await client.aclose()


@pytest_asyncio.fixture
async def target_app():
    return build_target_app()


@pytest_asyncio.fixture
async def target_client(target_app):
    """Client wired to the in-process FastAPI target"""
    client = AsyncHTTPClient(TARGET_URL, transport=httpx.ASGITransport(app=target_app))
    yield client
    await client.aclose()
