"""Test the request dependency providers."""

import asyncio
import inspect

import pytest

from app import dependencies
from app.packages.chain.client import ChainClient


@pytest.fixture
def fresh_chain_client(monkeypatch):
    built = []

    def from_settings():
        built.append(object())
        return built[-1]

    monkeypatch.setattr(dependencies, "chain_client", None)
    monkeypatch.setattr(ChainClient, "from_settings", staticmethod(from_settings))
    return built


def test_chain_client_provider_runs_on_event_loop():
    assert inspect.iscoroutinefunction(dependencies.get_chain_client)


@pytest.mark.asyncio
async def test_concurrent_first_requests_share_one_client(fresh_chain_client):
    clients = await asyncio.gather(*(dependencies.get_chain_client() for _ in range(10)))

    assert len(fresh_chain_client) == 1
    assert all(client is clients[0] for client in clients)
