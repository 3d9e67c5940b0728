import json

import httpx
import pytest

from ollama_agent.client import Client
from ollama_agent.config import Config


def ndjson(*frames) -> bytes:
    return "".join(json.dumps(f) + "\n" for f in frames).encode()


@pytest.fixture
def make_client():
    """Build a Client whose HTTP traffic goes to *handler* instead of a server."""
    clients = []

    def _make(handler, **config) -> Client:
        http = httpx.Client(transport=httpx.MockTransport(handler))
        client = Client(Config(**config), http_client=http)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()
