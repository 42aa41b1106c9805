import httpx
import pytest

from ollama_compressor.client import OllamaClient
from ollama_compressor.models import EndpointMode, RunConfig


@pytest.fixture
def make_client():
    """Build an OllamaClient whose HTTP traffic goes to ``handler``."""
    created = []

    def _make(handler, clock=None, **config_kwargs) -> OllamaClient:
        config_kwargs.setdefault("mode", EndpointMode.GENERATE)
        config_kwargs.setdefault("retry_delay", 0)
        config = RunConfig(**config_kwargs)
        http = httpx.Client(transport=httpx.MockTransport(handler))
        created.append(http)
        if clock is None:
            return OllamaClient(config, http_client=http)
        return OllamaClient(config, http_client=http, clock=clock)

    yield _make
    for http in created:
        http.close()
