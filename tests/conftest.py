"""
Pytest configuration and shared fixtures.
"""

import pytest


class FakeGenerationClient:
    """
    Scripted stand-in for GenerationClient.

    Each generate() call pops the next scripted response. A response
    that is an exception instance is raised instead of returned.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def generate(self, system_prompt, user_prompt, temperature, max_tokens):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if not self.responses:
            raise AssertionError("FakeGenerationClient ran out of scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def api_service(tmp_path, fake_client):
    """Service on a temp database, installed as the API singleton."""
    from novelgen.api._service_state import set_service
    from novelgen.scheduler.service import NovelGenerationService

    service = NovelGenerationService.create(
        db_path=tmp_path / "novelgen.db",
        client=fake_client,
        poll_interval=0.05,
        max_retries=1,
    )
    set_service(service)

    yield service

    service.stop()
    set_service(None)


@pytest.fixture
def api_client(api_service):
    """
    TestClient for the app with api_service installed.

    Not used as a context manager, so the lifespan does not replace the
    installed service.
    """
    from fastapi.testclient import TestClient
    from novelgen.api.main import app

    return TestClient(app)
