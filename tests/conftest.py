"""Pytest configuration helpers.

Puts the ``backend`` directory on ``sys.path`` so tests can import the
``mediarelay`` package without installing it, and provides the fakes the
orchestration tests share: a virtual clock, in-memory storage and a scripted
upstream behind ``httpx.MockTransport``.
"""
import os
import sys

import httpx
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

from mediarelay.config import Settings  # noqa: E402
from mediarelay.services.providers import build_providers  # noqa: E402
from mediarelay.services.scheduler import Scheduler  # noqa: E402
from mediarelay.services.storage import ObjectStorage  # noqa: E402

START = 1_700_000_000.0


class VirtualScheduler(Scheduler):
    """Clock that only moves when the code under test sleeps."""

    def __init__(self, start=START):
        self.current = start
        self.sleeps = []

    def now(self):
        return self.current

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.current += seconds


class MemoryStorage(ObjectStorage):

    def __init__(self):
        self.objects = {}
        self.uploads = 0

    async def upload(self, bucket, key, data, content_type, overwrite=True):
        self.uploads += 1
        self.objects[(bucket, key)] = (data, content_type)

    def public_url(self, bucket, key):
        return f"https://storage.test/{bucket}/{key}"


def respond(status=200, **kwargs):
    """Response factory; a fresh ``httpx.Response`` per request."""
    return lambda request: httpx.Response(status, **kwargs)


class FakeUpstream:
    """Scripted HTTP upstream keyed by method and URL prefix.

    Each route holds a list of responders consumed in order; the last one
    repeats once the list is exhausted.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, prefix, *responders):
        self.routes[(method, prefix)] = list(responders)
        return self

    def __call__(self, request):
        self.requests.append(request)
        url = str(request.url)
        matches = [
            key for key in self.routes
            if key[0] == request.method and url.startswith(key[1])
        ]
        if not matches:
            return httpx.Response(404, json={"error": f"no route for {request.method} {url}"})
        key = max(matches, key=lambda k: len(k[1]))
        queue = self.routes[key]
        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        return responder(request)

    def calls(self, method, prefix):
        return [
            r for r in self.requests
            if r.method == method and str(r.url).startswith(prefix)
        ]

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def providers(settings):
    return build_providers(settings)
