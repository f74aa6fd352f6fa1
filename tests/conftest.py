"""
Shared fixtures for routey tests.
"""

import pytest

from routey import HTTPMethod, Request, Router


class CollectingSink:
    """Error sink that records registration errors instead of exiting."""

    def __init__(self):
        self.errors = []

    def __call__(self, err):
        self.errors.append(err)


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def router(sink):
    return Router(error_sink=sink)


@pytest.fixture
def make_request():
    """Build a Request; `query` is the raw query string."""

    def make(path="/", method=HTTPMethod.GET, query="", headers=None, body=None):
        return Request(
            method=method,
            path=path,
            query_string=query,
            headers=headers or {},
            body=body,
        )

    return make
