"""Shared fixtures for httpsling tests.

Nothing here touches the network: responses come from a stub transport adapter
mounted on a requests session, or from scripted senders.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest
import requests

from httpsling import Deadline, HttpSender, HttpSettings, OutgoingRequest, SendResult
from tests.httpsling._stubs import StubAdapter, make_response


@pytest.fixture
def stub_sender() -> Callable[..., tuple[HttpSender, StubAdapter]]:
    """Factory building an HttpSender backed by a StubAdapter."""

    def _factory(
        *outcomes: requests.Response | Exception, settings: HttpSettings | None = None
    ) -> tuple[HttpSender, StubAdapter]:
        adapter = StubAdapter(outcomes)
        session = requests.Session()
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return HttpSender(session=session, settings=settings), adapter

    return _factory


@pytest.fixture
def result_for() -> Callable[..., SendResult]:
    """Factory building SendResult values for a status code."""

    def _factory(status: int, body: bytes = b"") -> SendResult:
        return SendResult(response=make_response(status, body), content=body)

    return _factory


@pytest.fixture
def outgoing() -> Callable[..., OutgoingRequest]:
    """Factory building a GET OutgoingRequest with an optional deadline."""

    def _factory(deadline: Deadline | None = None) -> OutgoingRequest:
        prepared = requests.Request("GET", "http://example.test/").prepare()
        return OutgoingRequest(prepared=prepared, deadline=deadline or Deadline.never())

    return _factory
