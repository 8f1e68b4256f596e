"""
Tests for error classification and the error banner.
"""

import asyncio

import pytest

from core.comp_sync.errors import (
    SERVER_FALLBACK_MESSAGE,
    BannerController,
    ErrorBanner,
    ErrorKind,
    ServerError,
    TransportError,
    classify_exception,
    user_message,
)


class TestClassification:

    @pytest.mark.parametrize(
        "exc, kind",
        [
            (asyncio.CancelledError(), ErrorKind.CANCELLED),
            (TransportError("x"), ErrorKind.TRANSPORT),
            (asyncio.TimeoutError(), ErrorKind.TRANSPORT),
            (ConnectionRefusedError(), ErrorKind.TRANSPORT),
            (ServerError("x", 500), ErrorKind.SERVER),
            (KeyError("unexpected"), ErrorKind.SERVER),
        ],
    )
    def test_classify(self, exc, kind):
        assert classify_exception(exc) is kind

    def test_server_message_or_fallback(self):
        assert user_message(ErrorKind.SERVER, ServerError("Invalid zip")) == "Invalid zip"
        assert user_message(ErrorKind.SERVER, ServerError("")) == SERVER_FALLBACK_MESSAGE
        assert user_message(ErrorKind.SERVER, KeyError("x")) == SERVER_FALLBACK_MESSAGE


class TestBanner:

    @pytest.mark.parametrize(
        "kind, retryable",
        [
            (ErrorKind.TRANSPORT, True),
            (ErrorKind.SERVER, True),
            (ErrorKind.AUTHORIZATION, False),
            (ErrorKind.TOGGLE, False),
        ],
    )
    def test_retryable_kinds(self, kind, retryable):
        assert ErrorBanner.for_failure(kind, "m").retryable is retryable

    def test_show_replaces_and_notifies(self):
        seen = []

        async def scenario():
            banner = BannerController(auto_clear_seconds=0, on_change=seen.append)
            first = ErrorBanner.for_failure(ErrorKind.SERVER, "one")
            second = ErrorBanner.for_failure(ErrorKind.TRANSPORT, "two")
            banner.show(first)
            banner.show(second)
            banner.dismiss()
            banner.dismiss()
            return first, second

        first, second = asyncio.run(scenario())

        assert seen == [first, second, None]

    def test_new_banner_restarts_timer(self):
        async def scenario():
            banner = BannerController(auto_clear_seconds=0.1)
            banner.show(ErrorBanner.for_failure(ErrorKind.SERVER, "one"))
            await asyncio.sleep(0.06)
            banner.show(ErrorBanner.for_failure(ErrorKind.SERVER, "two"))
            await asyncio.sleep(0.06)
            still_shown = banner.current
            await asyncio.sleep(0.1)
            return still_shown, banner.current

        still_shown, cleared = asyncio.run(scenario())

        assert still_shown.message == "two"
        assert cleared is None
