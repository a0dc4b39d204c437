"""
Channel API client.
High level abstraction for channel creation and updates: builds the request,
hands it to a request executor, tracks it while in flight and reports exactly
one outcome per operation through the caller's callbacks.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, List, Optional

from src.channels.errors import DecodingError, EncodingError, ErrorKind
from src.channels.request import RequestDescriptor, RequestKind, build_request
from src.channels.results import (
    ChannelCreated,
    ChannelFailed,
    ChannelResult,
    ChannelUpdated,
    FailedRequest,
    HTTPResponse,
)
from src.services.request_engine import Completion, RequestEngine, RequestExecutor

logger = logging.getLogger(__name__)

CreateSuccessCallback = Callable[[str], None]
UpdateSuccessCallback = Callable[[], None]
FailureCallback = Callable[[FailedRequest], None]

CREATED_STATUSES = (200, 201)


class _PendingRequest:
    """One tracked operation; completion and cancellation race for ``claim``."""

    def __init__(
        self,
        descriptor: RequestDescriptor,
        on_cancel: Optional[Callable[[], None]] = None,
    ):
        self.descriptor = descriptor
        self.handle: Any = None
        self.on_cancel = on_cancel
        self._lock = threading.Lock()
        self._finished = False
        self._cancelled = False

    def claim(self) -> bool:
        with self._lock:
            if self._finished:
                return False
            self._finished = True
            return True

    def attach(self, handle: Any) -> bool:
        """Record the executor handle, True if the operation was cancelled meanwhile."""
        with self._lock:
            self.handle = handle
            return self._cancelled

    def cancel(self) -> tuple:
        """Returns (cancelled, handle); handle is None while submission is ongoing."""
        with self._lock:
            if self._finished:
                return False, None
            self._finished = True
            self._cancelled = True
            return True, self.handle


class ChannelAPIClient:
    """Create and update channels against the push backend."""

    def __init__(self, request_engine: RequestExecutor, owns_engine: bool = False):
        self.request_engine = request_engine
        self._owns_engine = owns_engine
        self._lock = threading.Lock()
        self._in_flight: set[_PendingRequest] = set()

    @classmethod
    def with_request_engine(
        cls, request_engine: RequestExecutor
    ) -> "ChannelAPIClient":
        return cls(request_engine)

    @classmethod
    def from_config(cls, api_config: Any) -> "ChannelAPIClient":
        """Build a client with its own default request engine."""
        return cls(RequestEngine.from_config(api_config), owns_engine=True)

    # --- Public API ------------------------------------------------------
    def create_channel(
        self,
        payload: Any,
        on_success: CreateSuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        """
        Create a channel.

        Args:
            payload: ChannelPayload (or mapping) describing the channel
            on_success: Called with the new channel ID
            on_failure: Called with the FailedRequest context
        """
        self._create(payload, on_success, on_failure)

    def update_channel(
        self,
        channel_id: str,
        payload: Any,
        on_success: UpdateSuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        """
        Update an existing channel.

        Args:
            channel_id: Channel to update, as returned by create_channel
            payload: ChannelPayload (or mapping) describing the channel
            on_success: Called without arguments once the update is accepted
            on_failure: Called with the FailedRequest context
        """
        self._update(channel_id, payload, on_success, on_failure)

    def cancel_all_requests(self) -> None:
        """Cancel all current and pending requests.

        Cancelled operations never deliver a callback. An operation whose
        completion already started keeps its natural outcome.
        """
        with self._lock:
            pending = list(self._in_flight)
            self._in_flight.clear()

        cancelled = 0
        for op in pending:
            was_cancelled, handle = op.cancel()
            if not was_cancelled:
                continue
            cancelled += 1
            if handle is not None:
                self._cancel_handle(handle)
            if op.on_cancel is not None:
                _invoke(op.on_cancel)
        if cancelled:
            logger.info(f"Cancelled {cancelled} channel request(s)")

    def create_channel_future(self, payload: Any) -> "Future[ChannelResult]":
        """Future based variant of create_channel, cancelled with the request."""
        future: Future = Future()
        self._create(
            payload,
            lambda channel_id: _resolve(future, ChannelCreated(channel_id)),
            lambda failure: _resolve(future, ChannelFailed(failure)),
            on_cancel=future.cancel,
        )
        return future

    def update_channel_future(
        self, channel_id: str, payload: Any
    ) -> "Future[ChannelResult]":
        """Future based variant of update_channel, cancelled with the request."""
        future: Future = Future()
        self._update(
            channel_id,
            payload,
            lambda: _resolve(future, ChannelUpdated()),
            lambda failure: _resolve(future, ChannelFailed(failure)),
            on_cancel=future.cancel,
        )
        return future

    def in_flight_requests(self) -> List[Any]:
        with self._lock:
            return [op.handle for op in self._in_flight if op.handle is not None]

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def close(self) -> None:
        self.cancel_all_requests()
        if self._owns_engine and hasattr(self.request_engine, "shutdown"):
            self.request_engine.shutdown()

    # --- Internals -------------------------------------------------------
    def _create(
        self,
        payload: Any,
        on_success: CreateSuccessCallback,
        on_failure: FailureCallback,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> None:
        def handle_response(op: _PendingRequest, response: HTTPResponse) -> None:
            if response.status_code not in CREATED_STATUSES:
                self._fail(on_failure, op, ErrorKind.SERVER, response=response)
                return
            try:
                channel_id = decode_channel_id(response)
            except DecodingError as e:
                self._fail(
                    on_failure, op, ErrorKind.DECODING, response=response, error=e
                )
                return
            logger.info(f"Channel created: {channel_id}")
            _invoke(on_success, channel_id)

        self._submit(
            RequestKind.CREATE, None, payload, handle_response, on_failure, on_cancel
        )

    def _update(
        self,
        channel_id: str,
        payload: Any,
        on_success: UpdateSuccessCallback,
        on_failure: FailureCallback,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> None:
        def handle_response(op: _PendingRequest, response: HTTPResponse) -> None:
            if not response.ok:
                self._fail(on_failure, op, ErrorKind.SERVER, response=response)
                return
            logger.info(f"Channel updated: {channel_id}")
            _invoke(on_success)

        self._submit(
            RequestKind.UPDATE,
            channel_id,
            payload,
            handle_response,
            on_failure,
            on_cancel,
        )

    def _submit(
        self,
        kind: RequestKind,
        channel_id: Optional[str],
        payload: Any,
        handle_response: Callable[[_PendingRequest, HTTPResponse], None],
        on_failure: FailureCallback,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> None:
        try:
            descriptor = build_request(kind, channel_id, payload)
        except EncodingError as e:
            logger.error(f"Cannot {kind} channel: {str(e)}")
            _invoke(on_failure, FailedRequest(kind=ErrorKind.ENCODING, error=e))
            return

        op = _PendingRequest(descriptor, on_cancel)
        self._track(op)

        def on_complete(completion: Completion) -> None:
            if not op.claim():
                logger.debug(f"Ignoring completion of cancelled {descriptor.path}")
                return
            self._untrack(op)
            if completion.response is None:
                _invoke(
                    on_failure,
                    FailedRequest(
                        kind=ErrorKind.TRANSPORT,
                        request=descriptor,
                        error=completion.error,
                    ),
                )
                return
            handle_response(op, completion.response)

        try:
            handle = self.request_engine.submit(descriptor, on_complete)
        except Exception as e:
            logger.exception(f"Submission of {descriptor.path} failed: {str(e)}")
            if op.claim():
                self._untrack(op)
                _invoke(
                    on_failure,
                    FailedRequest(kind=ErrorKind.TRANSPORT, request=descriptor, error=e),
                )
            return

        if op.attach(handle):
            # cancel_all_requests ran before the handle was known
            self._cancel_handle(handle)

    def _fail(
        self,
        on_failure: FailureCallback,
        op: _PendingRequest,
        kind: ErrorKind,
        response: Optional[HTTPResponse] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        failure = FailedRequest(
            kind=kind, request=op.descriptor, response=response, error=error
        )
        logger.warning(f"Channel request failed: {failure.describe()}")
        _invoke(on_failure, failure)

    def _track(self, op: _PendingRequest) -> None:
        with self._lock:
            self._in_flight.add(op)

    def _untrack(self, op: _PendingRequest) -> None:
        with self._lock:
            self._in_flight.discard(op)

    def _cancel_handle(self, handle: Any) -> None:
        try:
            self.request_engine.cancel(handle)
        except Exception as e:
            logger.warning(f"Failed to cancel request {handle!r}: {str(e)}")


def decode_channel_id(response: HTTPResponse) -> str:
    """Extract the channel ID from a creation response body.

    Raises:
        DecodingError: if the body is not JSON or has no channel ID
    """
    try:
        data = json.loads(response.body or "")
    except ValueError as e:
        raise DecodingError(f"Invalid response body: {str(e)}") from e
    channel_id = data.get("channel_id") if isinstance(data, dict) else None
    if not isinstance(channel_id, str) or not channel_id:
        raise DecodingError("Response body has no channel_id")
    return channel_id


def _invoke(callback: Callable[..., None], *args: Any) -> None:
    try:
        callback(*args)
    except Exception as e:
        logger.exception(f"Channel callback {callback!r} raised: {str(e)}")


def _resolve(future: Future, value: ChannelResult) -> None:
    if future.set_running_or_notify_cancel():
        future.set_result(value)


__all__ = ["ChannelAPIClient", "decode_channel_id", "CREATED_STATUSES"]
