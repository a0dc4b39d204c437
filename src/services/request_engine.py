"""
Request execution service for the channel client.
Runs request descriptors on a thread pool with requests, retries transient
failures and reports exactly one completion per non-cancelled submission.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Tuple

import requests

from src.channels.request import RequestDescriptor
from src.channels.results import HTTPResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Completion:
    """Outcome of one execution: either a response or an error."""

    response: Optional[HTTPResponse] = None
    error: Optional[BaseException] = None


CompletionCallback = Callable[[Completion], None]


class RequestExecutor(Protocol):
    def submit(
        self, descriptor: RequestDescriptor, on_complete: CompletionCallback
    ) -> Any:  # pragma: no cover (interface)
        ...

    def cancel(self, handle: Any) -> None:  # pragma: no cover (interface)
        ...


class RequestHandle:
    """Cancellable token for one submitted request."""

    def __init__(self, descriptor: RequestDescriptor):
        self.descriptor = descriptor
        self.future: Optional[Future] = None
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()
        if self.future is not None:
            self.future.cancel()

    def wait_cancelled(self, timeout: float) -> bool:
        return self._cancelled.wait(timeout)

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return (
            f"<RequestHandle {self.descriptor.method} {self.descriptor.path} {state}>"
        )


class RequestEngine:
    """Thread pool backed executor using a shared requests session."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10,
        retry_count: int = 3,
        retry_delay: float = 5,
        auth: Optional[Tuple[str, str]] = None,
        max_workers: int = 4,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the request engine.

        Args:
            base_url: Backend root URL, request paths are appended to it
            timeout: Per attempt timeout in seconds
            retry_count: Number of retries after the first attempt
            retry_delay: Delay between attempts in seconds
            auth: Optional (app key, app secret) pair for basic auth
            max_workers: Size of the worker pool
            session: requests Session to use (optional)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self.auth = auth
        self.session = session or requests.Session()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="channel-request"
        )

    @classmethod
    def from_config(cls, api_config: Any) -> "RequestEngine":
        auth = None
        if api_config.app_key and api_config.app_secret:
            auth = (api_config.app_key, api_config.app_secret)
        return cls(
            base_url=str(api_config.base_url),
            timeout=api_config.timeout,
            retry_count=api_config.retry_count,
            retry_delay=api_config.retry_delay,
            auth=auth,
            max_workers=api_config.max_workers,
        )

    def submit(
        self, descriptor: RequestDescriptor, on_complete: CompletionCallback
    ) -> RequestHandle:
        handle = RequestHandle(descriptor)
        handle.future = self._executor.submit(self._run, handle, on_complete)
        logger.debug(f"Submitted {descriptor.method} {descriptor.path}")
        return handle

    def cancel(self, handle: RequestHandle) -> None:
        handle.cancel()
        logger.debug(f"Cancelled {handle!r}")

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)
        self.session.close()

    def _run(self, handle: RequestHandle, on_complete: CompletionCallback) -> None:
        try:
            completion = self._execute_with_retry(handle)
        except Exception as e:
            logger.exception(f"Request {handle!r} failed unexpectedly: {str(e)}")
            completion = Completion(error=e)
        if completion is None or handle.cancelled:
            logger.debug(f"Dropping completion of cancelled request {handle!r}")
            return
        try:
            on_complete(completion)
        except Exception as e:
            logger.exception(f"Completion handler failed for {handle!r}: {str(e)}")

    def _execute_with_retry(self, handle: RequestHandle) -> Optional[Completion]:
        """
        Execute a request with retry mechanism.

        Connection errors, timeouts and 5xx statuses are retried, any other
        status is final.

        Returns:
            The last completion, or None if the request was cancelled
        """
        descriptor = handle.descriptor
        url = f"{self.base_url}{descriptor.path}"
        attempts = self.retry_count + 1
        completion = None

        for attempt in range(attempts):
            if handle.cancelled:
                return None
            try:
                resp = self.session.request(
                    descriptor.method,
                    url,
                    data=descriptor.body.encode("utf-8"),
                    headers=descriptor.headers,
                    auth=self.auth,
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                logger.warning(f"Attempt {attempt + 1}/{attempts}: Exception: {str(e)}")
                completion = Completion(error=e)
            else:
                response = HTTPResponse(
                    status_code=resp.status_code,
                    body=resp.text,
                    headers=dict(resp.headers),
                )
                if response.status_code < 500:
                    return Completion(response=response)
                logger.warning(
                    f"Attempt {attempt + 1}/{attempts}: "
                    f"Failed with status code {response.status_code}: {response.body}"
                )
                completion = Completion(response=response)

            # Wait before retrying, except for the last attempt
            if attempt < attempts - 1 and handle.wait_cancelled(self.retry_delay):
                return None

        return completion


__all__ = [
    "Completion",
    "CompletionCallback",
    "RequestExecutor",
    "RequestHandle",
    "RequestEngine",
]
