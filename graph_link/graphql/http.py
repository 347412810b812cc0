"""
GraphQL over HTTP.

This module provides the executor that issues one POST per operation and
hands the caller either the decoded GraphQL response or a normalized errors
payload, never an exception.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set

import aiohttp

from ..callbacks import CallbackDispatcher
from ..exceptions import MalformedResponseError
from .errors import is_graphql_response, normalize
from .models import GraphQLCallback

logger = logging.getLogger(__name__)

# Status reported when no HTTP response was received at all
NO_RESPONSE_STATUS = 0


class HttpExecutor:
    """
    Fire-and-forget GraphQL HTTP executor.

    Examples:
        ```python
        executor = HttpExecutor()

        def on_result(payload):
            if "errors" in payload:
                print(payload["errors"][0]["extensions"]["status"])

        executor.submit(
            "https://api.example.com/graphql",
            {"headers": {"Authorization": "Bearer ..."}},
            {"query": "{ me { name } }", "variables": {}},
            on_result,
        )
        await executor.close()
        ```
    """

    def __init__(
        self,
        dispatcher: Optional[CallbackDispatcher] = None,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the executor.

        Args:
            dispatcher: Dispatcher used to deliver results
            session: Optional existing aiohttp session to reuse
            headers: Headers added to every request
            timeout: Total request timeout in seconds
        """
        self._dispatcher = dispatcher or CallbackDispatcher()
        self._session = session
        self._external_session = session is not None
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._tasks: Set[asyncio.Task[Dict[str, Any]]] = set()

    @property
    def pending(self) -> int:
        """Number of submitted calls that have not called back yet."""
        return len(self._tasks)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                raise_for_status=False,
            )
            self._external_session = False
        return self._session

    async def execute(
        self,
        url: str,
        request: Optional[Dict[str, Any]],
        payload: Dict[str, Any],
        callback: GraphQLCallback,
    ) -> Dict[str, Any]:
        """
        Issue one GraphQL POST and call back exactly once.

        Args:
            url: GraphQL HTTP endpoint
            request: Extra aiohttp request options (headers, timeout, ...)
            payload: JSON body, e.g. ``{"query", "variables", "operationName"}``
            callback: Receives the response body or a normalized errors payload

        Returns:
            The payload handed to the callback
        """
        callback_id = self._dispatcher.register_one_shot(callback)
        result = normalize(None, NO_RESPONSE_STATUS)
        try:
            result = await self._post(url, request or {}, payload)
        finally:
            self._dispatcher.invoke(callback_id, result)
        return result

    def submit(
        self,
        url: str,
        request: Optional[Dict[str, Any]],
        payload: Dict[str, Any],
        callback: GraphQLCallback,
    ) -> asyncio.Task[Dict[str, Any]]:
        """Schedule ``execute`` on the running loop and return immediately."""
        task = asyncio.ensure_future(self.execute(url, request, payload, callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _post(
        self, url: str, request: Dict[str, Any], payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        status = NO_RESPONSE_STATUS
        try:
            options = dict(request)
            headers = {**self._headers, **(options.pop("headers", None) or {})}
            if isinstance(options.get("timeout"), (int, float)):
                options["timeout"] = aiohttp.ClientTimeout(total=options["timeout"])

            session = await self._get_session()
            async with session.post(url, json=payload, headers=headers, **options) as response:
                status = response.status
                text = self._decode(await response.read(), response.charset)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"GraphQL HTTP call to {url} failed: {e!r}")
            return normalize(None, status)
        except Exception as e:
            # Bad request options and the like; the caller still gets a payload
            logger.error(f"GraphQL HTTP call to {url} raised {e!r}")
            return normalize(None, status)

        try:
            return self._parse(text, status)
        except MalformedResponseError as e:
            logger.debug(f"GraphQL HTTP call to {url}: {e.message}")
            return normalize(e.body, status)

    @staticmethod
    def _decode(raw: bytes, charset: Optional[str]) -> str:
        """Decode a body, replacing bytes that are invalid in its charset."""
        try:
            return raw.decode(charset or "utf-8", errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")

    def _parse(self, text: str, status: int) -> Dict[str, Any]:
        """
        Decode a response body.

        Raises:
            MalformedResponseError: If the call failed or the body is not a
                GraphQL response
        """
        body: Any = None
        if text:
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                body = text

        if not 200 <= status < 300:
            raise MalformedResponseError(f"HTTP status {status}", body=body, status=status)
        if not is_graphql_response(body):
            raise MalformedResponseError("Body is not a GraphQL response", body=body, status=status)
        return body

    async def close(self) -> None:
        """Wait for submitted calls and close the session if it is owned."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._session and not self._session.closed and not self._external_session:
            await self._session.close()
        self._session = None
