"""
JSON-RPC engine with bounded retry and result acceptance rules.
"""

import logging
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from ..types import EvmError, ProtocolError, Result, TransportError
from .types import DEFAULT_OPTIONS, RPCEngineConfig, RPCOptions, RPCRequest, RPCResponse

logger = logging.getLogger(__name__)

# Failures after the request body may have reached the node
_AMBIGUOUS_ERRORS = (
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
)


class RPCEngine:
    """
    Issues JSON-RPC requests against one endpoint.

    The engine keeps no state between requests: unless an ``httpx.AsyncClient``
    is injected, a short-lived client is opened per request. It is safe to
    share across concurrent tasks.
    """

    def __init__(self, config: RPCEngineConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client

    async def request(self, request: RPCRequest, options: RPCOptions = DEFAULT_OPTIONS) -> Result[RPCResponse]:
        """
        Execute a request with the configured retry policy and result rules.

        Args:
            request: Method, params and id
            options: Retry policy and result acceptance rules

        Returns:
            Result with the RPCResponse, or the last observed error once
            retries are exhausted
        """
        retry_opts = options.retry

        def should_retry(error: BaseException) -> bool:
            return isinstance(error, EvmError) and retry_opts.is_retryable(error, request)

        if retry_opts.backoff == 1:
            wait = wait_fixed(retry_opts.delay)
        else:
            wait = wait_exponential(multiplier=retry_opts.delay, exp_base=retry_opts.backoff,
                                    max=retry_opts.max_delay)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retry_opts.max_attempts),
            wait=wait,
            retry=retry_if_exception(should_retry),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._execute(request, options)
                    self._apply_result_rules(request, response, options)
        except EvmError as e:
            logger.debug(f"RPC {request.method} (id={request.id}) failed: {e.message}")
            return Result.failure(e)
        return Result.success(response)

    async def _execute(self, request: RPCRequest, options: RPCOptions) -> RPCResponse:
        if self._client is not None:
            return await self._post(self._client, request, options)
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            return await self._post(client, request, options)

    async def _post(self, client: httpx.AsyncClient, request: RPCRequest, options: RPCOptions) -> RPCResponse:
        try:
            http_response = await client.post(
                self.config.base_url,
                json=request.to_payload(),
                headers=self.config.request_headers(),
                timeout=self.config.timeout,
            )
        except _AMBIGUOUS_ERRORS as e:
            raise TransportError(f"{type(e).__name__} during {request.method}: {e}", ambiguous=True)
        except httpx.TransportError as e:
            raise TransportError(f"{type(e).__name__} during {request.method}: {e}")

        return self._parse(request, http_response, options)

    def _parse(self, request: RPCRequest, http_response: httpx.Response, options: RPCOptions) -> RPCResponse:
        try:
            body = http_response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            raise ProtocolError(
                str(error.get("message", "RPC error")),
                code=error.get("code"),
                data=error.get("data"),
                retryable=error.get("code") in options.rules.retry_error_codes,
            )

        # The node answered, so the request body was delivered
        if http_response.status_code >= 400:
            raise TransportError(
                f"HTTP {http_response.status_code} from {request.method}",
                code=http_response.status_code,
                ambiguous=True,
            )

        if not isinstance(body, dict) or "result" not in body:
            raise TransportError(f"Malformed response to {request.method}", ambiguous=True)

        return RPCResponse(id=body.get("id"), result=body["result"])

    def _apply_result_rules(self, request: RPCRequest, response: RPCResponse, options: RPCOptions) -> None:
        rules = options.rules
        reason = rules.rejection(response.result)
        if reason is not None:
            logger.warning(f"RPC {request.method} result rejected: {reason}")
            raise ProtocolError(f"Rejected result from {request.method}: {reason}",
                                data=response.result, retryable=rules.retry_on_reject)
