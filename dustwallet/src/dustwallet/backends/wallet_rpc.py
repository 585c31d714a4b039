"""
Bitcoin Core wallet backend.

Lists the unspent outputs of a Bitcoin Core wallet with the ``listunspent``
RPC. No filters are passed, so Bitcoin Core's defaults apply (confirmed
outputs only, every address of the wallet).
"""

from __future__ import annotations

import json
from typing import Any

import httpx
from loguru import logger

from dustwallet.backends.base import (
    SENSITIVE_LOGGING,
    UTXO,
    SourceUnavailableError,
    UTXOSource,
    utxo_from_listunspent,
)

# Timeout for RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0


class BitcoinCoreWalletBackend(UTXOSource):
    """
    UTXO source backed by a Bitcoin Core wallet.

    Usage:
        backend = BitcoinCoreWalletBackend(
            rpc_url="http://127.0.0.1:8332",
            rpc_user="user",
            rpc_password="pass",
            wallet_name="hot",
        )
        try:
            utxos = await backend.list_unspent()
        finally:
            await backend.close()
    """

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:8332",
        rpc_user: str = "",
        rpc_password: str = "",
        wallet_name: str | None = None,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the backend.

        Args:
            rpc_url: Bitcoin Core RPC URL
            rpc_user: RPC username
            rpc_password: RPC password
            wallet_name: Wallet to query; the node's default wallet if None
            timeout: Timeout for RPC calls
            transport: Optional httpx transport (used by tests)
        """
        self.rpc_url = rpc_url.rstrip("/")
        self.rpc_user = rpc_user
        self.wallet_name = wallet_name

        self.client = httpx.AsyncClient(
            timeout=timeout, auth=(rpc_user, rpc_password), transport=transport
        )
        self._request_id = 0

    def _get_wallet_url(self) -> str:
        """Get the RPC URL for wallet-specific calls."""
        if self.wallet_name:
            return f"{self.rpc_url}/wallet/{self.wallet_name}"
        return self.rpc_url

    async def _rpc_call(self, method: str, params: list | None = None) -> Any:
        """
        Make an RPC call to Bitcoin Core.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            RPC result

        Raises:
            ValueError: On RPC errors or rejected credentials
            httpx.HTTPError: On connection/timeout errors
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "1.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await self.client.post(self._get_wallet_url(), json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise

        if response.status_code in (401, 403):
            raise ValueError(f"RPC authentication rejected (HTTP {response.status_code})")

        # Bitcoin Core reports RPC errors with a JSON body and a 4xx/5xx status
        try:
            data = response.json()
        except json.JSONDecodeError:
            response.raise_for_status()
            raise ValueError(f"Invalid JSON in RPC response for {method}")

        if not isinstance(data, dict):
            raise ValueError(f"Unexpected RPC response for {method}: {data!r}")

        if "error" in data and data["error"]:
            error_info = data["error"]
            if isinstance(error_info, dict):
                error_code = error_info.get("code", "unknown")
                error_msg = error_info.get("message", str(error_info))
            else:
                error_code, error_msg = "unknown", str(error_info)
            raise ValueError(f"RPC error {error_code}: {error_msg}")

        response.raise_for_status()
        return data.get("result")

    async def list_unspent(self) -> list[UTXO]:
        try:
            result = await self._rpc_call("listunspent")
        except (httpx.HTTPError, ValueError) as e:
            raise SourceUnavailableError(f"listunspent failed: {e}") from e

        if not isinstance(result, list):
            raise SourceUnavailableError(f"listunspent returned {type(result).__name__}")

        utxos = [utxo_from_listunspent(entry) for entry in result]
        logger.debug(f"Found {len(utxos)} UTXOs via listunspent")
        if SENSITIVE_LOGGING:
            for utxo in utxos:
                logger.debug(f"  {utxo.outpoint} {utxo.value} sats {utxo.address}")
        return utxos

    async def close(self) -> None:
        """Close backend connections."""
        await self.client.aclose()
