"""
Minimal Solana JSON-RPC transport over `requests`.

Only what the client needs: raw account bytes in, signed transactions out.
Everything returned is plain bytes / ints so the decoders stay transport-free.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from .constants import RPC_DEFAULT
from .errors import AccountNotFound, RpcError
from .keys import PubkeyLike, b58encode, pubkey_str

log = logging.getLogger(__name__)

MULTIPLE_ACCOUNTS_LIMIT = 100


@dataclass(frozen=True)
class AccountInfo:
    address: str
    owner: str
    lamports: int
    data: bytes
    executable: bool = False

    @classmethod
    def from_rpc(cls, address: str, value: Dict[str, Any]) -> "AccountInfo":
        blob = value.get("data") or ["", "base64"]
        return cls(
            address=address,
            owner=value.get("owner", ""),
            lamports=int(value.get("lamports", 0)),
            data=base64.b64decode(blob[0]),
            executable=bool(value.get("executable", False)),
        )


class RpcClient:
    def __init__(
        self,
        url: str = RPC_DEFAULT,
        commitment: str = "confirmed",
        timeout: float = 15.0,
        retries: int = 2,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.commitment = commitment
        self.timeout = timeout
        self.retries = retries
        self.session = session or requests.Session()
        self._next_id = 0

    def request(self, method: str, params: List[Any]) -> Any:
        self._next_id += 1
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        attempt = 0
        while True:
            try:
                response = self.session.post(self.url, json=payload, timeout=self.timeout)
                response.raise_for_status()
                doc = response.json()
                break
            except (requests.RequestException, ValueError) as exc:
                if attempt >= self.retries:
                    raise RpcError(f"{method} RPC 请求失败: {exc}") from exc
                attempt += 1
                log.warning("%s failed (%s), retry %d/%d", method, exc, attempt, self.retries)
        if "error" in doc:
            raise RpcError(f"{method} 返回错误: {doc['error']}")
        return doc.get("result")

    def _config(self, **extra: Any) -> Dict[str, Any]:
        return {"commitment": self.commitment, **extra}

    def get_account_info(self, address: PubkeyLike) -> Optional[AccountInfo]:
        address = pubkey_str(address)
        result = self.request("getAccountInfo", [address, self._config(encoding="base64")])
        value = (result or {}).get("value")
        if not value:
            return None
        return AccountInfo.from_rpc(address, value)

    def get_account_bytes(self, address: PubkeyLike) -> bytes:
        info = self.get_account_info(address)
        if info is None:
            raise AccountNotFound(f"account {pubkey_str(address)} not found")
        return info.data

    def fetch(self, address: PubkeyLike) -> Optional[bytes]:
        """`multisig.Fetch` adapter: None when the account is missing."""
        info = self.get_account_info(address)
        return None if info is None else info.data

    def get_multiple_accounts(self, addresses: Sequence[PubkeyLike]) -> List[Tuple[str, Optional[bytes]]]:
        keys = [pubkey_str(address) for address in addresses]
        out: List[Tuple[str, Optional[bytes]]] = []
        for start in range(0, len(keys), MULTIPLE_ACCOUNTS_LIMIT):
            chunk = keys[start : start + MULTIPLE_ACCOUNTS_LIMIT]
            result = self.request("getMultipleAccounts", [chunk, self._config(encoding="base64")])
            values = (result or {}).get("value") or [None] * len(chunk)
            for address, value in zip(chunk, values):
                out.append((address, AccountInfo.from_rpc(address, value).data if value else None))
        return out

    def get_program_accounts(
        self,
        program_id: PubkeyLike,
        data_size: Optional[int] = None,
        memcmp: Sequence[Tuple[int, bytes]] = (),
    ) -> List[Tuple[str, bytes]]:
        filters: List[Dict[str, Any]] = []
        if data_size is not None:
            filters.append({"dataSize": data_size})
        for offset, raw in memcmp:
            filters.append({"memcmp": {"offset": offset, "bytes": b58encode(raw)}})
        config = self._config(encoding="base64")
        if filters:
            config["filters"] = filters
        result = self.request("getProgramAccounts", [pubkey_str(program_id), config]) or []
        return [
            (item["pubkey"], AccountInfo.from_rpc(item["pubkey"], item["account"]).data)
            for item in result
        ]

    def get_latest_blockhash(self) -> str:
        result = self.request("getLatestBlockhash", [self._config()])
        return result["value"]["blockhash"]

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        return int(self.request("getMinimumBalanceForRentExemption", [size, self._config()]))

    def send_transaction(self, raw: bytes, skip_preflight: bool = False) -> str:
        encoded = base64.b64encode(raw).decode("ascii")
        return self.request(
            "sendTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": self.commitment,
                },
            ],
        )


__all__ = ["MULTIPLE_ACCOUNTS_LIMIT", "AccountInfo", "RpcClient"]
