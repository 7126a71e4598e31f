from __future__ import annotations

import asyncio
import hashlib
from collections import defaultdict
from dataclasses import dataclass, field


DEFAULT_FUNDS_PER_USER = 100


@dataclass(frozen=True, slots=True)
class WalletAccount:
    label: str
    secret_key: str
    value: int

    @property
    def public_key(self) -> str:
        return hashlib.sha256(
            b"pk" + bytes.fromhex(self.secret_key)
        ).hexdigest()

    @classmethod
    def deterministic(cls, index: int, value: int) -> WalletAccount:
        if value <= 0:
            raise ValueError("wallet account value must be positive")

        seed = b"wl" + index.to_bytes(8, "little")
        secret_key = hashlib.sha256(seed).hexdigest()

        return cls(
            label=f"wallet-user-{index}",
            secret_key=secret_key,
            value=value,
        )


@dataclass(frozen=True, slots=True)
class WalletConfig:
    accounts: tuple[WalletAccount, ...] = field(default_factory=tuple)

    @property
    def users(self) -> int:
        return len(self.accounts)

    @property
    def total_funds(self) -> int:
        return sum(account.value for account in self.accounts)

    @classmethod
    def uniform(cls, total_funds: int, users: int) -> WalletConfig:
        """
        Split ``total_funds`` across ``users`` deterministic accounts. The
        remainder goes one token at a time to the first accounts.
        """
        if users <= 0:
            raise ValueError("wallet user count must be non-zero")

        if total_funds < users:
            raise ValueError("wallet funds must allocate at least 1 token per user")

        base_allocation, remainder = divmod(total_funds, users)

        accounts: list[WalletAccount] = []
        for idx in range(users):
            amount = base_allocation
            if remainder > 0:
                amount += 1
                remainder -= 1

            accounts.append(WalletAccount.deterministic(idx, amount))

        return cls(accounts=tuple(accounts))

    @classmethod
    def with_users(cls, users: int) -> WalletConfig:
        if users == 0:
            return cls()

        return cls.uniform(users * DEFAULT_FUNDS_PER_USER, users)


class WalletRegistry:
    """
    Run-scoped view of the genesis wallets. Hands out per-account nonces
    under a lock so concurrent submitters never reuse one.
    """

    def __init__(self, config: WalletConfig) -> None:
        self._accounts = config.accounts
        self._nonces: dict[str, int] = defaultdict(int)
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._accounts)

    @property
    def accounts(self) -> tuple[WalletAccount, ...]:
        return self._accounts

    def take(self, count: int | None = None) -> tuple[WalletAccount, ...]:
        if count is None:
            return self._accounts

        return self._accounts[:count]

    async def reserve_nonce(self, account: WalletAccount) -> int:
        async with self._lock:
            nonce = self._nonces[account.label]
            self._nonces[account.label] = nonce + 1
            return nonce

    def issued(self, account: WalletAccount) -> int:
        return self._nonces[account.label]
