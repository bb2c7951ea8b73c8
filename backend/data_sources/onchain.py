"""
On-chain Data Client
Read-only contract access for the veABX holders pipeline.
Single eth_calls and Multicall3 batches against the Abstract RPC, with a
fallback endpoint and per-call metrics.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from web3 import Web3

from config.contracts import (
    CONTRACTS,
    LOCKED_MANAGED_REWARD_ABI,
    MULTICALL3_ADDRESS,
    RPC_FALLBACK_URL,
    RPC_TIMEOUT_SECONDS,
    RPC_URL,
    VEABX_ABI,
    ZERO_ADDRESS,
)
from data_sources.multicall import Multicall3
from infrastructure.rpc_metrics import RPCCallTimer

logger = logging.getLogger("OnChain")


class RpcError(Exception):
    """A single read or a whole multicall request failed"""

    def __init__(self, label: str, reason: str):
        self.label = label
        self.reason = reason
        super().__init__(f"RPC call {label} failed: {reason}")


@dataclass(frozen=True)
class ContractCall:
    """One read-only contract call: target + function name + args"""
    target: str
    function: str
    args: Tuple[Any, ...] = ()
    abi: list = field(default_factory=lambda: VEABX_ABI, compare=False, repr=False)


@dataclass(frozen=True)
class CallResult:
    """Outcome of one slot of a batch; value is None when success is False"""
    success: bool
    value: Any = None

    def value_or(self, default: Any) -> Any:
        return self.value if self.success else default


class ChainReader:
    """
    Read-only chain access for the holders pipeline.

    Discovery and vault attribution only use read_one, read_batch,
    get_max_token_id and get_locked_reward_contract, so any object with
    those coroutines can stand in for it.
    """

    def __init__(
        self,
        rpc_urls: Optional[Sequence[str]] = None,
        ve_address: str = CONTRACTS["VEABX"],
        multicall_address: str = MULTICALL3_ADDRESS,
        timeout: int = RPC_TIMEOUT_SECONDS,
        web3_instance: Optional[Web3] = None,
    ):
        self.rpc_urls = [u for u in (rpc_urls or [RPC_URL, RPC_FALLBACK_URL]) if u]
        self.ve_address = ve_address
        self.multicall_address = multicall_address
        self.timeout = timeout
        self._w3 = web3_instance
        self._contracts: Dict[Tuple[str, int], Any] = {}

        # managed veNFT id -> LockedManagedReward contract. Never invalidated:
        # a vault's reward contract is fixed for the life of the vault.
        self._reward_contracts: Dict[int, str] = {}

        logger.info(f"⛓️ Chain reader initialized ({len(self.rpc_urls)} RPC endpoints)")

    # =========================================================================
    # CONNECTION
    # =========================================================================

    @property
    def w3(self) -> Web3:
        if self._w3 is None:
            self._w3 = self._connect()
        return self._w3

    def _connect(self) -> Web3:
        """Connect to the first answering RPC endpoint"""
        for index, endpoint in enumerate(self.rpc_urls):
            try:
                w3 = Web3(Web3.HTTPProvider(endpoint, request_kwargs={'timeout': self.timeout}))
                if w3.is_connected():
                    kind = "primary" if index == 0 else "fallback"
                    logger.info(f"  ✅ connected to {kind} RPC {endpoint}")
                    return w3
                logger.warning(f"  ⚠️ RPC not connected: {endpoint}")
            except Exception as e:
                logger.warning(f"  ❌ RPC {endpoint} failed: {e}")
        raise ConnectionError("All RPC endpoints failed")

    def _contract(self, address: str, abi: list):
        key = (address.lower(), id(abi))
        contract = self._contracts.get(key)
        if contract is None:
            contract = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
            self._contracts[key] = contract
        return contract

    # =========================================================================
    # READS
    # =========================================================================

    def _read_one_sync(self, call: ContractCall) -> Any:
        with RPCCallTimer('eth_call', call.function):
            contract = self._contract(call.target, call.abi)
            return contract.get_function_by_name(call.function)(*call.args).call()

    def _read_batch_sync(self, calls: Sequence[ContractCall]) -> List[Tuple[bool, Any]]:
        mc = Multicall3(self.w3, self.multicall_address)
        for call in calls:
            mc.add_call(self._contract(call.target, call.abi), call.function, call.args)
        with RPCCallTimer('multicall', calls[0].function, batch_size=len(calls)):
            return mc.execute()

    async def read_one(self, call: ContractCall) -> Any:
        """Single contract read; raises RpcError on any failure"""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._read_one_sync, call)
        except Exception as e:
            raise RpcError(call.function, str(e)) from e

    async def read_batch(self, calls: Sequence[ContractCall]) -> List[CallResult]:
        """
        Batch read through Multicall3.

        Returns one CallResult per call, in order. Individual failures are
        tagged, never raised; RpcError means the request itself failed.
        """
        if not calls:
            return []
        loop = asyncio.get_running_loop()
        try:
            raw = await loop.run_in_executor(None, self._read_batch_sync, list(calls))
        except Exception as e:
            raise RpcError(f"multicall[{len(calls)}]", str(e)) from e
        return [CallResult(success, value) for success, value in raw]

    # =========================================================================
    # VOTING ESCROW HELPERS
    # =========================================================================

    async def get_max_token_id(self) -> int:
        """Highest token id ever minted by the voting escrow"""
        return int(await self.read_one(ContractCall(self.ve_address, 'tokenId')))

    async def get_locked_reward_contract(self, managed_id: int) -> str:
        """
        LockedManagedReward contract of a managed veNFT (read-through memo).

        Two concurrent misses for the same id both read and store the same
        address, so no lock is needed.
        """
        cached = self._reward_contracts.get(managed_id)
        if cached is not None:
            return cached

        address = await self.read_one(
            ContractCall(self.ve_address, 'managedToLocked', (managed_id,))
        )
        address = (address or ZERO_ADDRESS).lower()
        if address != ZERO_ADDRESS:
            self._reward_contracts[managed_id] = address
        return address


def earned_call(reward_contract: str, token_address: str, token_id: int) -> ContractCall:
    """earned(token, tokenId) on a LockedManagedReward contract"""
    return ContractCall(
        reward_contract,
        'earned',
        (Web3.to_checksum_address(token_address), token_id),
        abi=LOCKED_MANAGED_REWARD_ABI,
    )
