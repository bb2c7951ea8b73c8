"""
Shared fixtures: an in-memory voting escrow behind a ChainReader subclass.

FakeChainReader keeps the real get_max_token_id / get_locked_reward_contract
logic (including the reward-contract memo) and only replaces the two RPC
entry points, read_one and read_batch.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

import pytest
from web3 import Web3

from config.contracts import ZERO_ADDRESS
from config.holders import LeaderboardSettings
from data_sources.onchain import CallResult, ChainReader, ContractCall, RpcError


VE = "0x27b04370d8087e714a9f557c1eff7901cea6bb63"
TOKEN = "0x4c68e4102c0f120cce9f08625bd12079806b7c4d"
VAULT = "0x" + "11" * 20
REWARD_CONTRACT = "0x" + "22" * 20
MANAGED_ID = 900

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
FOUNDATION_1 = "0x" + "f1" * 20
FOUNDATION_2 = "0x" + "f2" * 20

E18 = 10 ** 18


@dataclass
class FakeToken:
    owner: str
    amount: int = 0
    power: int = 0
    kind: int = 0
    permanent: bool = False
    end: int = 0
    managed_id: int = 0
    weight: int = 0
    earned: int = 0


@dataclass
class FakeChain:
    tokens: Dict[int, FakeToken] = field(default_factory=dict)
    max_token_id: int = 0
    reward_contracts: Dict[int, str] = field(default_factory=dict)
    failing: Set[Tuple[str, int]] = field(default_factory=set)

    def add(self, token_id: int, token: FakeToken):
        self.tokens[token_id] = token
        self.max_token_id = max(self.max_token_id, token_id)
        return self


class FakeChainReader(ChainReader):
    """ChainReader answering from a FakeChain instead of an RPC node"""

    def __init__(self, chain: FakeChain, fail_batches: int = 0):
        super().__init__(rpc_urls=["http://127.0.0.1:8545"], ve_address=VE)
        self.chain = chain
        self.fail_batches = fail_batches
        self.batch_calls = 0
        self.single_calls = 0
        self.functions_seen: List[str] = []

    @property
    def total_reads(self) -> int:
        return self.batch_calls + self.single_calls

    async def read_one(self, call: ContractCall):
        self.single_calls += 1
        self.functions_seen.append(call.function)
        if call.function == 'tokenId':
            return self.chain.max_token_id
        if call.function == 'managedToLocked':
            return self.chain.reward_contracts.get(call.args[0], ZERO_ADDRESS)
        raise RpcError(call.function, "unsupported in fake")

    async def read_batch(self, calls):
        self.batch_calls += 1
        self.functions_seen.extend(c.function for c in calls)
        if self.fail_batches > 0:
            self.fail_batches -= 1
            raise RpcError(f"multicall[{len(calls)}]", "connection reset by peer")
        return [self._answer(c) for c in calls]

    def _answer(self, call: ContractCall) -> CallResult:
        fn, args = call.function, call.args
        token_id = args[-1] if fn == 'earned' else args[0]

        if (fn, token_id) in self.chain.failing:
            return CallResult(False)

        token = self.chain.tokens.get(token_id)
        if token is None:
            # never minted: every read reverts
            return CallResult(False)

        if fn == 'ownerOf':
            return CallResult(True, Web3.to_checksum_address(token.owner))
        if fn == 'locked':
            return CallResult(True, (token.amount, token.end, token.permanent))
        if fn == 'balanceOfNFT':
            return CallResult(True, token.power)
        if fn == 'escrowType':
            return CallResult(True, token.kind)
        if fn == 'idToManaged':
            return CallResult(True, token.managed_id)
        if fn == 'weights':
            return CallResult(True, token.weight if token.managed_id == args[1] else 0)
        if fn == 'earned':
            expected = self.chain.reward_contracts.get(token.managed_id)
            if expected is None or call.target.lower() != expected.lower():
                return CallResult(False)
            return CallResult(True, token.earned)
        return CallResult(False)


class SlowChainReader(FakeChainReader):
    """FakeChainReader whose batches take `delay` seconds, tracking how many overlap"""

    def __init__(self, chain: FakeChain, delay: float = 0.0):
        super().__init__(chain)
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.completed = 0
        self.cancelled = 0

    async def read_batch(self, calls):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            results = await super().read_batch(calls)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1
        self.completed += 1
        return results


def make_settings(**overrides) -> LeaderboardSettings:
    values = dict(
        ve_address=VE,
        token_address=TOKEN,
        vaults={VAULT: MANAGED_ID},
        batch_size=10,
        window_concurrency=2,
        window_retries=3,
        cache_ttl_seconds=300.0,
        rebuild_timeout_seconds=30.0,
        foundation_addresses=(FOUNDATION_1, FOUNDATION_2),
        foundation_label="Foundation",
    )
    values.update(overrides)
    return LeaderboardSettings(**values)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chain():
    """
    Small escrow:
    1  ALICE ordinary 10 power
    2  BOB ordinary 5 power
    3  FOUNDATION_1 ordinary 3 power
    4  burned (zero owner)
    5  vault managed NFT (internal) owned by the vault contract
    6  CAROL vaulted into managed NFT 900, weight 7, earned 2
    7  ALICE ordinary, nothing locked (dust)
    """
    c = FakeChain(reward_contracts={MANAGED_ID: REWARD_CONTRACT})
    c.add(1, FakeToken(ALICE, amount=12 * E18, power=10 * E18, end=1_800_000_000))
    c.add(2, FakeToken(BOB, amount=6 * E18, power=5 * E18, end=1_800_000_000))
    c.add(3, FakeToken(FOUNDATION_1, amount=3 * E18, power=3 * E18, permanent=True))
    c.add(4, FakeToken(ZERO_ADDRESS))
    c.add(5, FakeToken(VAULT, amount=0, power=500 * E18, kind=2, permanent=True))
    c.add(6, FakeToken(CAROL, amount=0, power=0, kind=1, managed_id=MANAGED_ID, weight=7 * E18, earned=2 * E18))
    c.add(7, FakeToken(ALICE, amount=0, power=0))
    return c


@pytest.fixture
def reader(chain):
    return FakeChainReader(chain)
