"""
Wallet display resolution tests
================================

Priority: Manual Label > ENS > AGW Portal > Truncated Address
- lookups fail soft (HTTP errors, bad JSON, non-200)
- resolved names cached, manual labels never looked up

Run: python -m pytest tests/test_wallet_display.py -v --tb=short
"""

import httpx
import pytest

from config.holders import FOUNDATION_ADDRESSES, FOUNDATION_LABEL
from services.wallet_display import WalletDisplayResolver, shorten_name
from conftest import ALICE, BOB, CAROL


NIX = "0x5fbd6ade9ff68644ff9b612ecd00f201e154802a"


class FakeNameApis:
    """web3.bio + AGW portal behind one MockTransport"""

    def __init__(self, ens=None, agw=None, broken=False):
        self.ens = ens or {}
        self.agw = agw or {}
        self.broken = broken
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        if self.broken:
            raise httpx.ConnectError("network unreachable", request=request)

        address = request.url.path.rstrip("/").split("/")[-1].lower()
        if request.url.host == "api.web3.bio":
            if address in self.ens:
                return httpx.Response(200, json={"identity": self.ens[address]})
            return httpx.Response(404, json={"error": "not found"})
        if request.url.host == "api.portal.abs.xyz":
            if address in self.agw:
                return httpx.Response(200, json={"name": self.agw[address]})
            return httpx.Response(404)
        return httpx.Response(500)


def make_resolver(apis: FakeNameApis) -> WalletDisplayResolver:
    client = httpx.AsyncClient(transport=httpx.MockTransport(apis))
    return WalletDisplayResolver(client=client)


# =============================================================================
# TEST: PRIORITY
# =============================================================================

class TestPriority:
    """Manual > ENS > AGW > truncated"""

    @pytest.mark.asyncio
    async def test_manual_label_wins_without_network(self):
        apis = FakeNameApis(ens={NIX: "someone-else.eth"})
        resolver = make_resolver(apis)

        display = await resolver.resolve(NIX)

        assert (display.name, display.source) == ("nix.eth", "manual"), f"❌ Got {display}"
        assert apis.requests == [], "❌ Manual labels need no lookup"

    @pytest.mark.asyncio
    async def test_foundation_address_is_manual(self):
        resolver = make_resolver(FakeNameApis())

        display = await resolver.resolve(FOUNDATION_ADDRESSES[0])

        assert display.name == FOUNDATION_LABEL
        assert display.source == "manual"

    @pytest.mark.asyncio
    async def test_foundation_label_follows_configured_set(self):
        apis = FakeNameApis()
        resolver = WalletDisplayResolver(
            client=httpx.AsyncClient(transport=httpx.MockTransport(apis)),
            foundation_addresses=(ALICE,),
        )

        configured = await resolver.resolve(ALICE)
        unconfigured = await resolver.resolve(FOUNDATION_ADDRESSES[0])

        assert configured.name == FOUNDATION_LABEL and configured.source == "manual"
        assert unconfigured.source == "truncated", \
            f"❌ Address outside the configured set must not be labelled Foundation: {unconfigured}"

    @pytest.mark.asyncio
    async def test_ens_before_agw(self):
        apis = FakeNameApis(ens={ALICE: "alice.eth"}, agw={ALICE: "Alice AGW"})
        resolver = make_resolver(apis)

        display = await resolver.resolve(ALICE)

        assert (display.name, display.source) == ("alice.eth", "ens"), f"❌ Got {display}"
        assert len(apis.requests) == 1, "❌ AGW must not be asked once ENS answered"

    @pytest.mark.asyncio
    async def test_agw_when_no_ens(self):
        resolver = make_resolver(FakeNameApis(agw={BOB: "  bobby  "}))

        display = await resolver.resolve(BOB)

        assert (display.name, display.source) == ("bobby", "agw"), f"❌ Got {display}"
        assert display.url.endswith(f"/profile/{BOB}")

    @pytest.mark.asyncio
    async def test_truncated_fallback(self):
        resolver = make_resolver(FakeNameApis())

        display = await resolver.resolve(CAROL)

        assert display.source == "truncated"
        assert display.name == f"{CAROL[:6]}...{CAROL[-4:]}"

    def test_long_names_are_shortened(self):
        assert shorten_name("a" * 25) == "a" * 17 + "...", "❌ Names over 20 chars shortened"
        assert shorten_name("short.eth") == "short.eth"


# =============================================================================
# TEST: FAILURES & CACHING
# =============================================================================

class TestFailuresAndCaching:
    """Soft failures, 24h cache"""

    @pytest.mark.asyncio
    async def test_network_errors_fall_back_to_truncated(self):
        resolver = make_resolver(FakeNameApis(broken=True))

        display = await resolver.resolve(ALICE)

        assert display.source == "truncated", "❌ Lookup errors must not raise"

    @pytest.mark.asyncio
    async def test_resolved_names_are_cached(self):
        apis = FakeNameApis(ens={ALICE: "alice.eth"})
        resolver = make_resolver(apis)

        await resolver.resolve(ALICE)
        await resolver.resolve(ALICE.upper().replace("0X", "0x"))

        assert len(apis.requests) == 1, f"❌ Second lookup must hit the cache: {apis.requests}"

    @pytest.mark.asyncio
    async def test_expired_entries_are_looked_up_again(self):
        apis = FakeNameApis()
        resolver = make_resolver(apis)
        resolver.cache_ttl = 0

        await resolver.resolve(CAROL)
        await resolver.resolve(CAROL)

        assert len(apis.requests) == 4, "❌ ENS + AGW twice with a zero TTL"

    @pytest.mark.asyncio
    async def test_resolve_many_dedupes(self):
        apis = FakeNameApis(ens={ALICE: "alice.eth", BOB: "bob.eth"})
        resolver = make_resolver(apis)

        displays = await resolver.resolve_many([ALICE, BOB, ALICE])

        assert set(displays) == {ALICE, BOB}
        assert displays[BOB].name == "bob.eth"
        assert len(apis.requests) == 2, "❌ Duplicate addresses resolved once"
