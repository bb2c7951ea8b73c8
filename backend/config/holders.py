"""
Holder Leaderboard Configuration
Foundation addresses, manual labels and the tunables of the holders pipeline
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from config.contracts import CONTRACTS, VAULTS

# ============================================
# FOUNDATION ADDRESSES
# Grouped together as a single "Foundation" row, always ranked first
# ============================================

FOUNDATION_ADDRESSES = (
    "0xd29d05bffb2f0afbb76ed217d726ff5922253086",
    "0x4b3e171f4e5123a88ad72f3c8a843f86bde3f18f",
    "0x58564fcfc5a0c57887efc0bedec3eb5ec37f1626",
    "0x030ae831cd177b3ba1577dba2ee81cc45c1604ac",
    "0x8c8d39fdbbf10d8cc574d5610696281dc3711190",
    "0x67c0dadcb6ff386328b5a17ea40df655b097ee74",
    "0xb0e8df6009faa31520592b1821bd1620e4663f81",
    "0xc95fb8a8679d0a212276690186dee989e87560b5",
    "0xd66ca1cf2889c364e0be97235a234ee264bb6343",
    "0x42586102f172008e61dee16fad9528a5c8e466f3",
    "0x4d8971d9932c1c0c16079722b3d93893f16bb065",
)

FOUNDATION_LABEL = "Aborean (Foundation)"
FOUNDATION_URL = "https://aborean.finance/"

# ============================================
# KNOWN LABELS
# Priority: Manual Label > ENS > AGW Portal > Truncated Address
# ============================================

KNOWN_LABELS = {
    # Protocols
    "0x81e6f08decd7356ddc5ec7ce836cd111f1bb24a8": {"label": "Kona kABX", "url": "https://kona.surf/"},
    "0x111111f26ab123764da895e1627bf9ba0b000a97": {"label": "gBLUE Protocol", "url": "https://gblue.xyz/"},

    # Known users
    "0x5fbd6ade9ff68644ff9b612ecd00f201e154802a": {"label": "nix.eth", "url": "https://nix.art"},
    "0x86362a4c99d900d72d787ef1bdda38fd318aa5e9": {
        "label": "0x86362",
        "url": "https://abscan.org/address/0x86362a4c99d900d72d787ef1bdda38fd318aa5e9",
    },
}

ABSCAN_URL = "https://abscan.org"
PORTAL_PROFILE_URL = "https://portal.abs.xyz/profile"

TOKEN_DECIMALS = 18

# ============================================
# PIPELINE TUNABLES
# ============================================

HOLDERS_BATCH_SIZE = int(os.environ.get("HOLDERS_BATCH_SIZE", "100"))
HOLDERS_WINDOW_CONCURRENCY = int(os.environ.get("HOLDERS_WINDOW_CONCURRENCY", "4"))
HOLDERS_WINDOW_RETRIES = int(os.environ.get("HOLDERS_WINDOW_RETRIES", "3"))
HOLDERS_CACHE_TTL = float(os.environ.get("HOLDERS_CACHE_TTL", "300"))  # 5 minutes
HOLDERS_REBUILD_TIMEOUT = float(os.environ.get("HOLDERS_REBUILD_TIMEOUT", "600"))

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100


def is_foundation_address(address: str, foundation: Tuple[str, ...] = FOUNDATION_ADDRESSES) -> bool:
    """Check if an address is a Foundation address"""
    return address.lower() in foundation


def get_known_label(address: str, foundation: Tuple[str, ...] = FOUNDATION_ADDRESSES) -> Optional[Dict[str, str]]:
    """Get manual label for address (if exists); `foundation` is the set labelled as the Foundation"""
    normalized = address.lower()
    if is_foundation_address(normalized, foundation):
        return {"label": FOUNDATION_LABEL, "url": FOUNDATION_URL}
    return KNOWN_LABELS.get(normalized)


def truncate_address(address: str, chars: int = 4) -> str:
    """0x1234...abcd"""
    if not address:
        return ""
    return f"{address[:chars + 2]}...{address[-chars:]}"


def format_token_amount(amount: int, decimals: int = TOKEN_DECIMALS) -> float:
    """Raw token units -> decimal token amount"""
    return amount / (10 ** decimals)


@dataclass(frozen=True)
class LeaderboardSettings:
    """Everything the holders pipeline needs, injected at process start"""
    ve_address: str = CONTRACTS["VEABX"]
    token_address: str = CONTRACTS["ABX_TOKEN"]
    # vault contract (lower-case) -> managed veNFT id
    vaults: Dict[str, int] = field(
        default_factory=lambda: {addr: v["managed_id"] for addr, v in VAULTS.items()}
    )
    batch_size: int = 100
    window_concurrency: int = 4
    window_retries: int = 3
    cache_ttl_seconds: float = 300.0
    rebuild_timeout_seconds: float = 600.0
    default_page_limit: int = DEFAULT_PAGE_LIMIT
    max_page_limit: int = MAX_PAGE_LIMIT
    foundation_addresses: Tuple[str, ...] = FOUNDATION_ADDRESSES
    foundation_label: str = FOUNDATION_LABEL

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.window_concurrency < 1:
            raise ValueError(f"window_concurrency must be >= 1, got {self.window_concurrency}")
        if self.window_retries < 1:
            raise ValueError(f"window_retries must be >= 1, got {self.window_retries}")
        if not self.foundation_addresses:
            raise ValueError("foundation_addresses must not be empty")
        # Addresses are compared lower-case everywhere downstream
        object.__setattr__(
            self, "foundation_addresses", tuple(a.lower() for a in self.foundation_addresses)
        )
        object.__setattr__(
            self, "vaults", {a.lower(): int(m) for a, m in self.vaults.items()}
        )

    @classmethod
    def from_env(cls) -> "LeaderboardSettings":
        return cls(
            batch_size=HOLDERS_BATCH_SIZE,
            window_concurrency=HOLDERS_WINDOW_CONCURRENCY,
            window_retries=HOLDERS_WINDOW_RETRIES,
            cache_ttl_seconds=HOLDERS_CACHE_TTL,
            rebuild_timeout_seconds=HOLDERS_REBUILD_TIMEOUT,
        )

    def vault_name(self, managed_id: int) -> Optional[str]:
        for address, mid in self.vaults.items():
            if mid == managed_id:
                vault = VAULTS.get(address)
                return vault["name"] if vault else address
        return None
