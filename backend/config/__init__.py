# Config package
from config.contracts import (
    CHAIN_ID,
    CONTRACTS,
    VAULTS,
    RPC_URL,
    RPC_FALLBACK_URL,
    MULTICALL3_ADDRESS,
    ZERO_ADDRESS,
    VEABX_ABI,
    LOCKED_MANAGED_REWARD_ABI,
    get_contract_address,
)
from config.holders import (
    FOUNDATION_ADDRESSES,
    FOUNDATION_LABEL,
    KNOWN_LABELS,
    LeaderboardSettings,
    is_foundation_address,
    get_known_label,
    truncate_address,
    format_token_amount,
)
