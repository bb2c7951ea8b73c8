"""
veABX Contract Configuration
Centralized config for all contract addresses and minimal ABIs
All contracts live on Abstract L2 (chain id 2741)
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ============================================
# CHAIN / RPC CONFIGURATION
# ============================================

CHAIN_ID = 2741

RPC_URL = os.environ.get(
    "ABSTRACT_RPC_URL",
    "https://api.mainnet.abs.xyz"
)

# Optional second endpoint, tried when the primary does not answer
RPC_FALLBACK_URL = os.environ.get("ABSTRACT_RPC_FALLBACK_URL", "")

RPC_TIMEOUT_SECONDS = int(os.environ.get("RPC_TIMEOUT_SECONDS", "30"))

# Multicall3 (same address on every EVM chain it is deployed to)
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# ============================================
# CONTRACT ADDRESSES (Abstract Mainnet)
# ============================================

CONTRACTS = {
    # Core tokens
    "ABX_TOKEN": os.environ.get("ABX_TOKEN_ADDRESS", "0x4c68e4102c0f120cce9f08625bd12079806b7c4d"),
    "VEABX": os.environ.get("VEABX_ADDRESS", "0x27b04370d8087e714a9f557c1eff7901cea6bb63"),

    # Vaults (Relay contracts)
    "MAXI_VAULT": "0xcbeB1A72A31670AE5ba27798c124Fcf3Ca1971df",
    "REWARDS_VAULT": "0x3E8D887Bba5D4A757FaE757883CA35882AB4a0ee",
}

# Vault contract -> the managed veNFT it pools deposits into
VAULTS = {
    CONTRACTS["MAXI_VAULT"].lower(): {"name": "Maxi Vault", "managed_id": 8241},
    CONTRACTS["REWARDS_VAULT"].lower(): {"name": "Rewards Vault", "managed_id": 8813},
}

# ============================================
# ABIs (minimal - only methods we read)
# ============================================

VEABX_ABI = [
    {"inputs": [], "name": "tokenId", "outputs": [{"type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "tokenId", "type": "uint256"}], "name": "ownerOf", "outputs": [{"type": "address"}], "stateMutability": "view", "type": "function"},
    {
        "inputs": [{"name": "_tokenId", "type": "uint256"}],
        "name": "locked",
        "outputs": [
            {"name": "amount", "type": "int128"},
            {"name": "end", "type": "uint256"},
            {"name": "isPermanent", "type": "bool"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {"inputs": [{"name": "_tokenId", "type": "uint256"}], "name": "balanceOfNFT", "outputs": [{"type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "_tokenId", "type": "uint256"}], "name": "escrowType", "outputs": [{"type": "uint8"}], "stateMutability": "view", "type": "function"},

    # Vault (managed NFT) bookkeeping
    {"inputs": [{"name": "_tokenId", "type": "uint256"}], "name": "idToManaged", "outputs": [{"type": "uint256"}], "stateMutability": "view", "type": "function"},
    {
        "inputs": [{"name": "_tokenId", "type": "uint256"}, {"name": "_mTokenId", "type": "uint256"}],
        "name": "weights",
        "outputs": [{"type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {"inputs": [{"name": "_mTokenId", "type": "uint256"}], "name": "managedToLocked", "outputs": [{"type": "address"}], "stateMutability": "view", "type": "function"},
]

LOCKED_MANAGED_REWARD_ABI = [
    {
        "inputs": [{"name": "token", "type": "address"}, {"name": "tokenId", "type": "uint256"}],
        "name": "earned",
        "outputs": [{"type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
]

MULTICALL3_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"name": "target", "type": "address"},
                    {"name": "allowFailure", "type": "bool"},
                    {"name": "callData", "type": "bytes"}
                ],
                "name": "calls",
                "type": "tuple[]"
            }
        ],
        "name": "aggregate3",
        "outputs": [
            {
                "components": [
                    {"name": "success", "type": "bool"},
                    {"name": "returnData", "type": "bytes"}
                ],
                "name": "returnData",
                "type": "tuple[]"
            }
        ],
        "stateMutability": "payable",
        "type": "function"
    },
]


def get_contract_address(name: str) -> str:
    """Get contract address by name"""
    return CONTRACTS.get(name.upper(), None)
