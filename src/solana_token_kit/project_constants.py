"""
Fixed program ids, seeds and limits used by every token-kit command.

These mirror on-chain constants. Changing them produces different
addresses and instructions the network will reject.
"""

# Metaplex Token Metadata program (same id on every cluster)
TOKEN_METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"

# PDA seed prefix for metadata accounts: ["metadata", program id, mint]
METADATA_SEED = b"metadata"

# Trailing seed of the master edition PDA: ["metadata", program id, mint, "edition"]
EDITION_SEED = b"edition"

# Borsh instruction discriminators (first byte of instruction data)
CREATE_METADATA_ACCOUNT_V3_DISCRIMINATOR = 33
CREATE_MASTER_EDITION_V3_DISCRIMINATOR = 17

# Limits enforced by the token metadata program (UTF-8 bytes)
MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200
MAX_CREATOR_LIMIT = 5
MAX_BASIS_POINTS = 10_000

# SPL mint account size (bytes)
MINT_ACCOUNT_SIZE = 82
MAX_DECIMALS = 9
DEFAULT_DECIMALS = 6

# PDA derivation rules
MAX_SEEDS = 16
MAX_SEED_LENGTH = 32

CLUSTER_URLS = {
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "localnet": "http://localhost:8899",
}
DEFAULT_CLUSTER = "devnet"

# Ordered weakest -> strongest
COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")
DEFAULT_COMMITMENT = "confirmed"

EXPLORER_TX_URL = "https://explorer.solana.com/tx/{signature}?cluster={cluster}"
EXPLORER_ADDRESS_URL = "https://explorer.solana.com/address/{address}?cluster={cluster}"
