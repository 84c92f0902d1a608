import os
from dotenv import load_dotenv
load_dotenv()
# ---- Node / JSON-RPC ----
RPC_URL = os.environ.get("BLOCKFEED_RPC_URL", "https://monad-testnet.rpc.hypersync.xyz")

REQUESTS_PER_SEC = float(os.environ.get("BLOCKFEED_REQUESTS_PER_SEC", "15"))
RPC_TIMEOUT_SEC = float(os.environ.get("BLOCKFEED_TIMEOUT_SEC", "15"))
RPC_MAX_RETRIES = int(os.environ.get("BLOCKFEED_MAX_RETRIES", "3"))
RATE_LIMIT_COOLDOWN_SEC = 1.0

# ---- New block polling ----
POLL_INTERVAL_SEC = float(os.environ.get("BLOCKFEED_POLL_INTERVAL_SEC", "1.0"))
MAX_CATCHUP_BLOCKS = int(os.environ.get("BLOCKFEED_MAX_CATCHUP_BLOCKS", "10"))

# ---- Pipeline / windows ----
FETCH_RECEIPTS = os.environ.get("BLOCKFEED_FETCH_RECEIPTS", "1") not in ("0", "false", "no")
RECENT_TX_CAP = 50
RECENT_BLOCKS_CAP = 10
TYPE_MIX_CAP = 100
TYPE_MIX_RESET_BLOCKS = 10

# ----- Classification -----

# gas used above this marks an expensive contract call
GAS_USED_THRESHOLD = 100_000

# Burn sinks. Lowercase.
BURN_ADDRESSES = {
    "0x0000000000000000000000000000000000000000",
    "0x000000000000000000000000000000000000dead",
}

# 4-byte selectors, "0x" + 8 hex chars. Lowercase.
SWAP_SELECTORS = {
    "0x38ed1739",  # swapExactTokensForTokens
    "0x7ff36ab5",  # swapExactETHForTokens
    "0x18cbafe5",  # swapExactTokensForETH
    "0x8803dbee",  # swapTokensForExactTokens
    "0x02751cec",  # removeLiquidityETH
    "0x791ac947",  # swapExactTokensForETHSupportingFeeOnTransferTokens
    "0xb6f9de95",  # swapExactETHForTokensSupportingFeeOnTransferTokens
    "0x5c11d795",  # swapExactTokensForTokensSupportingFeeOnTransferTokens
    "0x128acb08",  # UniswapV3Pool.swap
    "0xfb3bdb41",  # swapETHForExactTokens
}

MINT_SELECTORS = {
    "0x40c10f19",  # mint(address,uint256)
    "0xa0712d68",  # mint(uint256)
    "0x1249c58b",  # mint()
}

BURN_SELECTORS = {
    "0x42966c68",  # burn(uint256)
    "0x9dc29fac",  # burn(address,uint256)
    "0x8d1247ba",
}
