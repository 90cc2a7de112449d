"""Pool protocol constants.

All values are 18-decimal fixed-point integers unless noted otherwise.
"""

BONE = 10**18

UINT256_MAX = 2**256 - 1

# Bound token count limits
MIN_BOUND_TOKENS = 2
MAX_BOUND_TOKENS = 8

# Swap fee range: 0.0001% .. 10%
MIN_FEE = BONE // 10**6
MAX_FEE = BONE // 10
EXIT_FEE = 0

# Share of each trade's fee diverted to the reserve ledger: 0% .. 100%
DEFAULT_RESERVES_RATIO = 0
MAX_RESERVES_RATIO = BONE

MIN_WEIGHT = BONE
MAX_WEIGHT = BONE * 50
MAX_TOTAL_WEIGHT = BONE * 50
MIN_BALANCE = BONE // 10**12

INIT_POOL_SUPPLY = BONE * 100

# bpow() domain and series cut-off
MIN_BPOW_BASE = 1
MAX_BPOW_BASE = (2 * BONE) - 1
BPOW_PRECISION = BONE // 10**10

# Largest trade relative to the pool balance: 1/2 in, 1/3 out
MAX_IN_RATIO = BONE // 2
MAX_OUT_RATIO = (BONE // 3) + 1

# Pool share token metadata
POOL_TOKEN_NAME = "Cream Pool Token"
POOL_TOKEN_SYMBOL = "CRPT"
POOL_TOKEN_DECIMALS = 18
