"""Fixed reward parameters. Percentages are whole percent of the stake amount."""

UINT256_MAX = 2**256 - 1

PERCENT_DENOMINATOR = 100

REFERRAL_REWARD_PERCENT = 5

LEVEL_UP_START_PERCENT = 5
LEVEL_UP_MAX_HOPS = 5

# 5% of stake per period
PERIODIC_REWARD_DIVISOR = 20
PERIODIC_REWARD_INTERVAL = 24 * 60 * 60
