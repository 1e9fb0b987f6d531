"""System ledger identities, seeded by migration."""

# Wallet that receives challenge fees; kept inside the conserved total
PLATFORM_REVENUE_USER_ID = "PLATFORM_REVENUE"

SYSTEM_USER_IDS = frozenset({PLATFORM_REVENUE_USER_ID})
