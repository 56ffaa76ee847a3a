"""
Domain constants used across services/routers.
"""

PAYMENT_PROVIDER = "hyp"

# Canvas pricing (ILS). Standard canvases use a bulk step table; the
# pair and triple sets have fixed unit prices.
STANDARD_TIER_PRICES = {1: 220, 2: 400, 3: 550}
STANDARD_EXTRA_UNIT_PRICE = 180
PAIR_UNIT_PRICE = 390
TRIPLE_UNIT_PRICE = 550
SHIPPING_FEE = 0

# Upper bound for a free-form line price; anything above is a client bug
MAX_UNIT_PRICE = 100_000

# Older storefront builds send the canvas size instead of a category
LEGACY_SIZE_LABELS = {
    "80×25": "standard",
    "50×40": "pair",
    "80×60": "triple",
}

# Hyp callback / response field names
HYP_ORDER_FIELD = "Order"
HYP_CCODE_FIELD = "CCode"
HYP_TRANSACTION_FIELD = "Id"
HYP_SUCCESS_CCODE = "0"

GATEWAY_ORDER_ID_MAX_LENGTH = 64
DEFAULT_HYP_USER_ID = "000000000"
