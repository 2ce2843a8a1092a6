# Constants for the recommendation engine.

# Default result sizes per entry point
DEFAULT_USER_LIMIT = 10
DEFAULT_PRODUCT_LIMIT = 6
DEFAULT_CATEGORY_LIMIT = 8
DEFAULT_CO_PURCHASE_LIMIT = 4
DEFAULT_SIMILAR_USERS_LIMIT = 5
DEFAULT_TRENDING_LIMIT = 12
MAX_LIMIT = 100

# User similarity (Jaccard over purchased product ids)
SIMILARITY_THRESHOLD = 0.3

# Relevance formula
ORDER_LINE_WEIGHT = 10         # per historical order line
CATEGORY_AFFINITY_BONUS = 50   # category among the requester's purchases
NEW_PRODUCT_BONUS = 20         # created less than NEW_PRODUCT_DAYS ago
NEW_PRODUCT_DAYS = 30
RECENT_PRODUCT_BONUS = 10      # created less than RECENT_PRODUCT_DAYS ago
RECENT_PRODUCT_DAYS = 90
IN_STOCK_BONUS = 15

# Sections of a user recommendation response
SECTION_PURCHASE_HISTORY = "based_on_purchase_history"
SECTION_WISHLIST = "based_on_wishlist"
SECTION_SIMILAR_USERS = "based_on_similar_users"
SECTION_TRENDING = "trending_in_categories"

# Strategies advertised by the insights endpoint
RECOMMENDATION_TYPES = [
    "Purchase History Based",
    "Wishlist Based",
    "Similar Users",
    "Trending in Categories",
    "Frequently Bought Together",
]
