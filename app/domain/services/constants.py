# Constants for the upsell recommendation pipeline.

# Recommendation contexts (also the first segment of cache keys)
CONTEXT_PRODUCT = "product"
CONTEXT_CART = "cart"

# Recommendation types accepted from the model
RECOMMENDATION_TYPES = {"complementary", "similar", "upgrade", "bundle"}
DEFAULT_RECOMMENDATION_TYPE = "complementary"

# Defaults applied to model output fields that fail validation
DEFAULT_MODEL_REASON = "Recommended for you"
DEFAULT_MODEL_CONFIDENCE = 0.7
MAX_REASON_CHARS = 300

# Padding tiers (model output -> same type -> same category -> anything)
SAME_TYPE_REASON = "Similar product you might like"
SAME_TYPE_CONFIDENCE = 0.65
SAME_CATEGORY_REASON = "More from this category"
SAME_CATEGORY_CONFIDENCE = 0.55
ANY_REASON = "You might also like"
ANY_CONFIDENCE = 0.5

# History merge
BROWSED_REASON = "Because you viewed {title}"
BROWSED_REASON_NO_TITLE = "Based on your browsing history"
BROWSED_CONFIDENCE = 0.8
CARTED_REASON = "Popular in your past carts"
CARTED_CONFIDENCE = 0.75

# Engagement boost
ENGAGEMENT_MIN_SESSIONS = 2
ENGAGEMENT_TIME_CAP_S = 300
ENGAGEMENT_MAX_BONUS = 0.15

# Fallback similarity weights
SIM_CATEGORY = 40
SIM_BRAND = 25
SIM_COLOR = 15
SIM_KEYWORD = 5
SIM_KEYWORD_CAP = 20
FALLBACK_PRODUCT_REASON = "Recommended based on product similarity"
FALLBACK_CART_REASON = "Complements your cart items"
FALLBACK_CART_MAX_CONFIDENCE = 0.9
LAST_RESORT_REASON = "You might also like this product"
LAST_RESORT_CONFIDENCE = 0.5

# Anonymous users share one cache slot per subject
ANON_USER = "anon"
