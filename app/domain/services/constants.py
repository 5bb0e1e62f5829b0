# Candidate sources (generator identities, also the keys of sourceCounts)
SOURCE_COLLABORATIVE = "collaborative"
SOURCE_CROSS_SELL = "cross_sell"
SOURCE_TRENDING = "trending"

# Declaration order, used by the control variant
ALL_SOURCES = (SOURCE_COLLABORATIVE, SOURCE_CROSS_SELL, SOURCE_TRENDING)

# Experiment variants (closed set)
VARIANT_CONTROL = "control"
VARIANT_PERSONALIZED = "personalized"
VARIANT_TRENDING = "trending"
ALL_VARIANTS = {VARIANT_CONTROL, VARIANT_PERSONALIZED, VARIANT_TRENDING}

# Merge priority per variant
SOURCE_PRIORITY = {
    VARIANT_CONTROL: (SOURCE_COLLABORATIVE, SOURCE_CROSS_SELL, SOURCE_TRENDING),
    VARIANT_PERSONALIZED: (SOURCE_COLLABORATIVE, SOURCE_CROSS_SELL, SOURCE_TRENDING),
    VARIANT_TRENDING: (SOURCE_TRENDING, SOURCE_COLLABORATIVE, SOURCE_CROSS_SELL),
}

# Recommendation types accepted by the API
TYPE_GENERAL = "general"
TYPE_CROSS_SELL = "cross_sell"
TYPE_TRENDING = "trending"
TYPE_SIMILAR_USERS = "similar_users"

# Generators launched per type; trending always runs as the fallback source
SOURCES_BY_TYPE = {
    TYPE_GENERAL: ALL_SOURCES,
    TYPE_CROSS_SELL: (SOURCE_CROSS_SELL, SOURCE_TRENDING),
    TYPE_SIMILAR_USERS: (SOURCE_COLLABORATIVE, SOURCE_TRENDING),
    TYPE_TRENDING: (SOURCE_TRENDING,),
}

# Catalog / order statuses
STATUS_ACTIVE = "active"
ORDER_COMPLETED = "completed"

# Event types in the `events` collection (view history)
EVENT_VIEW = "view"
