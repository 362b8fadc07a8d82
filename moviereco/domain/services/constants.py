# Constants for the retrieval-and-reasoning pipeline.

# Input guardrail
MAX_QUERY_LENGTH = 500  # sanitized queries are truncated beyond this

# Query enhancement
ENHANCE_SKIP_LENGTH = 100  # longer queries are assumed descriptive enough
MAX_ENHANCED_QUERY_LENGTH = 200

# Retrieval
EMBEDDING_DIMENSIONS = 1536
RETRIEVAL_K = 50  # Number of candidates to retrieve for the reasoning step
MAX_CANDIDATES_FOR_CONTEXT = 30  # Candidates actually shown to the LLM (prompt size bound)
MAX_RECOMMENDATIONS = 10  # Hard cap on recommendations, whatever the caller asks for
DEFAULT_RECOMMENDATION_LIMIT = 5
CATALOG_SAMPLE_SIZE = 100
EMBEDDING_BATCH_SIZE = 100

# Output guardrail
MAX_MATCH_REASON_LENGTH = 500
MAX_REASONING_LENGTH = 500
MAX_TARGET_AUDIENCE_LENGTH = 200
MAX_SUMMARY_LENGTH = 1000
MAX_GENRES = 5

# Preferences / comparison
MAX_RATINGS_FOR_SUMMARY = 30
TOP_RATED_COUNT = 5
MIN_COMPARE_MOVIES = 2
MAX_COMPARE_MOVIES = 5

# Reasoning client: completion token caps
MAX_QUERY_ENHANCE_TOKENS = 100
MAX_ENRICHMENT_TOKENS = 300
MAX_RECOMMENDATION_TOKENS = 2000
MAX_RATING_SUMMARY_TOKENS = 600
MAX_COMPARISON_TOKENS = 800

# Reasoning client: temperatures
ENHANCE_TEMPERATURE = 0.3
ENRICHMENT_TEMPERATURE = 0.3
RECOMMENDATION_TEMPERATURE = 0.5
SUMMARY_TEMPERATURE = 0.5
COMPARISON_TEMPERATURE = 0.6

# Reasoning client: retry policy
LLM_MAX_ATTEMPTS = 3
LLM_RETRY_DELAY_S = 2.0

# Enrichment enumerations
SENTIMENTS = ("positive", "neutral", "negative")
BUDGET_TIERS = ("low", "medium", "high", "blockbuster")
REVENUE_TIERS = ("flop", "moderate", "success", "blockbuster")

# Fixed explanations returned with empty results
BLOCKED_REASONING = "Query could not be processed."
NO_MATCHES_REASONING = "No movies were found with provided query."
INVALID_OUTPUT_REASONING = "Failed to generate valid recommendations."
UNAVAILABLE_REASONING = "Recommendations are temporarily unavailable."
