from typing import Iterable, List
from moviereco.domain.models.movie import Movie, RecommendationCandidate, UserRating
from moviereco.domain.services.constants import MAX_ENHANCED_QUERY_LENGTH, MAX_TARGET_AUDIENCE_LENGTH


def _money_m(amount) -> str:
    return f"${amount / 1_000_000:.0f}M" if amount else "Unknown"


def _money_full(amount) -> str:
    return f"${amount:,}" if amount else "Unknown"


def _genres(movie: Movie, default: str = "Unknown") -> str:
    return ", ".join(movie.genres) if movie.genres else default


# ---------- Query enhancement (lightweight tier, free text) -------------------

ENHANCE_SYSTEM = (
    "You are a movie search expander. Given the short user query, expand it into a more descriptive "
    "search phrase that captures the intent and related concepts.\n"
    "Rules:\n"
    "- Output ONLY the expanded query text, nothing else\n"
    f"- Keep it under {MAX_ENHANCED_QUERY_LENGTH} characters\n"
    "- Include related themes, moods, genres, and movie characteristics\n"
    "- Don't add specific movie titles\n"
    "- Preserve the original intent\n\n"
    "Examples:\n"
    '- "funny movies" -> "comedy films with humor, laughs, witty dialogue, amusing situations, feel-good entertainment"\n'
    '- "scary" -> "horror thriller films with suspense, fear, supernatural elements, jump scares, dark atmosphere"\n'
    '- "space adventure" -> "science fiction space exploration adventure with astronauts, spacecraft, alien worlds, epic journeys"'
)


# ---------- Enrichment -------------------------------------------------------

ENRICHMENT_SYSTEM = (
    "You are a movie analyst. Analyze the given movie data and provide enriched attributes.\n"
    "Return a JSON object with exactly these fields:\n"
    '- sentiment: "positive", "neutral", or "negative" based on the movie overview tone\n'
    '- budget_tier: "low" (under $10M), "medium" ($10M to under $50M), "high" ($50M-$150M), '
    '"blockbuster" (over $150M)\n'
    '- revenue_tier: "flop" (revenue < budget), "moderate" (1-2x the budget), "success" (2-5x the budget), '
    '"blockbuster" (5x+ the budget or over $500M)\n'
    "- effectiveness_score: integer 0-100 based on ROI, ratings, and critical reception\n"
    f"- target_audience: a brief description of the ideal target audience (max {MAX_TARGET_AUDIENCE_LENGTH} characters)\n\n"
    "Be analytical and consistent in your assessments."
)


def enrichment_user(movie: Movie) -> str:
    rating = f"{movie.avg_rating:.2f}" if movie.avg_rating is not None else "Unknown"
    return (
        "Analyze this movie:\n"
        f"Title: {movie.title}\n"
        f"Overview: {movie.overview or 'No description'}\n"
        f"Genres: {_genres(movie)}\n"
        f"Budget: {_money_full(movie.budget)}\n"
        f"Revenue: {_money_full(movie.revenue)}\n"
        f"Average Rating: {rating}/5"
    )


# ---------- Recommendation ranking -------------------------------------------

def recommendation_system(limit: int) -> str:
    return (
        "You are a movie recommendation expert. Given a user's query and a list of available movies, "
        "select the best matches.\n"
        "Return a JSON object with:\n"
        "- recommendations: array of objects with:\n"
        "    - movie_id (number, copied from the ID of a listed movie)\n"
        "    - match_score (0-100 integer)\n"
        "    - match_reason (brief explanation)\n"
        "- reasoning: overall explanation of your selection criteria\n\n"
        "Guidelines:\n"
        "- Base match_score on relevance to the user's query, considering genre, themes, tone, ratings, and release date.\n"
        "- Prefer higher-rated and better-aligned movies, but prioritize relevance over popularity.\n"
        "- Always return match_score as an integer between 0 and 100. Do not output NaN or Infinity.\n\n"
        "Constraints:\n"
        "- Only recommend movies from the provided list.\n"
        "- Do not invent movies or fields.\n"
        "- Return valid JSON only (no markdown, no extra text).\n\n"
        f"Return at most {limit} recommendations."
    )


def _candidate_line(c: RecommendationCandidate) -> str:
    m = c.movie
    rating = f"{m.avg_rating:.1f}" if m.avg_rating is not None else "N/A"
    line = f'ID:{m.movie_id} "{m.title}" ({m.release_year or "N/A"}) - {_genres(m, "Unknown genre")} - Rating: {rating}/5'
    if m.budget:
        line += f" - Budget: {_money_m(m.budget)}"
    if m.revenue:
        line += f" - Revenue: {_money_m(m.revenue)}"

    if c.enrichment:
        e = c.enrichment
        line += (
            f" [Tone: {e.sentiment}, Budget: {e.budget_tier}, "
            f"Effectiveness: {e.effectiveness_score}, Audience: {e.target_audience}]"
        )

    overview = (m.overview or "No description")[:100]
    return f"{line} - {overview}..."


def recommendation_user(wrapped_query: str, candidates: Iterable[RecommendationCandidate]) -> str:
    context = "\n".join(_candidate_line(c) for c in candidates)
    return (
        f"User query: {wrapped_query}\n\n"
        f"Available movies:\n{context}\n\n"
        "Select the best matching movies for this query."
    )


# ---------- Preference summary -----------------------------------------------

PREFERENCES_SYSTEM = (
    "You are a movie preference analyst. Analyze a user's movie ratings to understand their preferences.\n"
    "Return a JSON object with:\n"
    "- summary: a 2-3 sentence description of their movie taste\n"
    "- favorite_genres: array of their top 3 preferred genres\n"
    "- likes_big_budget: boolean indicating if they prefer big-budget productions\n"
    "- prefers_classics: boolean indicating if they prefer older/classic films (pre-2000)\n\n"
    "Base your analysis on the patterns in their highly-rated movies."
)


def preferences_user(user_id: int, ratings: List[UserRating]) -> str:
    lines = "\n".join(
        f'"{r.movie.title}" - Rating: {r.rating}/5 - Genres: {_genres(r.movie)} '
        f"- Year: {r.movie.release_year or 'Unknown'} - Budget: {_money_m(r.movie.budget)}"
        for r in ratings
    )
    return (
        f"User {user_id}'s movie ratings (sorted by rating, highest first):\n"
        f"{lines}\n\n"
        "Analyze their movie preferences."
    )


# ---------- Comparison -------------------------------------------------------

COMPARISON_SYSTEM = (
    "You are a film critic comparing movies. Provide an insightful comparison of the given movies.\n"
    "Return a JSON object with:\n"
    "- comparison: a detailed 3-4 sentence comparison discussing key differences and similarities\n"
    "- winner: (optional) if one movie stands out, an object with movie_id, title, and reason\n\n"
    "Consider budget, revenue, ratings, runtime, genre, and critical reception in your analysis."
)


def comparison_user(movies: List[Movie]) -> str:
    blocks = []
    for m in movies:
        rating = f"{m.avg_rating:.2f}" if m.avg_rating is not None else "Unknown"
        runtime = f"{m.runtime:.0f} min" if m.runtime else "Unknown"
        blocks.append(
            f'Movie ID {m.movie_id}: "{m.title}" ({m.release_year or "N/A"})\n'
            f"- Genres: {_genres(m)}\n"
            f"- Budget: {_money_m(m.budget)}\n"
            f"- Revenue: {_money_m(m.revenue)}\n"
            f"- Runtime: {runtime}\n"
            f"- Rating: {rating}/5\n"
            f"- Overview: {m.overview or 'No description'}"
        )
    return "Compare these movies:\n\n" + "\n\n".join(blocks)
