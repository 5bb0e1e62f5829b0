from app.domain.services.constants import VARIANT_PERSONALIZED, VARIANT_TRENDING

def system_prompt() -> str:
    return "You are a ranking model for PERSONALIZED PRODUCT RECOMMENDATIONS. Return strict JSON only."

def user_task(variant: str) -> str:
    output_format = (
        '{"user_id":"<from USER.user_id>","results":['
        '{"product_id":"<candidate.product_id>","score":0.000}]}'
    )

    constraints = (
        "RULES:\n"
        "- Use ONLY provided CONTEXT\n"
        "- Only product_ids from CANDIDATES\n"
        "- Scores: 0.0-1.0 non-increasing\n"
        "- Format: strict JSON"
    )

    # Variant only nudges the tie-breaking; the user profile drives the ranking
    if variant == VARIANT_TRENDING:
        emphasis = "+0.20: Newer products when relevance is comparable\n"
    elif variant == VARIANT_PERSONALIZED:
        emphasis = "+0.20: Candidates bought by similar users (source=collaborative)\n"
    else:
        emphasis = ""

    return (
        "Rank CANDIDATES by how likely the USER is to click them.\n\n"
        "SCORING:\n"
        "+0.50: Matches categories the USER buys or views most\n"
        "+0.30: Complements products the USER recently viewed\n" +
        emphasis +
        "-0.30: Near-duplicate of something the USER already owns\n\n" +
        constraints + "\n\n" +
        "OUTPUT FORMAT: " + output_format
    )
