from typing import Dict, List, Optional, Sequence

from app.domain.models.product import Candidate, Product, UserProfile

SYSTEM_PROMPT_PRODUCT = (
    "You are an AI shopping assistant specialized in product recommendations. "
    "Analyze products and provide intelligent upsell suggestions. Return strict JSON only."
)
SYSTEM_PROMPT_CART = (
    "You are an AI shopping assistant specialized in cart-based product recommendations. "
    "Analyze cart contents and provide intelligent cross-sell and upsell suggestions. Return strict JSON only."
)

# Compact output format shared by every variant
OUTPUT_FORMAT = (
    "Return ONLY a valid JSON array in this EXACT format (productId must be a NUMBER):\n"
    "[\n"
    '  {"productId": 7708018999350, "reason": "Brief explanation", '
    '"confidence": 0.85, "recommendationType": "complementary"}\n'
    "]\n"
    'Valid recommendationType values: "complementary", "similar", "upgrade", "bundle"\n'
    "Return ONLY the JSON array, nothing else."
)

ID_RULES = (
    "- Use the EXACT ProductID numbers shown in the candidate list\n"
    "- Do NOT make up product IDs\n"
    "- Never recommend the same ProductID twice"
)


def system_prompt(context: str) -> str:
    return SYSTEM_PROMPT_CART if context == "cart" else SYSTEM_PROMPT_PRODUCT


def _describe(p: Product) -> str:
    lines = [
        f"- Title: {p.title}",
        f"- Category: {p.category or 'N/A'}",
        f"- Brand: {p.brand or 'N/A'}",
        f"- Price: ${p.price}",
    ]
    if p.keywords:
        lines.append(f"- Keywords: {', '.join(p.keywords[:10])}")
    return "\n".join(lines)


def _candidate_block(candidates: Sequence[Candidate]) -> str:
    rows = []
    for i, c in enumerate(candidates, 1):
        p = c.product
        label = "SAME TYPE" if c.same_type else "OTHER TYPE"
        rows.append(
            f"{i}. ProductID: {p.product_id} [{label}]\n"
            f"   Title: {p.title}\n"
            f"   Category: {p.category or 'N/A'}\n"
            f"   Brand: {p.brand or 'N/A'}\n"
            f"   Price: ${p.price}"
        )
    return "\n".join(rows)


def _profile_block(profile: UserProfile, titles: Dict[str, str]) -> str:
    parts = []
    if profile.browsed:
        parts.append("Products this shopper spent the most time viewing (last 30 days):")
        for b in profile.browsed:
            title = b.title or titles.get(b.product_id, "")
            parts.append(f"- ProductID {b.product_id}: {title} ({int(b.total_time_seconds)}s)")
    if profile.carted:
        parts.append("Products this shopper added to past carts (last 30 days):")
        for c in profile.carted:
            parts.append(f"- ProductID {c.product_id}: {titles.get(c.product_id, '')} (in {c.count} carts)")
    return "\n".join(parts)


def _rules(limit: int, *, personalized: bool, cart: bool) -> str:
    if not personalized:
        return (
            "SELECTION RULES:\n"
            f"1. Select ONLY products labelled [SAME TYPE] {'as an item in the cart' if cart else 'as the current product'}\n"
            "2. If there are not enough, use products from the same category\n"
            f"3. If still not enough, use any other product, so that you ALWAYS return exactly {limit} products\n"
            + ("4. Spread the picks across the different product types in the cart\n" if cart else "")
            + ID_RULES
        )
    half = max(limit // 2, 1)
    rest = max(limit - half, 0)
    return (
        "SELECTION RULES (personalized):\n"
        f"1. About {half} products must be [SAME TYPE] {'as the cart items' if cart else 'as the current product'}\n"
        f"2. About {rest} products must relate to the shopper's browsing and cart history below\n"
        "3. Cross-type picks are allowed for the history-based half\n"
        f"4. ALWAYS return exactly {limit} products\n"
        + ("5. Spread the picks across the different product types in the cart\n" if cart else "")
        + ID_RULES
    )


def build_product_prompt(
    subject: Product,
    candidates: Sequence[Candidate],
    limit: int,
    profile: Optional[UserProfile] = None,
) -> str:
    """Deterministic prompt for a single viewed product, with or without a profile."""
    personalized = bool(profile and profile.has_history)
    titles = {c.product.product_id: c.product.title for c in candidates}
    sections: List[str] = [
        f"Analyze the following products and recommend the best {limit} upsell products for the current product.",
        "CURRENT PRODUCT:\n" + _describe(subject),
    ]
    if personalized:
        sections.append("SHOPPER PROFILE:\n" + _profile_block(profile, titles))
    sections += [
        "CANDIDATE PRODUCTS - You MUST select from these products using their EXACT ProductID number:\n"
        + _candidate_block(candidates),
        _rules(limit, personalized=personalized, cart=False),
        OUTPUT_FORMAT,
    ]
    return "\n\n".join(sections)


def build_cart_prompt(
    cart_products: Sequence[Product],
    candidates: Sequence[Candidate],
    limit: int,
    profile: Optional[UserProfile] = None,
) -> str:
    """Deterministic prompt for a whole cart, with or without a profile."""
    personalized = bool(profile and profile.has_history)
    titles = {c.product.product_id: c.product.title for c in candidates}
    cart_lines = "\n".join(f"{i}. {p.title}\n" + _describe(p) for i, p in enumerate(cart_products, 1))
    sections: List[str] = [
        f"Analyze the following cart contents and recommend the best {limit} products to complete the purchase.",
        f"CART CONTENTS ({len(cart_products)} items):\n{cart_lines}",
    ]
    if personalized:
        sections.append("SHOPPER PROFILE:\n" + _profile_block(profile, titles))
    sections += [
        "CANDIDATE PRODUCTS - You MUST select from these products using their EXACT ProductID number:\n"
        + _candidate_block(candidates),
        _rules(limit, personalized=personalized, cart=True),
        OUTPUT_FORMAT,
    ]
    return "\n\n".join(sections)
