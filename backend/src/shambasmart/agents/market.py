"""Marché — prix et tendance du produit, conseils de vente."""

from shambasmart.agents import system_instructions
from shambasmart.agents.base import TopicRequest, TopicStrategy
from shambasmart.agents.prompts import (
    DIRECT_ANSWER,
    RESPOND_IN_PIVOT,
    analysis_block,
    format_block,
    history_block,
    knowledge_block,
)


def build_market_prompt(request: TopicRequest) -> str:
    ctx, user, toolkit = request.context, request.context.user, request.toolkit
    crop = ctx.crop or (user.crops[0] if user.crops else None)
    region = ctx.region or user.county or "Kenya"

    prices = None
    if crop and toolkit.market is not None:
        prices = toolkit.enrich("Market", toolkit.market.get_prices, crop, region)
    market_info = "\n".join(p.describe() for p in prices) if prices else (
        "Market data not available - use general knowledge"
    )
    product = crop or "the product"

    return f"""FARMER CONTEXT:
- Location: {ctx.location_line()}
- Crop/Product: {crop or 'general agricultural products'}
- Region: {region}

MARKET DATA:
{market_info}

RELEVANT KNOWLEDGE BASE:
{knowledge_block(request.passages, 'General market knowledge')}

FARMER'S QUESTION: "{request.query}"

{history_block(request.history, "Use this context to understand if this is a follow-up about market prices or selling strategies.")}{analysis_block(request.analysis)}INSTRUCTIONS:
1. Give current prices if available, or general price ranges for {product} in {region}
2. Explain the price trend and what it means for selling now or later
3. Recommend markets in or near {region} and the best timing for selling
4. Suggest value addition opportunities and practical trading advice
5. Use Kenyan market context (KES prices, local markets)

{DIRECT_ANSWER}

{format_block(request.analysis, ["Current market prices", "Price trends", "Best markets to sell", "Optimal timing for selling", "Value addition opportunities"])}

{RESPOND_IN_PIVOT}"""


MARKET_STRATEGY = TopicStrategy(
    name="market",
    build_prompt=build_market_prompt,
    system_instructions=system_instructions.MARKET_INTELLIGENCE,
    apology=(
        "I apologize, but I encountered an error getting market information. "
        "Please try again later or check with your local market."
    ),
)
