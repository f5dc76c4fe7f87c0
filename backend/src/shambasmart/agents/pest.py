"""Ravageurs et maladies des plantes — table locale, lutte intégrée."""

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


def build_pest_prompt(request: TopicRequest) -> str:
    ctx, user, local = request.context, request.context.user, request.toolkit.local
    crop = ctx.crop or (user.crops[0] if user.crops else "crops")
    region = ctx.region or user.county or "Kenya"

    pests = local.search_pests(request.query, ctx.crop or (user.crops[0] if user.crops else None))
    pest_info = local.format_pests(pests) if pests else (
        "No specific pest data found in database - use general knowledge"
    )

    return f"""FARMER CONTEXT:
- Crop: {crop}
- Location: {ctx.location_line()}
- Region: {region}

PEST DATABASE:
{pest_info}

ADDITIONAL KNOWLEDGE BASE:
{knowledge_block(request.passages, 'General pest and disease knowledge')}

FARMER'S QUESTION/DESCRIPTION: "{request.query}"

{history_block(request.history, "Use this context to understand if this is a follow-up about a previously discussed pest/disease issue.")}{analysis_block(request.analysis)}INSTRUCTIONS:
1. If the pest/disease matches the database, reference it and use the control methods provided
2. If symptoms are unclear, list the likely causes for this crop and region
3. Prioritise organic and Integrated Pest Management (IPM) methods suitable for {region}
4. Give product recommendations only with safety warnings, and include treatment timing
5. Include prevention strategies against future outbreaks

{DIRECT_ANSWER}

{format_block(request.analysis, ["Identification of the pest/disease", "Symptoms confirmation", "Control measures (organic/IPM first)", "Prevention strategies"])}

{RESPOND_IN_PIVOT}"""


PEST_STRATEGY = TopicStrategy(
    name="pest",
    build_prompt=build_pest_prompt,
    system_instructions=system_instructions.PEST_DETECTION,
    apology=(
        "I apologize, but I encountered an error processing your pest/disease question. "
        "Please describe the symptoms in more detail or contact an extension officer."
    ),
)
