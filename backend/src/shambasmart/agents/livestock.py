"""Santé animale — table locale des maladies du bétail."""

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


def build_livestock_prompt(request: TopicRequest) -> str:
    ctx, user, local = request.context, request.context.user, request.toolkit.local
    livestock = ", ".join(user.livestock) or "livestock"
    region = ctx.region or user.county or "Kenya"

    diseases = local.search_livestock_diseases(request.query, user.livestock[0] if user.livestock else None)
    disease_info = local.format_diseases(diseases) if diseases else (
        "No specific disease data found in database - use general knowledge"
    )

    return f"""FARMER CONTEXT:
- Livestock Type: {livestock}
- Location: {ctx.location_line()}
- Region: {region}

LIVESTOCK DISEASE DATABASE:
{disease_info}

ADDITIONAL KNOWLEDGE BASE:
{knowledge_block(request.passages, 'General livestock health knowledge')}

FARMER'S QUESTION: "{request.query}"

{history_block(request.history, "Use this context to understand if this is a follow-up about a previously discussed livestock issue.")}{analysis_block(request.analysis)}INSTRUCTIONS:
1. If the disease matches the database, reference it and use the treatment provided
2. Cover identification, treatment (cost-effective first), prevention, feeding and management in {region}
3. Include dosages, timing and safety precautions
4. Say clearly when to consult a veterinary officer
5. Be empathetic and supportive

{DIRECT_ANSWER}

{format_block(request.analysis, ["Disease/issue identification", "Treatment options", "Prevention strategies", "Feeding and nutrition advice", "When to consult a vet"])}

{RESPOND_IN_PIVOT}"""


LIVESTOCK_STRATEGY = TopicStrategy(
    name="livestock",
    build_prompt=build_livestock_prompt,
    system_instructions=system_instructions.LIVESTOCK_HEALTH,
    apology=(
        "I apologize, but I encountered an error processing your livestock question. "
        "Please consult a local veterinary officer."
    ),
)
