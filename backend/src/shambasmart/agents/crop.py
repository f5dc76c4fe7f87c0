"""
Conseiller cultures — calendrier de semis, sols, conduite de culture.

Enrichissement : profil de sol SoilGrids (borné par le timeout
d'enrichissement) uniquement si la question n'est pas simple ou
demande du détail.
"""

from shambasmart.agents import system_instructions
from shambasmart.agents.base import TopicRequest, TopicStrategy
from shambasmart.agents.prompts import (
    DIRECT_ANSWER,
    RESPOND_IN_PIVOT,
    analysis_block,
    format_block,
    history_block,
)
from shambasmart.services.soil import format_soil


def _coordinates(request: TopicRequest):
    user = request.context.user
    if request.context.coordinates:
        return request.context.coordinates
    if user.latitude is not None and user.longitude is not None:
        return user.latitude, user.longitude
    return None


def build_crop_prompt(request: TopicRequest) -> str:
    ctx, user, toolkit, analysis = request.context, request.context.user, request.toolkit, request.analysis
    crop = ctx.crop or (user.crops[0] if user.crops else "general crops")
    region = ctx.region or user.county or "Kenya"
    soil_type = ctx.soil_type or user.soil_type or "unknown"

    calendar_info = toolkit.local.format_calendar(toolkit.local.planting_calendar(region))
    soil_tips = toolkit.local.format_soil_tips(toolkit.local.soil_tips)

    soil_data = ""
    if toolkit.soil is not None and (analysis.complexity != "simple" or analysis.requires_detail):
        properties = toolkit.enrich("Soil", toolkit.soil.get_properties, region, _coordinates(request))
        if properties is not None:
            soil_data = format_soil(properties)

    data = []
    if calendar_info:
        data.append(f"PLANTING CALENDAR FOR {region.upper()}:\n{calendar_info}")
    if soil_data:
        data.append(f"REAL-TIME SOIL DATA (ISRIC SoilGrids):\n{soil_data}")
    if soil_tips:
        data.append(f"SOIL MANAGEMENT TIPS:\n{soil_tips}")
    if request.passages:
        data.append("ADDITIONAL KNOWLEDGE BASE:\n" + "\n\n".join(request.passages))

    brief = analysis.complexity == "simple"
    return f"""FARMER CONTEXT:
- Crop: {crop}
- Location: {ctx.location_line()}
- Region/County: {region}
- Soil Type: {soil_type}
- Farm Stage: {ctx.farm_stage or 'general'}

RELEVANT DATA SOURCES:
{chr(10).join(data) if data else 'No specific data found - use general knowledge'}

FARMER'S QUESTION: "{request.query}"

{history_block(request.history, "Use this conversation history to understand follow-up questions, keep continuity and avoid repeating advice already given.")}{analysis_block(analysis)}INSTRUCTIONS:
1. Analyze the question carefully; if it is a follow-up, use the conversation context
2. Use the planting calendar and soil data above when they apply to {region}
3. Give practical, actionable advice suited to the farm stage
4. Prefer affordable, locally available inputs and give quantities and timings
5. {'Keep your response brief and to the point.' if brief else 'Provide comprehensive but well-structured answers.'}

{DIRECT_ANSWER}

{format_block(analysis, ["Clear headings for different sections", "Numbered or bulleted lists for steps", "Specific recommendations"])}

{RESPOND_IN_PIVOT}"""


CROP_STRATEGY = TopicStrategy(
    name="crop",
    build_prompt=build_crop_prompt,
    system_instructions=system_instructions.CROP_ADVISOR,
    apology=(
        "I apologize, but I encountered an error processing your crop question. "
        "Please try rephrasing or contact an extension officer."
    ),
)
