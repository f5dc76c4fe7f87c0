"""Météo et climat — prévision Open-Meteo de la région (défaut : Nairobi)."""

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

DEFAULT_REGION = "Nairobi"


def build_climate_prompt(request: TopicRequest) -> str:
    ctx, user, toolkit = request.context, request.context.user, request.toolkit
    region = ctx.region or user.county or DEFAULT_REGION

    forecast = None
    if toolkit.weather is not None:
        forecast = toolkit.enrich("Weather", toolkit.weather.get_forecast, region)
    weather_info = forecast.summary() if forecast is not None else "Weather data not available - use seasonal knowledge"

    return f"""FARMER CONTEXT:
- Location: {ctx.location_line()}
- Region/County: {region}

CURRENT WEATHER DATA:
{weather_info}

RELEVANT KNOWLEDGE BASE:
{knowledge_block(request.passages, 'General agricultural knowledge')}

FARMER'S QUESTION: "{request.query}"

{history_block(request.history, "Use this context to understand if this is a follow-up about weather or farming timing.")}{analysis_block(request.analysis)}INSTRUCTIONS:
1. Interpret the weather data for {region} and give location-based forecasts
2. Give farming recommendations based on current and forecasted weather
3. Highlight alerts for extreme conditions (drought, floods, heat stress)
4. Provide seasonal planting/harvesting advice for {region}
5. Be specific about timing and conditions

{DIRECT_ANSWER}

{format_block(request.analysis, ["Current weather conditions", "Forecast for the coming days", "Farming recommendations", "Alerts for extreme conditions"])}

{RESPOND_IN_PIVOT}"""


CLIMATE_STRATEGY = TopicStrategy(
    name="climate",
    build_prompt=build_climate_prompt,
    system_instructions=system_instructions.CLIMATE_ALERT,
    apology="I apologize, but I encountered an error getting weather information. Please try again later.",
)
