"""
Appui-conseil — questions générales des agriculteurs et des agents de
vulgarisation. Pas d'instructions système.

La longueur suit l'analyse de la question, comme les autres thèmes ; une
requête très courte sans mot interrogatif est traitée comme simple.
"""

import re
from dataclasses import replace

from shambasmart.agents.base import TopicRequest, TopicStrategy
from shambasmart.agents.prompts import (
    DIRECT_ANSWER,
    RESPOND_IN_PIVOT,
    analysis_block,
    format_block,
    history_block,
)

_DETAIL_WORDS = re.compile(r"\b(how|what|when|where|why|tell me|explain|describe|list|provide)\b")


def is_short_request(query: str) -> bool:
    """Moins de 30 caractères, sans « ? » ni mot interrogatif."""
    text = query.lower().strip()
    return len(text) < 30 and "?" not in text and not _DETAIL_WORDS.search(text)


def build_extension_prompt(request: TopicRequest) -> str:
    analysis = request.analysis
    if is_short_request(request.query) and analysis.complexity != "simple":
        analysis = replace(analysis, complexity="simple", estimated_response_length="short")
    brief = analysis.complexity == "simple"

    return f"""You are an AI assistant supporting farmers and agricultural extension officers in Kenya.

Relevant Knowledge Base:
{chr(10).join(request.passages) or 'No specific data found - use general knowledge'}

Question: "{request.query}"

{history_block(request.history, "Use this context to understand if this is a follow-up question.")}{analysis_block(analysis)}INSTRUCTIONS:
1. {'Answer briefly and warmly.' if brief else 'Give detailed technical information and best practices.'}
2. Point to further support when useful (county extension office, KALRO, cooperatives)
3. If this is a follow-up, build on the previous discussion

{DIRECT_ANSWER}

{format_block(analysis, ["Short answer first", "Practical steps or guidelines", "Where to get further support"])}

{RESPOND_IN_PIVOT}"""


EXTENSION_STRATEGY = TopicStrategy(
    name="extension",
    build_prompt=build_extension_prompt,
    apology="I apologize, but I encountered an error. Please contact your county extension office.",
)
