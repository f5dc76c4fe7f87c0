"""
Blocs de prompt communs aux générateurs.

Chaque générateur compose son prompt avec ces blocs : contexte de
l'agriculteur, données, question, historique (3 derniers tours) et
consignes de longueur issues de l'analyse de la requête.
"""

from typing import Optional, Sequence

from shambasmart.orchestrator.state import ConversationTurn
from shambasmart.utils.query_analyzer import QueryAnalysis, length_band

PROMPT_HISTORY_TURNS = 3

DIRECT_ANSWER = (
    'IMPORTANT: Provide a direct response without repeating the question or using '
    '"Question:" or "Answer:" labels. Just give the advice directly.'
)

RESPOND_IN_PIVOT = "Respond in English with clear, well-structured advice."


def knowledge_block(passages: Sequence[str], default: str) -> str:
    return "\n\n".join(passages) if passages else default


def history_block(
    history: Optional[Sequence[ConversationTurn]],
    note: str,
    user_label: str = "Farmer",
    assistant_label: str = "You",
) -> str:
    """Derniers tours rendus « Farmer: … / You: … ». Vide si pas d'historique."""
    if not history:
        return ""
    lines = [
        f"{user_label if turn['role'] == 'user' else assistant_label}: {turn['content']}"
        for turn in list(history)[-PROMPT_HISTORY_TURNS:]
    ]
    return "CONVERSATION CONTEXT:\n" + "\n".join(lines) + f"\n\n{note}\n\n"


def analysis_block(analysis: Optional[QueryAnalysis]) -> str:
    if analysis is None:
        return ""
    band = length_band(analysis)
    lines = [
        "QUERY ANALYSIS:",
        f"- Complexity: {analysis.complexity}",
        f"- Type: {analysis.type}",
        f"- Recommended response length: {analysis.estimated_response_length} "
        f"({band['min']}-{band['max']} words, target {band['target']})",
    ]
    if analysis.urgency == "high":
        lines.append("- Urgency: HIGH. Start with the immediate action the farmer must take.")
    if analysis.complexity == "simple":
        lines.append("\nIMPORTANT: This is a simple query. Provide a brief, concise answer "
                     "(2-4 sentences). Do not provide excessive detail.")
    elif analysis.complexity == "complex":
        lines.append("\nIMPORTANT: This is a complex query. Provide comprehensive, "
                     "detailed information with examples.")
    return "\n".join(lines) + "\n\n"


def format_block(analysis: Optional[QueryAnalysis], sections: Sequence[str]) -> str:
    """Consigne de mise en forme : brève pour une requête simple, sinon sections."""
    if analysis is not None and analysis.complexity == "simple":
        return "Format: Brief, friendly response (2-4 sentences maximum)."
    return "Format your response with:\n" + "\n".join(f"- {s}" for s in sections)
