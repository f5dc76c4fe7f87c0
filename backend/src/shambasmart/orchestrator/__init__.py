"""
Orchestrator — routage conversationnel ShambaSmart.

- AgentOrchestrator : intention → générateurs → fusion → traduction
- IntentClassifier  : classification IA + repli par mots-clés
- UserContext       : contexte agricole partagé par les générateurs
"""

# Imports lazy pour éviter les imports circulaires avec agents/
# Usage: from shambasmart.orchestrator.orchestrator import AgentOrchestrator
