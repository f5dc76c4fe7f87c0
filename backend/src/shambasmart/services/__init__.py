"""
Services — accès externes et persistance.

- generation / llm_clients : LLM avec repli entre fournisseurs
- translator               : traduction via la langue pivot
- retriever                : connaissances locales + recherche vectorielle
- history_store            : utilisateurs, messages, alertes
- weather / soil / market / location : données externes
- alerts                   : alertes proactives
- utils/                   : cache de réponses (mémoire ou Redis)

Aucun import ici : les modules se chargent à la demande.
"""
