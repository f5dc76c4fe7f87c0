"""
Backend src ShambaSmart — Routeur conversationnel multi-canal.

Couches (de bas en haut) :
  core/          → Fondations (settings, database, logger, rate limiting)
  utils/         → Fonctions pures (analyse de requête, validation, SMS)
  services/      → Accès externe (LLM, historique, cache, météo, sol, marché)
  tools/         → Base de connaissances locale (ravageurs, maladies, calendriers)
  agents/        → Générateurs thématiques (pipeline partagé + stratégies)
  orchestrator/  → Classification d'intention, dispatch, fusion, traduction
  channels/      → Adaptateurs de transport (SMS, WhatsApp, USSD, voix, web)
  api/           → Routes HTTP (FastAPI)
  main.py        → Point d'entrée FastAPI (lifecycle, middlewares, routes)

Règle d'import : chaque couche n'importe que les couches en-dessous.
"""
