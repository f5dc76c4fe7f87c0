"""
API — surface HTTP FastAPI.

- routes       : chat web, historique, localisation, santé, stats cache
- webhooks     : SMS, WhatsApp, USSD, voix
- dependencies : ServiceContainer (lazy singleton)
"""
