"""API apps, one package per domain (health, sessions, chat)."""
