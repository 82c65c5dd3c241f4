# Review Requests - Customer Review Request & Attribution Pipeline
# =================================================================
# Layered architecture:
#
# ARCHITECTURE LAYERS:
# - Presentation:   FastAPI routes and the campaign CLI (web/, run_campaign.py)
# - Application:    Use cases and orchestration (ingest, dispatch, tracking, attribution)
# - Domain:         Pure business logic (models, name matching, funnel stats)
# - Infrastructure: External services (SQLite store, SMTP transport, file parsing)
#
# Every use case receives its store and transport explicitly, so any
# infrastructure piece can be swapped (e.g. SQLite for Postgres, SMTP for an API).
