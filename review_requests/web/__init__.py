# Presentation Layer
# ==================
# FastAPI JSON API and tracking endpoints (web/app.py).
