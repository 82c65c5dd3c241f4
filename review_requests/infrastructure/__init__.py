# Infrastructure Layer
# ====================
# Contains all external service integrations:
# - importer/: CSV / Excel customer file parsing (pandas)
# - persistence/: SQLite batch & customer store
# - mailer/: SMTP mail transport
# - config/: Environment and settings management
#
# This layer can be replaced entirely without affecting domain/application layers.
