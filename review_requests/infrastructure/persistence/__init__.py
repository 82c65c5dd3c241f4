from .database import Database, DATABASE_FILE, init_database
