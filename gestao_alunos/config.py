"""Application wide configuration constants."""

import os

SUPABASE_URL = os.getenv("SUPABASE_URL", "https://YOUR_PROJECT.supabase.co")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "YOUR_SUPABASE_SERVICE_ROLE_KEY")
# Sign-in key; falls back to the service role key when unset.
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "") or SUPABASE_SERVICE_ROLE_KEY
SUPABASE_ALUNOS_TABLE = os.getenv("SUPABASE_ALUNOS_TABLE", "alunos")
SUPABASE_PROFILES_TABLE = os.getenv("SUPABASE_PROFILES_TABLE", "profiles")

APP_TITLE = os.getenv("APP_TITLE", "Gestão de Alunos")
APP_SERVER_NAME = os.getenv("APP_SERVER_NAME", "127.0.0.1")
APP_SERVER_PORT = int(os.getenv("APP_SERVER_PORT", "7860"))

MIN_PASSWORD_LENGTH = 6
