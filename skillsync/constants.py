import os

from dotenv import load_dotenv

load_dotenv()

# Datastore
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./skillsync.db")

# Recruiting platform
FLOCAREER_API_URL = os.getenv("FLOCAREER_API_URL", "https://sandbox.flocareer.com/dynamic/corporate")
FLOCAREER_TIMEOUT = float(os.getenv("FLOCAREER_TIMEOUT", "30"))

# AI completion providers
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "120"))
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-pro")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "mistral:latest")

# Sync and regeneration
SYNC_CHUNK_SIZE = int(os.getenv("SYNC_CHUNK_SIZE", "25"))
REGENERATION_STRATEGY = os.getenv("REGENERATION_STRATEGY", "replace")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Canned audit labels
DISLIKE_REASON = "Disliked question"
FEEDBACK_REASON = "Feedback regeneration"
SKILL_REGENERATION_REASON = "Skill questions regeneration"

DEFAULT_QUESTION_FORMAT = "Scenario"
