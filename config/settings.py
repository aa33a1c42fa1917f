import os
from dotenv import load_dotenv

load_dotenv()

# Fallback (single-shot) path, via LangChain
LLM_API_KEY = os.getenv("LLM_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "openai/gpt-4o-mini")
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openrouter")  # openrouter | openai | anthropic
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://openrouter.ai/api/v1")

# Agentic path (Gemini Interactions API)
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
AGENT_MODEL = os.getenv("AGENT_MODEL", "gemini-3-pro-preview")
INTERACTIONS_URL = os.getenv(
    "INTERACTIONS_URL", "https://generativelanguage.googleapis.com/v1beta/interactions"
)
USE_AGENTIC_API = os.getenv("USE_AGENTIC_API", "false").strip().lower() == "true"
AGENT_MAX_TURNS = int(os.getenv("AGENT_MAX_TURNS", "5"))

# Lookup credentials; both optional
SAFE_BROWSING_API_KEY = os.getenv("SAFE_BROWSING_API_KEY", "")
WHOIS_API_KEY = os.getenv("WHOIS_API_KEY", "")

LOOKUP_TIMEOUT_S = float(os.getenv("LOOKUP_TIMEOUT_S", "8"))
LLM_TIMEOUT_S = float(os.getenv("LLM_TIMEOUT_S", "90"))
