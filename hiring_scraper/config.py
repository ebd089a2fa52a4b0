import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()

# LMM API configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or os.getenv("OPENAI_KEY")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
LMM_MODEL = os.getenv("LMM_MODEL", "gpt-4")
LMM_TEMPERATURE = float(os.getenv("LMM_TEMPERATURE", "0.2"))
LMM_MAX_TOKENS = int(os.getenv("LMM_MAX_TOKENS", "4096"))

# Chunking configuration
MAX_UNIT_SIZE = int(os.getenv("MAX_UNIT_SIZE", "30000"))  # keeps a unit under GPT-4's context window
SIMPLE_CHUNK_SIZE = int(os.getenv("SIMPLE_CHUNK_SIZE", "30000"))

# Concurrent extraction configuration
MAX_CONCURRENT_REQUESTS = int(os.getenv("MAX_CONCURRENT_REQUESTS", "4"))
STAGGER_DELAY = float(os.getenv("STAGGER_DELAY", "0.5"))  # seconds between worker starts
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "1.0"))
RETRY_MAX_DELAY = float(os.getenv("RETRY_MAX_DELAY", "60.0"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "5"))  # total attempts per unit

# Fetch configuration
FETCH_TIMEOUT = int(os.getenv("FETCH_TIMEOUT", "30"))
THREAD_URL_TEMPLATE = "https://news.ycombinator.com/item?id={item_id}"

# Paths
PROMPT_PATH = os.getenv(
    "PROMPT_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompts", "who_is_hiring.txt"),
)
KEYWORDS_PATH = os.getenv("KEYWORDS_PATH")

DEFAULT_KEYWORDS = [
    "react", "reactjs", "react.js",
    "vue", "vuejs", "vue.js",
    "go", "golang", "go-lang",
    "javascript", "js",
    "typescript", "ts",
    "aws", "amazon web services",
    "node", "nodejs", "node.js",
    "next", "nextjs", "next.js",
    "angular", "angularjs",
    "svelte", "sveltekit",
    "express", "expressjs",
    "postgresql", "postgres",
    "mongodb", "mongo",
    "docker",
    "kubernetes", "k8s",
    "graphql",
]


def resolve_work_dir() -> Path:
    """Writable directory for artifacts: /tmp inside AWS Lambda, logs/ locally."""
    if os.getenv("WORK_DIR"):
        return Path(os.environ["WORK_DIR"])
    if os.getenv("AWS_LAMBDA_RUNTIME_API"):
        return Path("/tmp")
    return Path("logs")


def load_keywords(path: Optional[str] = None) -> List[str]:
    """
    Load the interest keywords.

    Args:
        path: Newline separated keyword file. Blank lines and lines starting
            with '#' are ignored. Falls back to KEYWORDS_PATH, then to
            DEFAULT_KEYWORDS.

    Returns:
        List of lower-cased keywords
    """
    path = path or KEYWORDS_PATH
    if not path:
        return list(DEFAULT_KEYWORDS)

    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise ConfigurationError(f"Cannot read keyword file {path}: {e}") from e

    keywords = [line.strip().lower() for line in lines]
    return [k for k in keywords if k and not k.startswith("#")]


def load_prompt(path: Optional[str] = None) -> str:
    """Read the extraction system prompt."""
    path = path or PROMPT_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read().strip()
    except OSError as e:
        raise ConfigurationError(f"Cannot read prompt file {path}: {e}") from e
