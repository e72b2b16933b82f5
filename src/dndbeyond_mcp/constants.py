"""D&D Beyond URLs, browser fingerprint, search categories, and output limits."""

# ── URLs ─────────────────────────────────────────────────────────────────────

DDB_BASE = "https://www.dndbeyond.com"
DDB_LOGIN_URL = f"{DDB_BASE}/login"
DDB_CHARACTERS_URL = f"{DDB_BASE}/characters"
DDB_CHARACTER_URL = f"{DDB_BASE}/characters/{{character_id}}"
DDB_CAMPAIGN_URL = f"{DDB_BASE}/campaigns/{{campaign_id}}"
DDB_MY_CAMPAIGNS_URL = f"{DDB_BASE}/my-campaigns"
DDB_LIBRARY_URL = f"{DDB_BASE}/en/library?type=sourcebooks&ownership=owned-shared"
DDB_SOURCES_URL = f"{DDB_BASE}/sources"
DDB_SEARCH_URL = f"{DDB_BASE}/search"
CHARACTER_SERVICE_URL = "https://character-service.dndbeyond.com/character/v5/character/{character_id}"

# Hosts that count as "on site" for navigation and login detection
SITE_HOSTS = frozenset({"www.dndbeyond.com", "dndbeyond.com"})

# Path fragments that mean we're still inside the sign-in flow
LOGIN_PATH_MARKERS = ("/login", "/sign-in")

# Visible control labels that only appear to anonymous visitors
SIGN_IN_LABELS = frozenset({"sign in", "log in"})

# ── Browser Fingerprint ──────────────────────────────────────────────────────

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 800}

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-blink-features=AutomationControlled",
]
CHROMIUM_IGNORE_DEFAULT_ARGS = ["--enable-automation"]

BROWSER_ENGINES = ("chromium", "camoufox")

# ── Search ───────────────────────────────────────────────────────────────────

SEARCH_CATEGORY_PATHS = {
    "spells": "spells",
    "monsters": "monsters",
    "items": "magic-items",
    "races": "races",
    "classes": "classes",
    "feats": "feats",
    "all": "search",
}

# ── Interact ─────────────────────────────────────────────────────────────────

INTERACT_ACTIONS = ("click", "fill", "screenshot")

# ── Output Limits ────────────────────────────────────────────────────────────

BOOK_CHAR_LIMIT = 12000
BOOK_TRUNCATION_NOTICE = "\n\n[Content truncated. Specify a chapter_slug to read a specific section.]"

PAGE_CHAR_LIMIT = 8000
PAGE_TRUNCATION_NOTICE = (
    "\n\n[Content truncated. Use ddb_read_book or a more specific URL to get full content.]"
)
CURRENT_PAGE_TRUNCATION_NOTICE = "\n[truncated]"

# ── Cloudflare Detection ─────────────────────────────────────────────────────

CHALLENGE_TITLES = (
    "just a moment...",
    "checking your browser",
    "attention required! | cloudflare",
)

CHALLENGE_SELECTORS = (
    "#challenge-form",
    "#cf-challenge-running",
    "#challenge-running",
    "iframe[src*='challenges.cloudflare.com']",
)
