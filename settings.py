from config.loader import default_config_dir, get_config_loader

# Get the config loader instance
config = get_config_loader()

# Logging
LOG_LEVEL = config.get("LOG_LEVEL", "warning")
DEBUG_LOG_FILE = config.get("DEBUG_LOG_FILE", "bahn_debug.log")

# Keycloak realm of bahn.de (hardcoded client values - the web frontend's public client)
# The realm issues no refresh token and access tokens live for five minutes
KEYCLOAK_BASE_URL = config.get(
    "KEYCLOAK_BASE_URL",
    "https://accounts.bahn.de/auth/realms/db/protocol/openid-connect",
)
CLIENT_ID = "kf_web"
SCOPES = "openid vendo"
# Pre-registered redirect target; the WAF rejects loopback redirects
REAL_REDIRECT_URI = "https://www.bahn.de/.resources/bahn-common-light/webresources/assets/html/auth.v2.html"

# Login strategy: auto, loopback or paste
LOGIN_MODE = config.get("LOGIN_MODE", "auto")
# Set when the provider allow-list accepts http://localhost redirects
LOOPBACK_ALLOWED = config.get("LOOPBACK_ALLOWED", False)

# Timeouts (seconds)
CALLBACK_TIMEOUT = config.get("CALLBACK_TIMEOUT", 120.0)
CALLBACK_SHUTDOWN_TIMEOUT = config.get("CALLBACK_SHUTDOWN_TIMEOUT", 2.0)
SILENT_REFRESH_TIMEOUT = config.get("SILENT_REFRESH_TIMEOUT", 10.0)
TOKEN_EXCHANGE_TIMEOUT = config.get("TOKEN_EXCHANGE_TIMEOUT", 30.0)

# needs_refresh() turns true this many seconds before expiry
REFRESH_WINDOW_SECONDS = 30

# Token storage
CONFIG_DIR = default_config_dir()
TOKEN_FILE = config.get("TOKEN_FILE", str(CONFIG_DIR / "tokens.json"))

# Provider-session cookies used for silent refresh (JSON object name -> value)
COOKIE_FILE = config.get("COOKIE_FILE", str(CONFIG_DIR / "session_cookies.json"))
