from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

# Deployment configuration
# APP_ENV=production enables the strict base URL and CSRF rules
APP_ENV = config.get("APP_ENV", "development")
IS_PRODUCTION = APP_ENV.strip().lower() == "production"
LOG_LEVEL = config.get("LOG_LEVEL", "info")

# Backend API base URL (validated lazily by config.base_url)
API_URL = config.get("API_URL", None)

# Request timeout in seconds for a single network call
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 30.0)

# Rate limit (HTTP 429) retry policy
# Server-side limits: 100 req/min global, 10 req/5min on auth, 30 req/min on search
RATE_LIMIT_MAX_RETRIES = config.get("RATE_LIMIT_MAX_RETRIES", 3)
RATE_LIMIT_BASE_DELAY = config.get("RATE_LIMIT_BASE_DELAY", 1.0)
RATE_LIMIT_MAX_DELAY = config.get("RATE_LIMIT_MAX_DELAY", 30.0)
RATE_LIMIT_JITTER_FACTOR = config.get("RATE_LIMIT_JITTER_FACTOR", 0.2)

# Renew bearer tokens this many seconds before they expire
TOKEN_REFRESH_BUFFER = config.get("TOKEN_REFRESH_BUFFER", 300)

# Identity provider (OAuth2 refresh token grant)
OAUTH_TOKEN_URL = config.get("OAUTH_TOKEN_URL", None)
OAUTH_CLIENT_ID = config.get("OAUTH_CLIENT_ID", "")
OAUTH_SCOPES = config.get_list("OAUTH_SCOPES", ["openid", "profile", "email"])
OAUTH_REFRESH_TOKEN = config.get("OAUTH_REFRESH_TOKEN", None)
OAUTH_TIMEOUT = config.get("OAUTH_TIMEOUT", 30.0)

# Long-lived bearer token (takes precedence over the refresh token grant)
API_ACCESS_TOKEN = config.get("API_ACCESS_TOKEN", None)

# Anti-forgery token sent on state-changing requests
CSRF_TOKEN = config.get("CSRF_TOKEN", None)
CSRF_COOKIE_NAME = config.get("CSRF_COOKIE_NAME", "XSRF-TOKEN")
