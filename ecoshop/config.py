# ecoshop.config
from pathlib import Path
import os
from urllib.parse import urlparse
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale de l'application.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, Redis, Resend)
- Fournit les URLs de redirection par défaut du checkout
- Paramètre le worker d'événements (tentatives, attente) et les jobs planifiés
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name)) or default)
    except ValueError:
        return default

APP_ENV = _clean_env(os.getenv("APP_ENV") or "development").lower()
IS_PRODUCTION = APP_ENV == "production"

# Supabase: URL et clés (anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")
SUPABASE_IMAGES_BUCKET = _clean_env(os.getenv("SUPABASE_IMAGES_BUCKET") or "product-images")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Images produit: hôtes autorisés au téléchargement (par défaut le Storage Supabase) et taille max
IMAGE_ALLOWED_HOSTS = [
    h.strip().lower() for h in _clean_env(os.getenv("IMAGE_ALLOWED_HOSTS")).split(",") if h.strip()
] or ([urlparse(SUPABASE_URL).hostname] if SUPABASE_URL else [])
MAX_IMAGE_BYTES = _int_env("MAX_IMAGE_BYTES", 10 * 1024 * 1024)

# Cookies / sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
SESSION_COOKIE_NAME = "sb_access"
SELLER_ROLES = [r.strip() for r in os.getenv("SELLER_ROLES", "seller,admin").split(",") if r.strip()]

# CORS / hôtes
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]
# Proxys dont les en-têtes x-forwarded-* sont crus (IP client, schéma); "*" derrière un load balancer de plateforme
TRUSTED_PROXIES = [p.strip() for p in os.getenv("TRUSTED_PROXIES", "127.0.0.1").split(",") if p.strip()]

# Stripe: clé secrète, secret webhook et devise des sessions
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_CURRENCY = _clean_env(os.getenv("STRIPE_CURRENCY") or "usd").lower()
SHIPPING_COUNTRIES = [c.strip() for c in os.getenv("SHIPPING_COUNTRIES", "US,CA,GB,AU").split(",") if c.strip()]

# Pages de succès/annulation du checkout (relatives à BASE_URL)
BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:3000").rstrip("/")
CHECKOUT_SUCCESS_PATH = os.getenv("CHECKOUT_SUCCESS_PATH", "/checkout/success?session_id={CHECKOUT_SESSION_ID}")
CHECKOUT_CANCEL_PATH = os.getenv("CHECKOUT_CANCEL_PATH", "/checkout/cancel")

# Redis: file d'événements + cache des taux; le rate limit peut pointer ailleurs
REDIS_URL = _clean_env(os.getenv("REDIS_URL") or "redis://127.0.0.1:6379/0")
RATE_LIMIT_REDIS_URL = _clean_env(os.getenv("RATE_LIMIT_REDIS_URL") or REDIS_URL)

# Worker d'événements
EVENTS_MAX_ATTEMPTS = _int_env("EVENTS_MAX_ATTEMPTS", 5)
EVENTS_POLL_BLOCK_MS = _int_env("EVENTS_POLL_BLOCK_MS", 5000)
EVENTS_BATCH_SIZE = _int_env("EVENTS_BATCH_SIZE", 10)
# Entrées en attente chez un autre consommateur (worker remplacé) reprises après ce délai
EVENTS_CLAIM_IDLE_MS = _int_env("EVENTS_CLAIM_IDLE_MS", 60000)

# E-mails transactionnels (API HTTP Resend)
RESEND_API_KEY = _clean_env(os.getenv("RESEND_API_KEY") or "")
RESEND_FROM_EMAIL = _clean_env(os.getenv("RESEND_FROM_EMAIL") or "onboarding@resend.dev")
SITE_NAME = os.getenv("SITE_NAME", "EcoShop")

# Jobs planifiés
EXCHANGE_RATES_URL = _clean_env(os.getenv("EXCHANGE_RATES_URL") or "https://open.er-api.com/v6/latest/USD")
SUPPORTED_CURRENCIES = [c.strip().upper() for c in os.getenv("SUPPORTED_CURRENCIES", "USD,EUR,TRY").split(",") if c.strip()]
CART_TTL_DAYS = _int_env("CART_TTL_DAYS", 30)

# Suivi des erreurs (Sentry): désactivé sans DSN
SENTRY_DSN = _clean_env(os.getenv("SENTRY_DSN") or "")
SENTRY_TRACES_SAMPLE_RATE = float(_clean_env(os.getenv("SENTRY_TRACES_SAMPLE_RATE")) or 0)
