from decouple import config

DEFAULT_CURRENCY = config("DEFAULT_CURRENCY", "CAD")
STRIPE_SECRET_KEY = config("STRIPE_SECRET_KEY", default="sk_test_...")
STRIPE_PUBLISHABLE_KEY = config("STRIPE_PUBLISHABLE_KEY", default="pk_test_...")
# Seconds before a Stripe API request is abandoned.
STRIPE_TIMEOUT_SECONDS = config("STRIPE_TIMEOUT_SECONDS", cast=int, default=15)
STRIPE_MAX_NETWORK_RETRIES = config("STRIPE_MAX_NETWORK_RETRIES", cast=int, default=2)
