import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your_secret_key_here'
    SUPABASE_URL = os.environ.get('SUPABASE_URL')
    SUPABASE_KEY = os.environ.get('SUPABASE_KEY') or os.environ.get('SUPABASE_ANON_KEY')
    STORAGE_BUCKET = os.environ.get('STORAGE_BUCKET') or 'images'
    BABEL_DEFAULT_LOCALE = 'en'
    CURRENCY = os.environ.get('CURRENCY') or 'USD'
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'

    PRODUCTS_PER_PAGE = 5
    ORDERS_PER_PAGE = 10
    RECENT_ACTIVITY_LIMIT = 5
    VERIFY_IMAGE_URLS = os.environ.get('VERIFY_IMAGE_URLS', '1') != '0'

    # auth helper (seconds)
    AUTH_SESSION_CHECK_INTERVAL = 30
    AUTH_MAX_RETRIES = 2
    AUTH_INITIAL_DELAY = 0.5
    AUTH_BACKOFF_BASE = 2.0
    AUTH_BACKOFF_MAX = 15.0
    AUTH_REFRESH_MARGIN = 60
