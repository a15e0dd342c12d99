import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET') or os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None

    FIREBASE_STORAGE_BUCKET = os.environ.get('FIREBASE_STORAGE_BUCKET', '')
    FIREBASE_WEB_API_KEY = os.environ.get('FIREBASE_WEB_API_KEY')

    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'eventlet')
    CHAT_TOKEN_MAX_AGE = int(os.environ.get('CHAT_TOKEN_MAX_AGE', 12 * 60 * 60))

    STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY')
    STRIPE_PUBLIC_KEY = os.environ.get('STRIPE_PUBLIC_KEY')
    PAYMENT_CURRENCY = os.environ.get('PAYMENT_CURRENCY', 'usd')

    PROFILE_PICTURE_MAX_BYTES = 10 * 1024 * 1024
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
