# clubvote/config.py

import os
from datetime import timedelta


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')

    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', 'change-me-in-production-jwt')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=int(os.environ.get('JWT_ACCESS_MINUTES', '30')))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(hours=12)
    JWT_TOKEN_LOCATION = ['headers', 'cookies']
    JWT_COOKIE_CSRF_PROTECT = False
    JWT_ACCESS_COOKIE_PATH = '/'
    JWT_COOKIE_SECURE = os.environ.get('JWT_COOKIE_SECURE', 'False').lower() == 'true'

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///clubvote.sqlite')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Rate limiter storage; falls back to in-process memory when Redis is not configured
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL', 'memory://')
    VOTE_RATE_LIMIT = os.environ.get('VOTE_RATE_LIMIT', '10/hour')

    CACHE_TYPE = os.environ.get('CACHE_TYPE', 'SimpleCache')
    CACHE_DEFAULT_TIMEOUT = int(os.environ.get('RESULTS_CACHE_TIMEOUT', '300'))

    # PEM encoded Ed25519 private key; a fresh key is generated per process when unset
    AUDIT_SIGNING_KEY = os.environ.get('AUDIT_SIGNING_KEY')

    MAX_CODES_PER_BATCH = int(os.environ.get('MAX_CODES_PER_BATCH', '1000'))
    CODE_GENERATION_ATTEMPTS = 5

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test'
    JWT_SECRET_KEY = 'test_secret_key_long_enough_for_hs256'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = 'memory://'
    CACHE_TYPE = 'SimpleCache'
    AUDIT_SIGNING_KEY = None
    MAX_CODES_PER_BATCH = 50
    LOG_LEVEL = 'DEBUG'
