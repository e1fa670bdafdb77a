#!/usr/bin/env python

"""
    Configurations for Libris

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import os


# Determine environment
TESTING = os.getenv("TESTING", "false").lower() == "true"

# API server configuration
SCHEME = 'http'
HOST = os.environ.get('LIBRIS_HOST', 'localhost')
PORT = int(os.environ.get('LIBRIS_PORT', 8080))
WORKERS = int(os.environ.get('LIBRIS_WORKERS', 1))
DEBUG = bool(int(os.environ.get('LIBRIS_DEBUG', 0)))
LOG_LEVEL = os.environ.get('LIBRIS_LOG_LEVEL', 'info')
SSL_CRT = os.environ.get('LIBRIS_SSL_CRT')
SSL_KEY = os.environ.get('LIBRIS_SSL_KEY')
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',')

OPTIONS = {
    'host': HOST,
    'port': PORT,
    'log_level': LOG_LEVEL,
    'reload': DEBUG,
    'workers': WORKERS,
}
if SSL_CRT and SSL_KEY:
    OPTIONS['ssl_keyfile'] = SSL_KEY
    OPTIONS['ssl_certfile'] = SSL_CRT
    SCHEME = 'https'

DB_CONFIG = {
    'user': os.environ.get('DB_USER', 'postgres'),
    'password': os.environ.get('DB_PASSWORD'),
    'host': os.environ.get('DB_HOST', 'localhost'),
    'port': int(os.environ.get('DB_PORT', '5432')),
    'dbname': os.environ.get('DB_NAME', 'libris'),
}

# Database configuration
DB_URI = (
    "sqlite:///:memory:" if TESTING else
    'postgresql+psycopg2://{user}:{password}@{host}:{port}/{dbname}'.format(**DB_CONFIG)
)

# Lending policy
FINE_RATE = float(os.environ.get('LIBRIS_FINE_RATE', 5))
LOAN_PERIOD_DAYS = int(os.environ.get('LIBRIS_LOAN_PERIOD_DAYS', 14))
MAX_RENEWALS = int(os.environ.get('LIBRIS_MAX_RENEWALS', 2))
CONFLICT_SAMPLE_SIZE = int(os.environ.get('LIBRIS_CONFLICT_SAMPLE_SIZE', 5))
POPULAR_BOOKS_LIMIT = int(os.environ.get('LIBRIS_POPULAR_BOOKS_LIMIT', 5))

# Identity
INSTITUTION_EMAIL_DOMAIN = os.environ.get('INSTITUTION_EMAIL_DOMAIN', 'cambridge.edu.in')
SEED = os.environ.get('LIBRIS_SEED', 'libris-development-seed')
SESSION_TTL = int(os.environ.get('LIBRIS_SESSION_TTL', 604800))

__all__ = [
    'SCHEME', 'HOST', 'PORT', 'DEBUG', 'OPTIONS', 'DB_URI', 'DB_CONFIG', 'TESTING',
    'FINE_RATE', 'LOAN_PERIOD_DAYS', 'MAX_RENEWALS', 'CONFLICT_SAMPLE_SIZE',
    'POPULAR_BOOKS_LIMIT', 'INSTITUTION_EMAIL_DOMAIN', 'SEED', 'SESSION_TTL',
    'CORS_ORIGINS',
]
