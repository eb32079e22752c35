"""Configuration for the voting client."""

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Configuration class for the voting client."""

    # Voting API
    API_URL = os.getenv('API_URL', 'http://localhost:8000/api/v1')
    APP_BASE_URL = os.getenv('APP_BASE_URL', 'http://localhost:5173')
    REQUEST_TIMEOUT_SECONDS = float(os.getenv('REQUEST_TIMEOUT_SECONDS', '10'))

    # Redis (durable session storage)
    REDIS_HOST = os.getenv('REDIS_HOST', 'localhost')
    REDIS_PORT = int(os.getenv('REDIS_PORT', '6379'))
    REDIS_DB = int(os.getenv('REDIS_DB', '0'))
    REDIS_PASSWORD = os.getenv('REDIS_PASSWORD', None)
    SESSION_ID = os.getenv('SESSION_ID', 'default')

    # Geolocation
    GEO_TIMEOUT_SECONDS = float(os.getenv('GEO_TIMEOUT_SECONDS', '10'))
    GEO_HIGH_ACCURACY = os.getenv('GEO_HIGH_ACCURACY', 'true').lower() == 'true'
    GEO_MAXIMUM_AGE = float(os.getenv('GEO_MAXIMUM_AGE', '0'))

    # Voting gate
    MAX_VOTE_DISTANCE_METERS = float(os.getenv('MAX_VOTE_DISTANCE_METERS', '100'))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def get_redis_url(cls):
        """Get Redis connection URL."""
        if cls.REDIS_PASSWORD:
            return f"redis://:{cls.REDIS_PASSWORD}@{cls.REDIS_HOST}:{cls.REDIS_PORT}/{cls.REDIS_DB}"
        return f"redis://{cls.REDIS_HOST}:{cls.REDIS_PORT}/{cls.REDIS_DB}"
