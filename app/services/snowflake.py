"""
Snowflake connection factory - Award Assessment Platform
app/services/snowflake.py
"""

from __future__ import annotations

import os

import snowflake.connector
from dotenv import load_dotenv

from app.config import settings


def get_snowflake_connection():
    """
    Open a Snowflake connection for repositories.

    Credentials come from settings, falling back to the process environment
    (loaded from .env) for deployments that only export SNOWFLAKE_* vars.
    """
    load_dotenv()

    password = settings.SNOWFLAKE_PASSWORD.get_secret_value() if settings.SNOWFLAKE_PASSWORD else None

    return snowflake.connector.connect(
        account=settings.SNOWFLAKE_ACCOUNT or os.getenv("SNOWFLAKE_ACCOUNT"),
        user=settings.SNOWFLAKE_USER or os.getenv("SNOWFLAKE_USER"),
        password=password or os.getenv("SNOWFLAKE_PASSWORD"),
        warehouse=settings.SNOWFLAKE_WAREHOUSE or os.getenv("SNOWFLAKE_WAREHOUSE"),
        database=settings.SNOWFLAKE_DATABASE or os.getenv("SNOWFLAKE_DATABASE"),
        schema=settings.SNOWFLAKE_SCHEMA or os.getenv("SNOWFLAKE_SCHEMA"),
        role=settings.SNOWFLAKE_ROLE or os.getenv("SNOWFLAKE_ROLE"),
        login_timeout=settings.SNOWFLAKE_LOGIN_TIMEOUT,
        network_timeout=settings.SNOWFLAKE_LOGIN_TIMEOUT,
    )
