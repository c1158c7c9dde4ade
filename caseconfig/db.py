# caseconfig/db.py
"""
Environment configuration and the Supabase client.

This module provides:
- Feature flag checks
- Lab API settings shared by the HTTP catalog source and delivery estimator
- Singleton Supabase client instance (catalog provider "supabase")

Environment Variables:
- CATALOG_PROVIDER: stub (default) | http | supabase
- CATALOG_STUB_PATH: optional JSON file for the stub provider
- LAB_API_BASE_URL: Lab API root (e.g. https://api.example-lab.com)
- LAB_API_TOKEN: Bearer token for the lab API (optional)
- LAB_API_TIMEOUT_SECONDS: Per-request timeout, default 10
- SUPABASE_URL / SUPABASE_KEY: Supabase project credentials

Feature Flags:
- CONFIG_API_ENABLED: Expose the /api/subjects routes (default on)
"""

from __future__ import annotations

import os
import logging
from functools import lru_cache
from typing import Optional

log = logging.getLogger("caseconfig.db")

# ============================================================
# Feature Flags
# ============================================================

def _flag_on(name: str, default: str = "off") -> bool:
    """Check if a feature flag is enabled."""
    val = os.getenv(name, default).lower()
    return val in ("on", "true", "1", "yes")


def is_config_api_enabled() -> bool:
    """Check if the configuration routes are enabled."""
    return _flag_on("CONFIG_API_ENABLED", default="on")


# ============================================================
# Provider Settings
# ============================================================

def get_catalog_provider() -> str:
    return os.getenv("CATALOG_PROVIDER", "stub").strip().lower()


def get_catalog_stub_path() -> Optional[str]:
    path = os.getenv("CATALOG_STUB_PATH", "").strip()
    return path or None


def get_lab_api_base_url() -> str:
    url = os.getenv("LAB_API_BASE_URL", "").strip().rstrip("/")
    if not url:
        log.warning("LAB_API_BASE_URL not set - lab API calls will fail")
    return url


def get_lab_api_token() -> str:
    return os.getenv("LAB_API_TOKEN", "").strip()


def get_lab_api_timeout() -> float:
    raw = os.getenv("LAB_API_TIMEOUT_SECONDS", "10")
    try:
        return max(0.1, float(raw))
    except ValueError:
        log.warning("Invalid LAB_API_TIMEOUT_SECONDS %r, using 10", raw)
        return 10.0


def lab_api_headers() -> dict:
    headers = {"Accept": "application/json"}
    token = get_lab_api_token()
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


# ============================================================
# Supabase Client
# ============================================================

def _get_supabase_url() -> str:
    """Get Supabase URL from environment."""
    url = os.getenv("SUPABASE_URL", "").strip()
    if not url:
        log.warning("SUPABASE_URL not set - database operations will fail")
    return url


def _get_supabase_key() -> str:
    """Get Supabase key from environment."""
    key = os.getenv("SUPABASE_KEY", "").strip()
    if not key:
        log.warning("SUPABASE_KEY not set - database operations will fail")
    return key


@lru_cache(maxsize=1)
def get_supabase_client():
    """
    Get singleton Supabase client instance.

    Returns:
        Supabase client or None if not configured.

    Note:
        Uses lru_cache for singleton pattern.
        Returns None if SUPABASE_URL or SUPABASE_KEY not set.
    """
    url = _get_supabase_url()
    key = _get_supabase_key()

    if not url or not key:
        log.error("Supabase credentials not configured")
        return None

    from supabase import create_client

    try:
        client = create_client(url, key)
        log.info("Supabase client initialized successfully")
        return client
    except Exception as e:
        log.error("Failed to initialize Supabase client: %s", e)
        return None


# ============================================================
# Table Names (Constants)
# ============================================================

TABLE_TEETH_SHADE_BRANDS = "teeth_shade_brands"
TABLE_GUM_SHADE_BRANDS = "gum_shade_brands"

# PostgREST embedded-resource selects: brand columns plus owned shades
SELECT_TEETH_SHADES = "id, name, system_name, shades:teeth_shades(id, name, sequence, price)"
SELECT_GUM_SHADES = "id, name, system_name, shades:gum_shades(id, name, sequence, price)"
