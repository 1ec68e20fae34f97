"""
Configuration for the cafeteria menu backend
Defaults for the HAFS site and NEIS API, overridable through environment variables
"""

import os
from typing import Dict, List, Mapping, Optional


HAFS_HOST = "hafs.hs.kr"
HAFS_LUNCH_CODE = "171113"

NEIS_BASE = "https://open.neis.go.kr/hub"
NEIS_OFFICE_CODE = "J10"       # Gyeonggi-do Office of Education
NEIS_SCHOOL_CODE = "7531146"

# Firewall/block page markers
DEFAULT_BLOCK_DOMAINS = ["warning.or.kr"]
DEFAULT_BLOCK_SIGNATURES = ["warning.or.kr", "차단된 페이지", "접근이 차단"]

# Cache lifetimes in seconds
PAGE_TTL = 5 * 60
MENU_TTL = 30 * 60
PHOTO_TTL = 30 * 60
IMAGE_TTL = 60 * 60


def _split_list(value: Optional[str], default: List[str]) -> List[str]:
    """Parse a comma separated env value"""
    if not value:
        return list(default)
    return [part.strip() for part in value.split(',') if part.strip()]


def _as_float(value: Optional[str], default: float) -> float:
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Expected a number, got {value!r}")


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_settings(env: Optional[Mapping[str, str]] = None) -> Dict:
    """
    Build the settings dictionary from defaults and environment variables

    Args:
        env: Mapping to read overrides from (defaults to os.environ)

    Returns:
        Dictionary of settings consumed by the fetcher, caches and service
    """
    if env is None:
        env = os.environ

    schemes = _split_list(env.get('HAFS_SCHEMES'), ['https', 'http'])
    for scheme in schemes:
        if scheme not in ('http', 'https'):
            raise ValueError(f"HAFS_SCHEMES may only contain http/https, got {scheme!r}")

    return {
        'host': env.get('HAFS_HOST') or HAFS_HOST,
        'schemes': schemes,
        'lunch_code': env.get('HAFS_LUNCH_CODE') or HAFS_LUNCH_CODE,
        'block_domains': _split_list(env.get('HAFS_BLOCK_DOMAINS'), DEFAULT_BLOCK_DOMAINS),
        'block_signatures': _split_list(env.get('HAFS_BLOCK_SIGNATURES'), DEFAULT_BLOCK_SIGNATURES),
        'direct_timeout': _as_float(env.get('HAFS_DIRECT_TIMEOUT'), 3.0),
        'render_timeout': _as_float(env.get('HAFS_RENDER_TIMEOUT'), 15.0),
        'render_wait': _as_float(env.get('HAFS_RENDER_WAIT'), 4.0),
        'page_ttl': PAGE_TTL,
        'menu_ttl': MENU_TTL,
        'photo_ttl': PHOTO_TTL,
        'image_ttl': IMAGE_TTL,
        'photo_timeout': _as_float(env.get('HAFS_PHOTO_TIMEOUT'), 2.8),
        'image_timeout': 5.0,
        'week_concurrency': int(_as_float(env.get('HAFS_WEEK_CONCURRENCY'), 3)),
        'use_browser': _as_bool(env.get('HAFS_USE_BROWSER'), True),
        'chromedriver_path': env.get('CHROMEDRIVER_PATH') or None,
        'neis_base': NEIS_BASE,
        'neis_key': env.get('NEIS_KEY') or None,
        'neis_office_code': env.get('NEIS_OFFICE_CODE') or NEIS_OFFICE_CODE,
        'neis_school_code': env.get('NEIS_SCHOOL_CODE') or NEIS_SCHOOL_CODE,
    }


def get_neis_key(settings: Dict) -> str:
    """
    Get the NEIS open API key

    Raises:
        ValueError: If the key is not configured
    """
    api_key = settings.get('neis_key')
    if not api_key:
        raise ValueError(
            "NEIS_KEY environment variable is required. "
            "Set it with: export NEIS_KEY='your-api-key-here'"
        )
    return api_key
