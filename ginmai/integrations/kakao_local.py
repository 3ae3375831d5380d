# Kakao Local API: reverse geocoding (coordinates -> area label) at moment creation

import logging
from typing import Any, Dict, Optional

import httpx

from ginmai.config import KAKAO_LOCAL_BASE_URL, KAKAO_REST_API_KEY

log = logging.getLogger(__name__)

REGION_CODE_PATH = "/v2/local/geo/coord2regioncode.json"
FALLBACK_AREA_NAME = "Nearby"


def _area_from_documents(data: Dict[str, Any]) -> Optional[str]:
    """Prefer the administrative region (H), most specific depth first."""
    docs = data.get("documents") or []
    docs = sorted(docs, key=lambda d: 0 if d.get("region_type") == "H" else 1)
    for doc in docs:
        for key in ("region_3depth_name", "region_2depth_name", "region_1depth_name"):
            name = (doc.get(key) or "").strip()
            if name:
                return name
    return None


async def reverse_geocode(
    lat: float,
    lng: float,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Human label for a point. Any failure (no key, HTTP error, empty result)
    degrades to FALLBACK_AREA_NAME; moment creation never fails because of it.
    """
    if not KAKAO_REST_API_KEY and client is None:
        return FALLBACK_AREA_NAME

    url = f"{KAKAO_LOCAL_BASE_URL.rstrip('/')}{REGION_CODE_PATH}"
    params = {"x": str(lng), "y": str(lat)}
    headers = {"Authorization": f"KakaoAK {KAKAO_REST_API_KEY}"}

    try:
        if client is not None:
            resp = await client.get(url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=5.0) as c:
                resp = await c.get(url, params=params, headers=headers)
        if resp.status_code != 200:
            log.warning("reverse geocode HTTP %s for (%s, %s)", resp.status_code, lat, lng)
            return FALLBACK_AREA_NAME
        return _area_from_documents(resp.json()) or FALLBACK_AREA_NAME
    except Exception:
        log.warning("reverse geocode failed for (%s, %s)", lat, lng, exc_info=True)
        return FALLBACK_AREA_NAME
