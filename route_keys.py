# Derives the cache key for a pickup/destination pair.

import hashlib


def derive_key(pickup_lat: str, pickup_lon: str, dest_lat: str, dest_lon: str) -> str:
    """
    Hashes the raw coordinate strings into a 64-character hex key.

    The strings are used exactly as received, so "42.0" and "42" give
    different keys.
    """
    hasher = hashlib.sha256()
    for part in (pickup_lat, pickup_lon, dest_lat, dest_lon):
        hasher.update(part.encode('utf-8'))
    return hasher.hexdigest()
