"""
Process-wide access to the ID obfuscation engine.

The engine is built once from the configured key material and shared by every
request. Routes receive it as a dependency so tests can substitute their own keys.
"""
from functools import lru_cache

from config import get_settings
from obfuscation import IdObfuscator


@lru_cache()
def get_obfuscator() -> IdObfuscator:
    """
    Returns a cached, singleton instance of the obfuscation engine.
    This ensures the engine is created only once with the final, correct settings.
    """
    return IdObfuscator(get_settings().obfuscation_keys())
