"""
Shared authentication utilities.

Why:
    Keep the session cookie policy in one place so the client middleware and
    the logout route set identical flags.

Design:
    The helper is framework-agnostic and pure: it accepts an environment string
    and returns the corresponding cookie flags.
"""

from __future__ import annotations


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags.

    Returns a mapping with keys:
      - secure: True outside dev (plain-http localhost needs the cookie too)
      - samesite: "lax"  # cookie must survive top-level redirects after sign-in
    """
    secure = (environment or "dev").lower() not in {"dev", "test"}
    return {"secure": secure, "samesite": "lax"}
