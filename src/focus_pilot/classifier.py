"""Classify URLs as productive, distracting or neutral."""

from __future__ import annotations

import logging
from typing import Iterable, Optional
from urllib.parse import urlsplit

from .errors import ClassificationError
from .models import NEUTRAL, Classification

logger = logging.getLogger(__name__)

DISTRACTION_DOMAINS: tuple[str, ...] = (
    "facebook.com",
    "twitter.com",
    "instagram.com",
    "youtube.com",
    "reddit.com",
    "tiktok.com",
    "netflix.com",
    "discord.com",
    "pinterest.com",
    "roblox.com",
    "primevideo.com",
)


def hostname_of(url: Optional[str]) -> str:
    """Return the lowercase hostname of ``url`` or raise ClassificationError."""
    if not url or not isinstance(url, str):
        raise ClassificationError("empty URL")
    try:
        hostname = urlsplit(url.strip()).hostname
    except ValueError as exc:
        raise ClassificationError(f"unparseable URL {url!r}") from exc
    if not hostname:
        raise ClassificationError(f"no hostname in {url!r}")
    return hostname


def _matches_any(hostname: str, domains: Iterable[str]) -> bool:
    return any(domain and domain.lower() in hostname for domain in domains)


def classify(url: Optional[str], productive_domains: Iterable[str]) -> Classification:
    """Classify ``url``; unknown or malformed URLs are neutral.

    A hostname matching a productive domain is never a distraction, even when it
    also matches the built-in distraction list.
    """
    try:
        hostname = hostname_of(url)
    except ClassificationError as exc:
        logger.debug("Treating URL as neutral: %s", exc)
        return NEUTRAL
    if _matches_any(hostname, productive_domains):
        return Classification(productive=True, distraction=False)
    return Classification(
        productive=False,
        distraction=_matches_any(hostname, DISTRACTION_DOMAINS),
    )
