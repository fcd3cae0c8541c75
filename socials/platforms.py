# socials/platforms.py

"""
Centralized target constants.

These are *logical* groupings, not tied to config. The SocialPublisher
will still only post to targets that are actually enabled/configured.
"""

from typing import Dict, List, Optional, Tuple

from core.models import TargetName

ALL_TARGETS: List[str] = [t.value for t in TargetName]

# Threads are chained with reply posts on these...
REPLY_TARGETS = {TargetName.BLUESKY.value, TargetName.MASTODON.value, TargetName.TWITTER.value, TargetName.FEED.value}
# ...and with a comment on the root post here.
COMMENT_TARGETS = {TargetName.LINKEDIN.value}

# Alternative names accepted on the CLI and in `socials:` flags.
TARGET_ALIASES: Dict[str, str] = {
    "x": TargetName.TWITTER.value,
    "rss": TargetName.FEED.value,
}

# config.yaml section names, first match wins.
CONFIG_SECTIONS: Dict[TargetName, Tuple[str, ...]] = {
    TargetName.BLUESKY: ("bluesky",),
    TargetName.MASTODON: ("mastodon",),
    TargetName.TWITTER: ("twitter", "x"),
    TargetName.LINKEDIN: ("linkedin",),
    TargetName.FEED: ("feed", "rss"),
}


def normalize_target(name: str) -> str:
    """Lower-case a target name and map aliases ("x" -> "twitter"). Unknown names pass through."""
    key = str(name).strip().lower()
    return TARGET_ALIASES.get(key, key)


def lookup_target(name: str) -> Optional[TargetName]:
    return TargetName.lookup(normalize_target(name))
