"""
Desktop browser User-Agent rotation.

Shop front ends often serve reduced or bot-specific markup to unknown
clients, so page fetches present themselves as a current desktop browser.
"""

from __future__ import annotations

import random
from typing import List, Optional


class UserAgentRotator:
    """Picks a random User-Agent from a pool of desktop browser strings."""

    def __init__(self, agents: Optional[List[str]] = None, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

        self.desktop_agents = agents or [
            # Chrome
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
            # Firefox
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:127.0) Gecko/20100101 Firefox/127.0",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:127.0) Gecko/20100101 Firefox/127.0",
            # Safari
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.5 Safari/605.1.15",
            # Edge
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36 Edg/126.0.0.0",
        ]

    def get_user_agent(self) -> str:
        """Get a random desktop user agent."""
        return self.rng.choice(self.desktop_agents)

    def get_all_agents(self) -> List[str]:
        return list(self.desktop_agents)
