from __future__ import annotations

from enum import Enum


class Topology(Enum):
    # Single node vs. centrally managed node groups.
    STANDALONE = "standalone"
    DOMAIN = "domain"
