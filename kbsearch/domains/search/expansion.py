"""
Query Expansion - Event-safety vocabulary for embedding queries.

Expansion is applied to the text sent to the embedding provider only.
Keyword search always works on the caller's literal vocabulary.
"""

from __future__ import annotations

__all__ = ["DOMAIN_SYNONYMS", "MAX_SYNONYMS_PER_TERM", "expand_query"]

MAX_SYNONYMS_PER_TERM = 3

DOMAIN_SYNONYMS: dict[str, list[str]] = {
    # Ingress/Egress
    "ingress": ["entry", "gate entry", "queuing", "arrival", "gates", "queue management", "access", "entrance"],
    "egress": ["exit", "dispersal", "egress routes", "crowd exit", "departure", "evacuation route"],
    # Crowd management
    "crowd": ["crowd management", "density", "flow", "audience", "patrons", "attendees", "capacity"],
    "queue": ["queuing", "queues", "waiting", "line", "queue management"],
    "surge": ["crowd surge", "crush", "pressure", "crowd movement", "pushing"],
    # Security
    "breach": ["entry breach", "gate breach", "unauthorized entry", "security breach"],
    "threat": ["hostile act", "aggression", "attack", "danger", "risk"],
    # Medical
    "medical": ["first aid", "injury", "casualty", "medic", "ambulance", "emergency medical"],
    "collapse": ["fallen", "unconscious", "down", "medical emergency"],
    # Fire and evacuation
    "fire": ["flames", "smoke", "burning", "fire alarm", "suspected fire"],
    "evacuation": ["evacuate", "clear", "emergency exit", "leave venue"],
    # Weather
    "weather": ["rain", "wind", "storm", "lightning", "conditions"],
    # Accessibility
    "accessibility": ["disabled", "wheelchair", "accessible", "mobility", "assistance"],
    # Alcohol/Drugs
    "intoxicated": ["drunk", "alcohol", "drugs", "substance"],
    # Lost items/people
    "lost": ["missing", "cannot find", "misplaced", "separated"],
    # Event operations
    "delay": ["postpone", "hold", "wait", "pause"],
    "cancel": ["cancelled", "stopped", "terminated", "abandoned"],
}


def expand_query(query: str) -> str:
    """
    Append domain synonyms for every vocabulary key found in the query.

    Example:
        >>> expand_query("crowd surge at gate 4")
        'crowd surge at gate 4 crowd management density flow crowd surge crush pressure'
    """
    lower = query.lower()
    expansions: list[str] = []

    for term, synonyms in DOMAIN_SYNONYMS.items():
        if term not in lower:
            continue
        for synonym in synonyms[:MAX_SYNONYMS_PER_TERM]:
            if synonym not in expansions:
                expansions.append(synonym)

    if not expansions:
        return query
    return f"{query} {' '.join(expansions)}"
