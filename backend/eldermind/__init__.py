"""ElderMind lore API."""
