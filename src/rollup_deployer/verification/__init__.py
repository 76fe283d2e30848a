"""Best-effort source verification side channel."""
