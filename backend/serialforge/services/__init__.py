"""Application services: continuity, validation, policy, generation and orchestration."""
