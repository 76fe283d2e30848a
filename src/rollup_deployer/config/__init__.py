"""Deployment parameters: pydantic models and env/YAML loading."""
