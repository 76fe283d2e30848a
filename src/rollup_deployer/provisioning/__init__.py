"""Idempotent provisioning of the rollup template graph."""
