"""Provision rollup templates on a parent chain and create a child rollup."""

__version__ = "0.1.0"
