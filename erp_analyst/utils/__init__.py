"""Shared utilities for ERP Analyst."""
