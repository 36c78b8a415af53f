"""Shared Linear label conventions.

Labels are created on demand by the reconciler. Colors come from a fixed table keyed
by lowercase name, so a label gets the same color no matter which run (or which
team) creates it first.
"""

from __future__ import annotations

DEFAULT_LABEL_COLOR = "#6B7280"

LABEL_COLORS: dict[str, str] = {
    # Publishing
    "npm": "#CB3837",
    "ci": "#2088FF",
    "build": "#0E8A16",
    "automation": "#5319E7",
    # Security & compliance
    "security": "#D73A4A",
    "soc2": "#0052CC",
    "legal": "#FEF2C0",
    # Tiers
    "enterprise": "#7057FF",
    # Development
    "backend": "#1D76DB",
    "frontend": "#10B981",
    "mcp": "#006B75",
    "cli": "#E99695",
    "vscode": "#007ACC",
    "ux": "#D4C5F9",
    # Billing
    "billing": "#F9D0C4",
    "stripe": "#635BFF",
    "marketplace": "#BFD4F2",
    # Website
    "website": "#3B82F6",
    "auth": "#EF4444",
    "dashboard": "#06B6D4",
    # General
    "feature": "#A2EEEF",
    "integration": "#7057FF",
    "performance": "#FBCA04",
    "reporting": "#D93F0B",
    "documentation": "#0075CA",
}


def label_color(name: str) -> str:
    return LABEL_COLORS.get(name.strip().lower(), DEFAULT_LABEL_COLOR)
