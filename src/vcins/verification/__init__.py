"""Verification problems for the convective operator."""
