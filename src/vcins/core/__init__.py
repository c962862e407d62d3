"""Index-space boxes, patch data containers, communicators and base classes."""
