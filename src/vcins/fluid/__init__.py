"""Flux limiters, patch kernels and the staggered convective operator."""
