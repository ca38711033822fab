"""Adaptive review scheduling, learning-model aggregation and AI usage limits."""
