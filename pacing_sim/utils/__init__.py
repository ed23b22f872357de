"""Metrics, tracing and plotting for rate-paced scenarios."""
