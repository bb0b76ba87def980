"""
Output writers: Prometheus pull metrics, NATS push events and a stdout fallback.
"""
