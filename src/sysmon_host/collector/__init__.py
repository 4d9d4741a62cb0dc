"""Resource collectors, the raw sampler interface and the delta store."""
