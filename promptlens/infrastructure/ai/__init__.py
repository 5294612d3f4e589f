"""AI provider adapters and the analysis client built on top of them."""
