"""spy.pet dataset clients."""
