"""Check Discord server memberships against the spy.pet dataset."""
