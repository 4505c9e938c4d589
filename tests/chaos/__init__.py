"""
Chaos tests: failure injection against the simulated fleet.
"""
