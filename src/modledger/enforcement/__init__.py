"""
Enforcement gateways: the protocol the engine consumes, an in-memory double
for tests, and the py-cord binding used in production.
"""
