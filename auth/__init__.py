"""auth/ -- Credential store, session registry, token codec, and access gates.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or knowledge/.
api/ and knowledge/ import from auth/, not the other way around.
"""
