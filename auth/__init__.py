"""auth/ -- Credential issuance and verification for the session service.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or session/.
api/ imports from auth/, not the other way around.
"""
