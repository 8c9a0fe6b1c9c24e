"""auth/ -- Credential issuance and verification for Trailpass.

Layer rule: auth/ imports stdlib, third-party libraries, core/ and the mail/
sender contract. It does NOT import from api/. api/ imports from auth/, not
the other way around.
"""
