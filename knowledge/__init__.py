"""knowledge/ -- Knowledge request lifecycle and PDF attachment storage.

Layer rule: knowledge/ may import from core/ and auth/ (for the users table
in join queries). It does NOT import from api/.
"""
