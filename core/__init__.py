"""core/ -- Configuration, error taxonomy, and database engine factory.

Layer rule: core/ is the kernel and imports from no other project package.
"""
