"""authz/ -- Clients for the relation-tuple store (Keto) and identity service (Kratos).

Layer rule: authz/ imports only from core/ plus third-party libraries.
It does NOT import from api/, ownership/, or records/.
ownership/ and api/ import from authz/, not the other way around.
"""
