# =============================================================================
# Django Project Configuration Package
# =============================================================================
# This package contains the Django configuration for the checkout service:
# settings, URLs, and the ASGI/WSGI applications.
# =============================================================================
