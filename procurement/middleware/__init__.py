"""Request middleware: logging, request timing, tenant context, permission guards."""
