"""Service layer: permission resolution, approver rules and the approval engine."""
