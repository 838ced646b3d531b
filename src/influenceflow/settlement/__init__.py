"""Campaign funding, deliverable settlement and payment gateway adapters."""
