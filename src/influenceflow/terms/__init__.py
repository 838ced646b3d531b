"""Deal terms proposal, revision and approval."""
