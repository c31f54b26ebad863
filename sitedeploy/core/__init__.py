"""Deploy engine: planning, applying, invalidation, run state and leases."""
