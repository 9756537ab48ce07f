"""Campus map with indoor wayfinding and outdoor routing."""
