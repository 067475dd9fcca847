"""Override resolution, timeline building and read-only projections."""
