"""Response normalization for storefront documents and error bodies."""
