"""HTTP routes: postcode pages and health."""
