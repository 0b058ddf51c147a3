"""Services: view maintenance, view queries and the postcode report."""
