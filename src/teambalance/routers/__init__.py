"""HTTP routers for the board API."""
