"""HTTP routers for the todo web application."""
