"""HTTP routers for Veritas, mounted by veritas.main.create_app()."""
