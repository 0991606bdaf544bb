"""Web API for Accreda."""
