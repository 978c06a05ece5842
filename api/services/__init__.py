"""Service layer for business logic.

Services encapsulate all business rules, keeping routes thin and focused
on HTTP handling.

Layer hierarchy:
    Routes (HTTP) -> Services (Business Logic) -> Repositories (Database)

Services should:
- Validate state-machine preconditions and raise services.exceptions errors
- Orchestrate calls to repositories inside the caller's transaction
- Return dataclasses (not ORM models)

Services should NOT:
- Directly execute SQL queries (use repositories)
- Commit (the request-scoped session does)
- Know about HTTP request/response details
"""
